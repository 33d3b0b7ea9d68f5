"""
Pydantic schemas for users as seen by other players.
"""

from pydantic import BaseModel


class PlayerResponse(BaseModel):
    external_id: str
    username: str
    name: str

    model_config = {"from_attributes": True}
