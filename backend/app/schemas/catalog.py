"""
Read-only views of the lookup entities a reservation points to, plus the
shape returned by the external game database.
"""

from typing import Optional

from pydantic import BaseModel


class DifficultyResponse(BaseModel):
    id: int
    description: str
    difficulty_rate: int

    model_config = {"from_attributes": True}


class GameResponse(BaseModel):
    id: int
    name: str
    description: str
    bgg_id: Optional[int]

    model_config = {"from_attributes": True}


class ShopSummary(BaseModel):
    id: int
    name: str
    logo: Optional[str]

    model_config = {"from_attributes": True}


class TableResponse(BaseModel):
    id: int
    number: int
    shop: ShopSummary

    model_config = {"from_attributes": True}


class ExternalGame(BaseModel):
    name: str
    description: str = ""
    category_name: Optional[str] = None
