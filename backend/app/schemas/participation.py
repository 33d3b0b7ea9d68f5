"""
Pydantic schemas for joining, confirming and listing participations.
"""

from pydantic import BaseModel

from app.schemas.reservation import ReservationResponse
from app.schemas.user import PlayerResponse


class ParticipationCreate(BaseModel):
    confirmed: bool = False


class ParticipationResponse(BaseModel):
    id: int
    confirmed: bool
    reservation_id: int
    user: PlayerResponse

    model_config = {"from_attributes": True}


class UserReservationResponse(BaseModel):
    id: int
    confirmed: bool
    reservation: ReservationResponse

    model_config = {"from_attributes": True}
