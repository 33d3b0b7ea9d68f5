from app.schemas.user import PlayerResponse
from app.schemas.catalog import ExternalGame
from app.schemas.reservation import ReservationCreate, ReservationUpdate, ReservationResponse
from app.schemas.participation import (
    ParticipationCreate,
    ParticipationResponse,
    UserReservationResponse,
)

__all__ = [
    "PlayerResponse", "ExternalGame",
    "ReservationCreate", "ReservationUpdate", "ReservationResponse",
    "ParticipationCreate", "ParticipationResponse", "UserReservationResponse",
]
