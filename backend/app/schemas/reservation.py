"""
Pydantic schemas for reservation request/response validation.

Datetimes are normalized to UTC on the way in; naive values are read in the
shops' local timezone.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from app.core.clock import from_client
from app.schemas.catalog import DifficultyResponse, GameResponse, TableResponse
from app.schemas.user import PlayerResponse


class ReservationCreate(BaseModel):
    total_places: int = Field(..., gt=0, le=100)
    hour_start: datetime
    hour_end: datetime
    description: str = Field(..., min_length=1, max_length=500)
    required_material: str = Field(..., min_length=1, max_length=500)
    shop_event: bool = False
    difficulty_id: Optional[int] = None
    # Any of these identifies the game: local id, name fragment, external id
    game_id: Optional[int] = None
    game_name: Optional[str] = Field(None, min_length=1, max_length=500)
    bgg_id: Optional[int] = None
    table_id: Optional[int] = None

    @field_validator("hour_start", "hour_end")
    @classmethod
    def normalize_time(cls, value: datetime) -> datetime:
        return from_client(value)

    @model_validator(mode="after")
    def check_time_range(self) -> "ReservationCreate":
        if self.hour_end <= self.hour_start:
            raise ValueError("hour_end must be after hour_start")
        return self

    @property
    def wants_game(self) -> bool:
        return any(v is not None for v in (self.game_id, self.game_name, self.bgg_id))


class ReservationUpdate(BaseModel):
    total_places: Optional[int] = Field(None, gt=0, le=100)
    hour_start: Optional[datetime] = None
    hour_end: Optional[datetime] = None
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    required_material: Optional[str] = Field(None, min_length=1, max_length=500)
    difficulty_id: Optional[int] = None
    game_id: Optional[int] = None
    game_name: Optional[str] = Field(None, min_length=1, max_length=500)
    bgg_id: Optional[int] = None
    table_id: Optional[int] = None

    @field_validator("hour_start", "hour_end")
    @classmethod
    def normalize_time(cls, value: Optional[datetime]) -> Optional[datetime]:
        return from_client(value) if value is not None else None

    @property
    def wants_game(self) -> bool:
        return any(v is not None for v in (self.game_id, self.game_name, self.bgg_id))


class ParticipantResponse(BaseModel):
    confirmed: bool
    user: PlayerResponse

    model_config = {"from_attributes": True}


class ReservationResponse(BaseModel):
    id: int
    total_places: int
    hour_start: datetime
    hour_end: datetime
    description: str
    required_material: str
    shop_event: bool
    event_id: Optional[str]
    confirmation_notification: bool
    difficulty: Optional[DifficultyResponse]
    game: Optional[GameResponse]
    table: Optional[TableResponse]
    participations: list[ParticipantResponse] = []

    model_config = {"from_attributes": True}
