"""
Reservation model: a booked time slot at a shop table.

Key design decisions:
- Associations are plain FK columns; relationships are lazy="raise" so every
  query has to name the relations it loads
- `event_id` groups the daily occurrences of a recurring shop event
- `confirmation_notification` only ever flips false -> true (upcoming notifier)
- Participations go away with their reservation (FK cascade + ORM cascade)
"""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin


class Reservation(Base, TimestampMixin):
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, index=True)
    total_places = Column(Integer, nullable=False)
    hour_start = Column(DateTime(timezone=True), nullable=False)
    hour_end = Column(DateTime(timezone=True), nullable=False)
    description = Column(String(500), nullable=False)
    required_material = Column(String(500), nullable=False)
    shop_event = Column(Boolean, nullable=False, default=False)
    event_id = Column(String(64), nullable=True, index=True)
    confirmation_notification = Column(Boolean, nullable=False, default=False)

    difficulty_id = Column(Integer, ForeignKey("difficulties.id", ondelete="SET NULL"), nullable=True)
    game_id = Column(Integer, ForeignKey("games.id", ondelete="SET NULL"), nullable=True)
    table_id = Column(Integer, ForeignKey("tables.id", ondelete="SET NULL"), nullable=True, index=True)

    difficulty = relationship("Difficulty", lazy="raise")
    game = relationship("Game", lazy="raise")
    table = relationship("Table", back_populates="reservations", lazy="raise")
    participations = relationship(
        "Participation",
        back_populates="reservation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Participation.id",
        lazy="raise",
    )

    __table_args__ = (
        CheckConstraint("total_places > 0", name="check_reservation_places_positive"),
        CheckConstraint("hour_end > hour_start", name="check_reservation_time_range"),
        # Notifier scan and per-day listings are range queries on the start time
        Index("ix_reservations_hour_start", "hour_start"),
    )

    def __repr__(self) -> str:
        return f"<Reservation(id={self.id}, start={self.hour_start}, event={self.event_id})>"
