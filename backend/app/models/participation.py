"""
Participation: one user's membership in one reservation.

`confirmed` records whether the user confirmed attendance; it is unrelated to
the reservation's own notification flag.
"""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin


class Participation(Base, TimestampMixin):
    __tablename__ = "user_reservations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    reservation_id = Column(
        Integer,
        ForeignKey("reservations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    confirmed = Column(Boolean, nullable=False, default=False)

    user = relationship("User", back_populates="participations", lazy="raise")
    reservation = relationship("Reservation", back_populates="participations", lazy="raise")

    __table_args__ = (
        UniqueConstraint("user_id", "reservation_id", name="uq_user_reservation"),
    )

    def __repr__(self) -> str:
        return (
            f"<Participation(id={self.id}, user={self.user_id}, "
            f"reservation={self.reservation_id}, confirmed={self.confirmed})>"
        )
