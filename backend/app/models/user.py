"""
User model. Identity, display name and push token are all the core needs.
"""

from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    # Stable identifier issued by the identity provider; the id callers use
    external_id = Column(String(128), unique=True, index=True, nullable=False)
    username = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)
    token_notification = Column(String(512), nullable=True)

    participations = relationship("Participation", back_populates="user", lazy="raise")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, external_id={self.external_id})>"
