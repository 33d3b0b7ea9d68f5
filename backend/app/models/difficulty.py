from sqlalchemy import Column, Integer, String

from app.db.base import Base, TimestampMixin


class Difficulty(Base, TimestampMixin):
    __tablename__ = "difficulties"

    id = Column(Integer, primary_key=True, index=True)
    description = Column(String(255), nullable=False)
    difficulty_rate = Column(Integer, nullable=False)
