"""
Game catalog entries referenced by reservations.

`bgg_id` links a local game to the external board game database so a
reservation can name a game that is not in the catalog yet.
"""

from sqlalchemy import Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin


class GameCategory(Base, TimestampMixin):
    __tablename__ = "game_categories"

    id = Column(Integer, primary_key=True, index=True)
    description = Column(String(255), unique=True, nullable=False)

    games = relationship("Game", back_populates="category", lazy="raise")


class Game(Base, TimestampMixin):
    __tablename__ = "games"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(500), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    bgg_id = Column(Integer, unique=True, nullable=True)
    category_id = Column(Integer, ForeignKey("game_categories.id"), nullable=True)

    category = relationship("GameCategory", back_populates="games", lazy="raise")

    def __repr__(self) -> str:
        return f"<Game(id={self.id}, name={self.name})>"
