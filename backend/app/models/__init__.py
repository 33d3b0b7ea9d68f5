from app.models.user import User
from app.models.shop import Shop, Table
from app.models.difficulty import Difficulty
from app.models.game import Game, GameCategory
from app.models.reservation import Reservation
from app.models.participation import Participation

__all__ = [
    "User", "Shop", "Table", "Difficulty", "Game", "GameCategory",
    "Reservation", "Participation",
]
