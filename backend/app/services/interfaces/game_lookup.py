"""
External game database interface.
"""

from abc import ABC, abstractmethod
from typing import Optional

from app.schemas.catalog import ExternalGame


class GameLookupGateway(ABC):
    """Resolves games that the local catalog does not know yet."""

    @abstractmethod
    async def fetch_game(self, external_id: int) -> Optional[ExternalGame]:
        """
        Fetch game metadata by external id.

        Returns:
            The game's name, description and category, or None if unknown
        """
        pass
