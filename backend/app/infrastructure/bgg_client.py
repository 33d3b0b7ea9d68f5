"""
Client for the board game database proxy (BoardGameGeek).
Only used when a reservation names a game by external id that the local
catalog does not have yet.
"""

from typing import Optional

import httpx

from app.core.config import Settings
from app.core.logging import get_logger
from app.schemas.catalog import ExternalGame
from app.services.interfaces.game_lookup import GameLookupGateway

logger = get_logger(__name__)


class BggGameLookup(GameLookupGateway):

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._base_url = settings.GAME_LOOKUP_URL.rstrip("/")
        self._timeout = settings.GAME_LOOKUP_TIMEOUT
        self._transport = transport

    async def fetch_game(self, external_id: int) -> Optional[ExternalGame]:
        url = f"{self._base_url}/boardgame/{external_id}"
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.get(url, headers={"accept": "application/json"})

        logger.info("bgg_lookup", external_id=external_id, status_code=response.status_code)
        if response.status_code == 404:
            return None
        response.raise_for_status()

        data = response.json() or {}
        item = data.get("item", data)
        name = item.get("name")
        if not name:
            return None
        categories = item.get("categories") or []
        return ExternalGame(
            name=name,
            description=item.get("description") or "",
            category_name=categories[0] if categories else item.get("category"),
        )
