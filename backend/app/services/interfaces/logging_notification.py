"""
Log-only notification gateway.
Used when push credentials are not configured (local development, CI).
"""

from typing import Optional

from app.core.logging import get_logger
from app.services.interfaces.notification import NotificationGateway

logger = get_logger(__name__)


class LoggingNotificationGateway(NotificationGateway):
    """No delivery - records what would have been sent."""

    async def send_multicast(
        self,
        tokens: list[str],
        title: str,
        body: str,
        image_url: Optional[str] = None,
    ) -> None:
        logger.info("push_multicast_skipped", recipients=len(tokens), title=title)

    async def send_topic(
        self,
        topic: str,
        title: str,
        body: str,
        image_url: Optional[str] = None,
    ) -> None:
        logger.info("push_topic_skipped", topic=topic, title=title)
