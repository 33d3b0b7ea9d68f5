"""
Push notification gateway interface.
The reservation core only needs "send to these devices" and "send to a topic".
"""

from abc import ABC, abstractmethod
from typing import Optional


class NotificationGateway(ABC):
    """
    Interface for push delivery.

    Implementations:
    - FcmNotificationGateway: Firebase Cloud Messaging HTTP v1
    - LoggingNotificationGateway: no delivery, log only (push not configured)
    """

    @abstractmethod
    async def send_multicast(
        self,
        tokens: list[str],
        title: str,
        body: str,
        image_url: Optional[str] = None,
    ) -> None:
        """
        Deliver one message to every device token.

        Args:
            tokens: Device registration tokens, already deduplicated
            title: Notification title
            body: Notification body
            image_url: Optional image shown with the notification
        """
        pass

    @abstractmethod
    async def send_topic(
        self,
        topic: str,
        title: str,
        body: str,
        image_url: Optional[str] = None,
    ) -> None:
        """Deliver one message to every device subscribed to `topic`."""
        pass
