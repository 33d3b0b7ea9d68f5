"""
Gateway factory.
Configures which push and game-lookup implementations the services use.
"""

from typing import Optional

from app.core.config import get_settings
from app.infrastructure.bgg_client import BggGameLookup
from app.infrastructure.fcm_client import FcmNotificationGateway
from app.services.interfaces.game_lookup import GameLookupGateway
from app.services.interfaces.logging_notification import LoggingNotificationGateway
from app.services.interfaces.notification import NotificationGateway


def build_notification_gateway() -> NotificationGateway:
    """
    FCM when credentials are configured, log-only otherwise.
    Toggled with FCM_ENABLED.
    """
    settings = get_settings()
    if settings.fcm_configured:
        return FcmNotificationGateway(settings)
    return LoggingNotificationGateway()


# Singleton instances
_notification_gateway: Optional[NotificationGateway] = None
_game_lookup: Optional[GameLookupGateway] = None


def get_notification_gateway() -> NotificationGateway:
    global _notification_gateway
    if _notification_gateway is None:
        _notification_gateway = build_notification_gateway()
    return _notification_gateway


def get_game_lookup() -> GameLookupGateway:
    global _game_lookup
    if _game_lookup is None:
        _game_lookup = BggGameLookup(get_settings())
    return _game_lookup
