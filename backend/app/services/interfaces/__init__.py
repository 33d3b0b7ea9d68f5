"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .notification import NotificationGateway
from .game_lookup import GameLookupGateway
from .logging_notification import LoggingNotificationGateway

__all__ = ['NotificationGateway', 'GameLookupGateway', 'LoggingNotificationGateway']
