"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .fcm_client import FcmNotificationGateway
from .bgg_client import BggGameLookup

__all__ = ['FcmNotificationGateway', 'BggGameLookup']
