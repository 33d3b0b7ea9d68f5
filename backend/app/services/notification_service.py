"""
Notification fan-out for reservations.

Delivery is best-effort everywhere: a failing gateway is logged and counted,
never propagated, so it cannot undo or fail the mutation that triggered it.
Callers send only after their changes are committed.
"""

from typing import Iterable, Optional

from app.core.clock import format_hour, format_long_date
from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_notification
from app.models.participation import Participation
from app.models.reservation import Reservation
from app.models.shop import Shop
from app.services.interfaces.notification import NotificationGateway

logger = get_logger(__name__)

KIND_NEW_EVENT = "new_event"
KIND_NEW_PARTICIPANT = "new_participant"
KIND_PARTICIPANT_LEFT = "participant_left"
KIND_UPCOMING = "upcoming"


def collect_tokens(
    participations: Iterable[Participation],
    exclude_user_id: Optional[int] = None,
    exclude_token: Optional[str] = None,
) -> list[str]:
    """
    Deduplicated device tokens of the participants, in first-seen order.
    Blank tokens, the excluded user and the excluded token value are dropped.
    """
    tokens: list[str] = []
    seen: set[str] = set()
    for participation in participations:
        user = participation.user
        if user is None or user.id == exclude_user_id:
            continue
        token = (user.token_notification or "").strip()
        if not token or token == exclude_token or token in seen:
            continue
        seen.add(token)
        tokens.append(token)
    return tokens


def logo_url(shop: Optional[Shop]) -> Optional[str]:
    if shop is None or not shop.logo:
        return None
    return f"{get_settings().FILES_BASE_URL.rstrip('/')}/{shop.logo}"


async def send_multicast_best_effort(
    gateway: NotificationGateway,
    kind: str,
    tokens: list[str],
    title: str,
    body: str,
    image_url: Optional[str] = None,
) -> bool:
    if not tokens:
        return False
    try:
        await gateway.send_multicast(tokens, title, body, image_url)
    except Exception as exc:
        record_notification(kind, sent=False)
        logger.error("notification_failed", kind=kind, recipients=len(tokens), error=str(exc))
        return False
    record_notification(kind, sent=True)
    logger.info("notification_sent", kind=kind, recipients=len(tokens))
    return True


async def send_topic_best_effort(
    gateway: NotificationGateway,
    kind: str,
    topic: str,
    title: str,
    body: str,
    image_url: Optional[str] = None,
) -> bool:
    try:
        await gateway.send_topic(topic, title, body, image_url)
    except Exception as exc:
        record_notification(kind, sent=False)
        logger.error("notification_failed", kind=kind, topic=topic, error=str(exc))
        return False
    record_notification(kind, sent=True)
    logger.info("notification_sent", kind=kind, topic=topic)
    return True


def _shop_of(reservation: Reservation) -> Optional[Shop]:
    return reservation.table.shop if reservation.table is not None else None


def _shop_name(reservation: Reservation) -> str:
    shop = _shop_of(reservation)
    return shop.name if shop is not None else "the shop"


def _game_name(reservation: Reservation) -> str:
    return reservation.game.name if reservation.game is not None else "a game"


async def notify_new_event(gateway: NotificationGateway, reservation: Reservation, shop: Shop) -> bool:
    return await send_topic_best_effort(
        gateway,
        KIND_NEW_EVENT,
        shop.topic,
        f"New event at {shop.name}",
        f"{_game_name(reservation)} on {format_long_date(reservation.hour_start)}. Join now!",
        logo_url(shop),
    )


async def notify_participant_joined(
    gateway: NotificationGateway,
    tokens: list[str],
    reservation: Reservation,
    player_name: str,
) -> bool:
    return await send_multicast_best_effort(
        gateway,
        KIND_NEW_PARTICIPANT,
        tokens,
        "New player in your reservation",
        f"{player_name} joined the reservation on {format_long_date(reservation.hour_start)} "
        f"at {_shop_name(reservation)}.",
    )


async def notify_participant_left(
    gateway: NotificationGateway,
    tokens: list[str],
    reservation: Reservation,
    player_name: str,
) -> bool:
    return await send_multicast_best_effort(
        gateway,
        KIND_PARTICIPANT_LEFT,
        tokens,
        "A player left your reservation",
        f"{player_name} left the reservation on {format_long_date(reservation.hour_start)} "
        f"at {_shop_name(reservation)}.",
    )


async def notify_upcoming(gateway: NotificationGateway, tokens: list[str], reservation: Reservation) -> bool:
    shop_name = _shop_name(reservation)
    return await send_multicast_best_effort(
        gateway,
        KIND_UPCOMING,
        tokens,
        f"Upcoming reservation at {shop_name}",
        f"You have a reservation today at {format_hour(reservation.hour_start)} "
        f"to play {_game_name(reservation)} at {shop_name}.",
        logo_url(_shop_of(reservation)),
    )
