"""
Participation service: users joining, confirming and leaving reservations.

User ids are the external identity strings; reserve ids arrive as raw path
strings and are parsed before any store access.

Joining notifies the participants already in the reservation; leaving notifies
the ones that remain. Both notifications go out after commit, best-effort.
"""

from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from app.core.clock import utcnow
from app.core.errors import (
    ConflictError,
    NoContentError,
    NotFoundError,
    PreconditionFailedError,
    parse_id,
    service_operation,
)
from app.core.logging import get_logger
from app.core.metrics import record_participation_change
from app.models import Participation, Reservation, User
from app.services.interfaces.notification import NotificationGateway
from app.services.notification_service import (
    collect_tokens,
    notify_participant_joined,
    notify_participant_left,
)
from app.services.reservation_service import RESERVATION_RELATIONS, load_reservation

logger = get_logger(__name__)

NOT_LINKED = "The reserve with the given id is not associated to the user"

PARTICIPATION_RELATIONS = (
    selectinload(Participation.user),
    selectinload(Participation.reservation).options(*RESERVATION_RELATIONS),
)


async def _get_user(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(select(User).where(User.external_id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user


async def _attach_reservation(db: AsyncSession, participation: Participation) -> Participation:
    # The reload repopulates every participation of the reservation, this one
    # included, so the reservation is attached afterwards
    reservation = await load_reservation(db, participation.reservation_id)
    set_committed_value(participation, "reservation", reservation)
    return participation


async def _find_link(db: AsyncSession, user_id: str, reservation_id: int) -> Optional[Participation]:
    result = await db.execute(
        select(Participation)
        .join(User, Participation.user_id == User.id)
        .where(User.external_id == user_id, Participation.reservation_id == reservation_id)
        .options(selectinload(Participation.user))
    )
    participation = result.scalar_one_or_none()
    if participation is None:
        return None
    return await _attach_reservation(db, participation)


async def _load_participation(db: AsyncSession, participation_id: int) -> Participation:
    result = await db.execute(
        select(Participation)
        .where(Participation.id == participation_id)
        .options(selectinload(Participation.user))
    )
    return await _attach_reservation(db, result.scalar_one())


@service_operation("add_user_to_reserve")
async def add_user_to_reserve(
    db: AsyncSession,
    user_id: str,
    reserve_id: str,
    confirmed: bool = False,
    *,
    notifier: NotificationGateway,
) -> Participation:
    """
    Join a user to a reservation and tell the players already in it.
    Nothing is written when the user or reservation is missing, the user
    already joined, or the reservation is full.
    """
    reservation_id = parse_id(reserve_id, "reserve")
    user = await _get_user(db, user_id)
    reservation = await load_reservation(db, reservation_id)
    if reservation is None:
        raise NotFoundError(f"Reserve {reservation_id} not found")

    if any(p.user_id == user.id for p in reservation.participations):
        raise ConflictError("User already joined this reserve")
    if len(reservation.participations) >= reservation.total_places:
        raise ConflictError("Reserve is full")

    # Recipients are the players present before this join
    tokens = collect_tokens(reservation.participations, exclude_user_id=user.id)

    participation = Participation(user_id=user.id, reservation_id=reservation.id, confirmed=confirmed)
    db.add(participation)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race against a concurrent join of the same user
        await db.rollback()
        raise ConflictError("User already joined this reserve")

    record_participation_change("join")
    logger.info(
        "participant_added",
        user_id=user_id,
        reservation_id=reservation_id,
        confirmed=confirmed,
        recipients=len(tokens),
    )

    participation = await _load_participation(db, participation.id)
    await notify_participant_joined(notifier, tokens, reservation, user.name)
    return participation


@service_operation("confirm_reserve_for_user")
async def confirm_reserve_for_user(db: AsyncSession, user_id: str, reserve_id: str) -> Participation:
    reservation_id = parse_id(reserve_id, "reserve")
    participation = await _find_link(db, user_id, reservation_id)
    if participation is None:
        raise PreconditionFailedError(NOT_LINKED)

    participation.confirmed = True
    await db.commit()
    record_participation_change("confirm")
    logger.info("participant_confirmed", user_id=user_id, reservation_id=reservation_id)
    return participation


@service_operation("find_reserve_by_id")
async def find_reserve_by_id(db: AsyncSession, reserve_id: str) -> Reservation:
    reservation_id = parse_id(reserve_id, "reserve")
    reservation = await load_reservation(db, reservation_id)
    if reservation is None:
        raise NotFoundError(f"Reserve {reservation_id} not found")
    return reservation


@service_operation("find_reserve_from_user")
async def find_reserve_from_user(db: AsyncSession, user_id: str, reserve_id: str) -> Participation:
    reservation_id = parse_id(reserve_id, "reserve")
    participation = await _find_link(db, user_id, reservation_id)
    if participation is None:
        raise PreconditionFailedError(NOT_LINKED)
    return participation


@service_operation("find_reserves_from_user")
async def find_reserves_from_user(db: AsyncSession, user_id: str) -> list[Participation]:
    """The user's participations in reservations that have not ended yet, soonest first."""
    user = await _get_user(db, user_id)
    result = await db.execute(
        select(Participation)
        .join(Reservation, Participation.reservation_id == Reservation.id)
        .where(Participation.user_id == user.id, Reservation.hour_end > utcnow())
        .options(*PARTICIPATION_RELATIONS)
        .order_by(Reservation.hour_start.asc(), Reservation.id.asc())
    )
    participations = list(result.scalars().all())
    if not participations:
        raise NoContentError()
    return participations


@service_operation("delete_reserve_from_user")
async def delete_reserve_from_user(
    db: AsyncSession,
    user_id: str,
    reserve_id: str,
    *,
    notifier: NotificationGateway,
) -> None:
    """
    Remove a user from a reservation and tell the remaining players.
    Neither the departing user nor anyone sharing their device token is notified.
    """
    reservation_id = parse_id(reserve_id, "reserve")
    participation = await _find_link(db, user_id, reservation_id)
    if participation is None:
        raise PreconditionFailedError(NOT_LINKED)

    reservation = participation.reservation
    if reservation is None:
        raise NotFoundError(f"Reserve {reservation_id} not found")

    leaving = participation.user
    tokens = collect_tokens(
        reservation.participations,
        exclude_user_id=leaving.id,
        exclude_token=leaving.token_notification,
    )

    await db.execute(delete(Participation).where(Participation.id == participation.id))
    await db.commit()

    record_participation_change("leave")
    logger.info(
        "participant_removed",
        user_id=user_id,
        reservation_id=reservation_id,
        recipients=len(tokens),
    )
    await notify_participant_left(notifier, tokens, reservation, leaving.name)
