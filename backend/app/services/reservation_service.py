"""
Reservation service: booking, updating and querying reservations.

REFERENCE RESOLUTION
====================

A reservation points to an optional difficulty, game and table. Each id given
by the caller must resolve, otherwise the whole operation fails with NotFound
and nothing is written.

Games are resolved in order:
  1. local id (`game_id`)
  2. local name fragment (`game_name`, case-insensitive substring)
  3. local external id (`bgg_id`)
  4. the external game database by `bgg_id`; the game (and its category, when
     missing) is imported into the catalog

SHOP EVENTS
===========

A shop event is a reservation the shop publishes for its followers. Occurrences
of the same event share `event_id = "{game_id}-{table_id}-{dd/mm/yyyy}"`, built
from the local calendar date of the start time, so the listing of upcoming
events returns one row per group. Creating one pushes a topic notification to
the shop's followers after the reservation is committed.
"""

from datetime import date, datetime
from typing import Optional, Union

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.clock import as_utc, local_day_bounds, to_local, utcnow
from app.core.errors import BadRequestError, NoContentError, NotFoundError, service_operation
from app.core.logging import get_logger
from app.core.metrics import record_game_lookup, record_reservation_operation
from app.models import Difficulty, Game, GameCategory, Participation, Reservation, Shop, Table, User
from app.schemas.reservation import ReservationCreate, ReservationUpdate
from app.services.interfaces.game_lookup import GameLookupGateway
from app.services.interfaces.notification import NotificationGateway
from app.services.notification_service import notify_new_event

logger = get_logger(__name__)

LAST_PLAYERS_RESERVATIONS = 10

# Everything a reservation response needs, loaded up front
RESERVATION_RELATIONS = (
    selectinload(Reservation.difficulty),
    selectinload(Reservation.game),
    selectinload(Reservation.table).selectinload(Table.shop),
    selectinload(Reservation.participations).selectinload(Participation.user),
)

_SCALAR_FIELDS = {"total_places", "hour_start", "hour_end", "description", "required_material"}


def build_event_id(game_id: int, table_id: int, hour_start: datetime) -> str:
    return f"{game_id}-{table_id}-{to_local(hour_start).strftime('%d/%m/%Y')}"


async def load_reservation(db: AsyncSession, reservation_id: int) -> Optional[Reservation]:
    result = await db.execute(
        select(Reservation)
        .where(Reservation.id == reservation_id)
        .options(*RESERVATION_RELATIONS)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _resolve_difficulty(db: AsyncSession, difficulty_id: Optional[int]) -> Optional[Difficulty]:
    if difficulty_id is None:
        return None
    difficulty = await db.get(Difficulty, difficulty_id)
    if difficulty is None:
        raise NotFoundError("Difficulty not found")
    return difficulty


async def _resolve_table(db: AsyncSession, table_id: Optional[int]) -> Optional[Table]:
    if table_id is None:
        return None
    table = await db.get(Table, table_id)
    if table is None:
        raise NotFoundError("Table not found")
    return table


async def _import_external_game(
    db: AsyncSession,
    game_lookup: GameLookupGateway,
    bgg_id: int,
) -> Optional[Game]:
    external = await game_lookup.fetch_game(bgg_id)
    record_game_lookup(found=external is not None)
    if external is None:
        return None

    category = None
    if external.category_name:
        result = await db.execute(
            select(GameCategory).where(GameCategory.description == external.category_name)
        )
        category = result.scalar_one_or_none()
        if category is None:
            category = GameCategory(description=external.category_name)
            db.add(category)
            await db.flush()

    game = Game(
        name=external.name,
        description=external.description,
        bgg_id=bgg_id,
        category_id=category.id if category else None,
    )
    db.add(game)
    await db.flush()
    logger.info("game_imported", game_id=game.id, bgg_id=bgg_id, name=game.name)
    return game


async def _resolve_game(
    db: AsyncSession,
    data: Union[ReservationCreate, ReservationUpdate],
    game_lookup: GameLookupGateway,
) -> Game:
    if data.game_id is not None:
        game = await db.get(Game, data.game_id)
        if game is None:
            raise NotFoundError("Game not found")
        return game

    game = None
    if data.game_name:
        result = await db.execute(
            select(Game)
            .where(Game.name.ilike(f"%{data.game_name}%"))
            .order_by(Game.id.asc())
            .limit(1)
        )
        game = result.scalar_one_or_none()

    if game is None and data.bgg_id is not None:
        result = await db.execute(select(Game).where(Game.bgg_id == data.bgg_id))
        game = result.scalar_one_or_none()
        if game is None:
            game = await _import_external_game(db, game_lookup, data.bgg_id)

    if game is None:
        raise NotFoundError("Game not found")
    return game


@service_operation("create_reservation")
async def create_reservation(
    db: AsyncSession,
    data: ReservationCreate,
    shop_id: int,
    *,
    notifier: NotificationGateway,
    game_lookup: GameLookupGateway,
) -> Reservation:
    """
    Book a reservation, resolving its difficulty, game and table.
    Shop events also get their event id and a topic notification.
    """
    difficulty = await _resolve_difficulty(db, data.difficulty_id)
    game = await _resolve_game(db, data, game_lookup) if data.wants_game else None
    table = await _resolve_table(db, data.table_id)

    shop = None
    event_id = None
    if data.shop_event:
        shop = await db.get(Shop, shop_id)
        if shop is None:
            raise NotFoundError("Shop not found")
        if game is None or table is None:
            raise BadRequestError("A shop event needs a game and a table")
        event_id = build_event_id(game.id, table.id, data.hour_start)

    reservation = Reservation(
        total_places=data.total_places,
        hour_start=data.hour_start,
        hour_end=data.hour_end,
        description=data.description,
        required_material=data.required_material,
        shop_event=data.shop_event,
        event_id=event_id,
        confirmation_notification=False,
        difficulty_id=difficulty.id if difficulty else None,
        game_id=game.id if game else None,
        table_id=table.id if table else None,
    )
    db.add(reservation)
    await db.commit()

    record_reservation_operation("create")
    logger.info(
        "reservation_created",
        reservation_id=reservation.id,
        shop_id=shop_id,
        shop_event=data.shop_event,
        event_id=event_id,
    )

    reservation = await load_reservation(db, reservation.id)
    if shop is not None:
        await notify_new_event(notifier, reservation, shop)
    return reservation


@service_operation("update_reservation")
async def update_reservation(
    db: AsyncSession,
    data: ReservationUpdate,
    reservation_id: int,
    *,
    game_lookup: GameLookupGateway,
) -> Reservation:
    """Swap references and merge scalar fields. Unset fields are left alone."""
    reservation = await load_reservation(db, reservation_id)
    if reservation is None:
        raise NotFoundError("Reserve not found")

    if data.difficulty_id is not None:
        reservation.difficulty_id = (await _resolve_difficulty(db, data.difficulty_id)).id
    if data.wants_game:
        reservation.game_id = (await _resolve_game(db, data, game_lookup)).id
    if data.table_id is not None:
        reservation.table_id = (await _resolve_table(db, data.table_id)).id

    changes = data.model_dump(exclude_unset=True, include=_SCALAR_FIELDS)
    for field, value in changes.items():
        if value is not None:
            setattr(reservation, field, value)

    if as_utc(reservation.hour_end) <= as_utc(reservation.hour_start):
        raise BadRequestError("hour_end must be after hour_start")

    # Keep the occurrence in its group when its game, table or day moves
    if reservation.shop_event and reservation.game_id and reservation.table_id:
        reservation.event_id = build_event_id(
            reservation.game_id, reservation.table_id, reservation.hour_start
        )

    await db.commit()
    record_reservation_operation("update")
    logger.info("reservation_updated", reservation_id=reservation_id, fields=sorted(changes))
    return await load_reservation(db, reservation_id)


@service_operation("delete_reservation")
async def delete_reservation(db: AsyncSession, reservation_id: int) -> None:
    await db.execute(delete(Participation).where(Participation.reservation_id == reservation_id))
    result = await db.execute(delete(Reservation).where(Reservation.id == reservation_id))
    if result.rowcount == 0:
        await db.rollback()
        raise NotFoundError("Reserve not found")
    await db.commit()
    record_reservation_operation("delete")
    logger.info("reservation_deleted", reservation_id=reservation_id)


@service_operation("get_all_reserves")
async def get_all_reserves(db: AsyncSession) -> list[Reservation]:
    result = await db.execute(
        select(Reservation).options(*RESERVATION_RELATIONS).order_by(Reservation.hour_start.asc())
    )
    reservations = list(result.scalars().all())
    if not reservations:
        raise NoContentError()
    return reservations


@service_operation("get_reserve")
async def get_reserve(db: AsyncSession, reservation_id: int) -> Reservation:
    reservation = await load_reservation(db, reservation_id)
    if reservation is None:
        raise NotFoundError("Reserve not found")
    return reservation


@service_operation("get_all_reserves_by_date")
async def get_all_reserves_by_date(db: AsyncSession, day: date, table_id: int) -> list[Reservation]:
    """Reservations of one table starting within the 24 hours of a local day."""
    start, end = local_day_bounds(day)
    result = await db.execute(
        select(Reservation)
        .where(
            Reservation.table_id == table_id,
            Reservation.hour_start >= start,
            Reservation.hour_start < end,
        )
        .options(*RESERVATION_RELATIONS)
        .order_by(Reservation.hour_start.asc())
    )
    reservations = list(result.scalars().all())
    if not reservations:
        raise NoContentError()
    return reservations


@service_operation("find_all_unique_shop_events")
async def find_all_unique_shop_events(db: AsyncSession, shop_id: int) -> list[Reservation]:
    """
    Upcoming shop events of a shop, one row per event group.
    The representative of a group is its earliest upcoming occurrence.
    """
    shop = await db.get(Shop, shop_id)
    if shop is None:
        raise NotFoundError("Shop not found")

    ranked = (
        select(
            Reservation.id.label("id"),
            func.row_number()
            .over(
                partition_by=Reservation.event_id,
                order_by=(Reservation.hour_start.asc(), Reservation.id.asc()),
            )
            .label("position"),
        )
        .join(Table, Reservation.table_id == Table.id)
        .join(Game, Reservation.game_id == Game.id)
        .where(
            Reservation.shop_event.is_(True),
            Table.shop_id == shop_id,
            Reservation.hour_start > utcnow(),
        )
        .subquery()
    )
    result = await db.execute(
        select(Reservation)
        .where(Reservation.id.in_(select(ranked.c.id).where(ranked.c.position == 1)))
        .options(*RESERVATION_RELATIONS)
        .order_by(Reservation.hour_start.asc())
    )
    reservations = list(result.scalars().all())
    if not reservations:
        raise NoContentError()
    return reservations


@service_operation("get_last_ten_players")
async def get_last_ten_players(db: AsyncSession, user_id: str) -> list[User]:
    """
    Other users sharing the user's most recent reservations.
    An unknown user simply has no co-players.
    """
    recent = (
        select(Participation.reservation_id)
        .join(Reservation, Participation.reservation_id == Reservation.id)
        .join(User, Participation.user_id == User.id)
        .where(User.external_id == user_id)
        .order_by(Reservation.hour_start.desc())
        .limit(LAST_PLAYERS_RESERVATIONS)
    )
    result = await db.execute(
        select(User)
        .join(Participation, Participation.user_id == User.id)
        .where(
            Participation.reservation_id.in_(recent.scalar_subquery()),
            User.external_id != user_id,
        )
        .distinct()
        .order_by(User.name.asc(), User.id.asc())
    )
    return list(result.scalars().all())
