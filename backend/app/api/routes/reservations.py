"""
Reservation endpoints with Redis caching on the shop-events listing.
"""

from datetime import date

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.db.session import get_db
from app.schemas.reservation import ReservationCreate, ReservationResponse, ReservationUpdate
from app.schemas.user import PlayerResponse
from app.services.cache_service import (
    get_cached_shop_events,
    invalidate_shop_events_cache,
    set_cached_shop_events,
)
from app.services.gateway_factory import get_game_lookup, get_notification_gateway
from app.services.interfaces.game_lookup import GameLookupGateway
from app.services.interfaces.notification import NotificationGateway
from app.services.reservation_service import (
    create_reservation,
    delete_reservation,
    find_all_unique_shop_events,
    get_all_reserves,
    get_all_reserves_by_date,
    get_last_ten_players,
    get_reserve,
    update_reservation,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/reserves", tags=["Reserves"])


@router.post("/{shop_id}", response_model=ReservationResponse, status_code=status.HTTP_201_CREATED)
async def create_reservation_endpoint(
    shop_id: int,
    reservation_data: ReservationCreate,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationGateway = Depends(get_notification_gateway),
    game_lookup: GameLookupGateway = Depends(get_game_lookup),
):
    """
    Book a reservation. Shop events are announced to the shop's followers.
    """
    reservation = await create_reservation(
        db, reservation_data, shop_id, notifier=notifier, game_lookup=game_lookup
    )
    await invalidate_shop_events_cache()
    return reservation


@router.put("/{reservation_id}", response_model=ReservationResponse)
async def update_reservation_endpoint(
    reservation_id: int,
    reservation_data: ReservationUpdate,
    db: AsyncSession = Depends(get_db),
    game_lookup: GameLookupGateway = Depends(get_game_lookup),
):
    reservation = await update_reservation(db, reservation_data, reservation_id, game_lookup=game_lookup)
    await invalidate_shop_events_cache()
    return reservation


@router.get("/", response_model=list[ReservationResponse])
async def list_reservations_endpoint(db: AsyncSession = Depends(get_db)):
    return await get_all_reserves(db)


@router.get("/date/{day}/{table_id}", response_model=list[ReservationResponse])
async def list_reservations_by_date_endpoint(
    day: date,
    table_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Reservations of a table on one local calendar day."""
    return await get_all_reserves_by_date(db, day, table_id)


@router.get("/shop_events/{shop_id}", response_model=list[ReservationResponse])
async def list_shop_events_endpoint(
    shop_id: int,
    db: AsyncSession = Depends(get_db),
):
    """
    Upcoming events of a shop, one row per event.
    Results are cached in Redis for 5 minutes.
    """
    cached = await get_cached_shop_events(shop_id)
    if cached:
        logger.info("shop_events_cache_hit", shop_id=shop_id)
        return cached

    reservations = await find_all_unique_shop_events(db, shop_id)
    response_data = [
        ReservationResponse.model_validate(r).model_dump(mode="json") for r in reservations
    ]
    await set_cached_shop_events(shop_id, response_data)
    return response_data


@router.get("/last_ten_players/{user_id}", response_model=list[PlayerResponse])
async def last_ten_players_endpoint(
    user_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Players the user shared their ten most recent reservations with."""
    return await get_last_ten_players(db, user_id)


@router.get("/{reservation_id}", response_model=ReservationResponse)
async def get_reservation_endpoint(
    reservation_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await get_reserve(db, reservation_id)


@router.delete("/{reservation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_reservation_endpoint(
    reservation_id: int,
    db: AsyncSession = Depends(get_db),
):
    await delete_reservation(db, reservation_id)
    await invalidate_shop_events_cache()
