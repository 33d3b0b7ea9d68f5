"""
Endpoints for users joining, confirming and leaving reservations.
Reserve ids are taken as raw strings; the service rejects non-numeric ones.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.participation import (
    ParticipationCreate,
    ParticipationResponse,
    UserReservationResponse,
)
from app.schemas.reservation import ReservationResponse
from app.services.cache_service import invalidate_shop_events_cache
from app.services.gateway_factory import get_notification_gateway
from app.services.interfaces.notification import NotificationGateway
from app.services.participation_service import (
    add_user_to_reserve,
    confirm_reserve_for_user,
    delete_reserve_from_user,
    find_reserve_by_id,
    find_reserve_from_user,
    find_reserves_from_user,
)

router = APIRouter(prefix="/users", tags=["Participations"])


@router.get("/reserves/{reserve_id}", response_model=ReservationResponse)
async def get_reserve_with_participants(
    reserve_id: str,
    db: AsyncSession = Depends(get_db),
):
    return await find_reserve_by_id(db, reserve_id)


@router.post(
    "/{user_id}/reserves/{reserve_id}",
    response_model=ParticipationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def join_reserve(
    user_id: str,
    reserve_id: str,
    participation_data: Optional[ParticipationCreate] = None,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationGateway = Depends(get_notification_gateway),
):
    """
    Add the user to a reservation.
    Players already in it are notified; joining twice or joining a full
    reservation returns 409.
    """
    confirmed = participation_data.confirmed if participation_data else False
    participation = await add_user_to_reserve(db, user_id, reserve_id, confirmed, notifier=notifier)
    await invalidate_shop_events_cache()
    return participation


@router.get("/{user_id}/reserves", response_model=list[UserReservationResponse])
async def list_user_reserves(
    user_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Reservations of the user that have not ended yet, soonest first."""
    return await find_reserves_from_user(db, user_id)


@router.get("/{user_id}/reserves/{reserve_id}", response_model=UserReservationResponse)
async def get_user_reserve(
    user_id: str,
    reserve_id: str,
    db: AsyncSession = Depends(get_db),
):
    return await find_reserve_from_user(db, user_id, reserve_id)


@router.put("/{user_id}/reserves/{reserve_id}/confirm", response_model=ParticipationResponse)
async def confirm_user_reserve(
    user_id: str,
    reserve_id: str,
    db: AsyncSession = Depends(get_db),
):
    return await confirm_reserve_for_user(db, user_id, reserve_id)


@router.delete("/{user_id}/reserves/{reserve_id}", status_code=status.HTTP_204_NO_CONTENT)
async def leave_reserve(
    user_id: str,
    reserve_id: str,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationGateway = Depends(get_notification_gateway),
):
    """Remove the user from a reservation; the remaining players are notified."""
    await delete_reserve_from_user(db, user_id, reserve_id, notifier=notifier)
    await invalidate_shop_events_cache()
