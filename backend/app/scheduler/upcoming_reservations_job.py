"""
Upcoming-reservation notifier.

Every UPCOMING_INTERVAL_MINUTES during UPCOMING_ACTIVE_HOURS (local time) the job
scans reservations starting in [now + lead, now + lead + window) and sends each
one a single "your reservation is coming up" push.

AT-MOST-ONCE DELIVERY
=====================

The window is wider than the interval, so consecutive runs overlap and a
reservation is seen by more than one run. It is claimed with a conditional
update (`confirmation_notification` false -> true) that is committed before
the push goes out. A run that loses the claim, or finds the flag already set,
skips the reservation. A crash between commit and send loses that push; it
never duplicates it.
"""

import time
import uuid
from datetime import datetime, timedelta
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import as_utc, utcnow
from app.core.config import Settings, get_settings
from app.core.logging import bind_job_context, get_logger
from app.core.metrics import (
    upcoming_notifier_latency,
    upcoming_notifier_reservations,
    upcoming_notifier_runs,
)
from app.db.session import SessionLocal
from app.models import Reservation
from app.services.cache_service import invalidate_shop_events_cache
from app.services.gateway_factory import get_notification_gateway
from app.services.interfaces.notification import NotificationGateway
from app.services.notification_service import collect_tokens, notify_upcoming
from app.services.reservation_service import load_reservation

logger = get_logger(__name__)

JOB_ID = "upcoming_reservations"


def notification_window(now: datetime, settings: Settings) -> tuple[datetime, datetime]:
    start = now + timedelta(minutes=settings.UPCOMING_LEAD_MINUTES)
    return start, start + timedelta(minutes=settings.UPCOMING_WINDOW_MINUTES)


async def _claim(db: AsyncSession, reservation_id: int) -> bool:
    result = await db.execute(
        update(Reservation)
        .where(
            Reservation.id == reservation_id,
            Reservation.confirmation_notification.is_(False),
        )
        .values(confirmation_notification=True)
    )
    await db.commit()
    return result.rowcount == 1


async def notify_upcoming_reservations(
    db: AsyncSession,
    notifier: NotificationGateway,
    now: Optional[datetime] = None,
) -> int:
    """
    Flag and notify every reservation in the current window.
    Returns how many reservations this run flagged.
    """
    settings = get_settings()
    now = as_utc(now) if now is not None else utcnow()
    window_start, window_end = notification_window(now, settings)

    result = await db.execute(
        select(Reservation.id, Reservation.confirmation_notification)
        .where(Reservation.hour_start >= window_start, Reservation.hour_start < window_end)
        .order_by(Reservation.hour_start.asc(), Reservation.id.asc())
    )
    candidates = result.all()

    flagged = 0
    for reservation_id, already_notified in candidates:
        if already_notified:
            upcoming_notifier_reservations.labels(result="skipped").inc()
            continue

        try:
            if not await _claim(db, reservation_id):
                upcoming_notifier_reservations.labels(result="skipped").inc()
                continue
            reservation = await load_reservation(db, reservation_id)
        except Exception as exc:
            await db.rollback()
            upcoming_notifier_reservations.labels(result="error").inc()
            logger.exception(
                "upcoming_reservation_failed",
                reservation_id=reservation_id,
                error=str(exc),
            )
            continue

        flagged += 1
        upcoming_notifier_reservations.labels(result="flagged").inc()
        if reservation is None:
            continue

        tokens = collect_tokens(reservation.participations)
        await notify_upcoming(notifier, tokens, reservation)
        logger.info(
            "upcoming_reservation_flagged",
            reservation_id=reservation_id,
            recipients=len(tokens),
        )

    logger.info(
        "upcoming_notifier_scan",
        window_start=window_start.isoformat(),
        window_end=window_end.isoformat(),
        candidates=len(candidates),
        flagged=flagged,
    )
    return flagged


async def run_upcoming_reservations_job() -> None:
    """Scheduler entry point: one run with its own session and log context."""
    bind_job_context(JOB_ID, str(uuid.uuid4())[:8])
    start_time = time.perf_counter()

    try:
        async with SessionLocal() as db:
            flagged = await notify_upcoming_reservations(db, get_notification_gateway())
    except Exception as exc:
        upcoming_notifier_runs.labels(result="error").inc()
        logger.exception("upcoming_notifier_failed", error=str(exc))
        return
    finally:
        upcoming_notifier_latency.observe(time.perf_counter() - start_time)

    if flagged:
        # Cached listings carry the notification flag
        await invalidate_shop_events_cache()

    upcoming_notifier_runs.labels(result="ok").inc()
    duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
    logger.info("upcoming_notifier_run", flagged=flagged, duration_ms=duration_ms)


def build_scheduler(settings: Settings) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(timezone=settings.TIMEZONE)
    scheduler.add_job(
        run_upcoming_reservations_job,
        CronTrigger(
            minute=f"*/{settings.UPCOMING_INTERVAL_MINUTES}",
            hour=settings.UPCOMING_ACTIVE_HOURS,
            timezone=settings.TIMEZONE,
        ),
        id=JOB_ID,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    return scheduler
