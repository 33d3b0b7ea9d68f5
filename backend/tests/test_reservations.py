"""
Tests for reservation endpoints: booking, shop events, listings and co-players.
"""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from app.core.clock import format_long_date
from app.models import Game, GameCategory, Participation, Reservation
from app.services.reservation_service import build_event_id


def test_event_id_uses_local_calendar_date():
    """23:30 UTC on the 14th is already the 15th in Madrid."""
    start = datetime(2030, 3, 14, 23, 30, tzinfo=timezone.utc)
    assert build_event_id(3, 4, start) == "3-4-15/03/2030"


def test_event_id_treats_naive_store_values_as_utc():
    assert build_event_id(3, 4, datetime(2030, 3, 14, 22, 30)) == "3-4-14/03/2030"


def test_long_date_uses_shop_time_and_fixed_month_names():
    """Late on 31 January UTC is already 1 February in Madrid."""
    assert format_long_date(datetime(2030, 1, 31, 23, 30, tzinfo=timezone.utc)) == "1 February 2030"


@pytest.mark.asyncio
async def test_create_reservation(client: AsyncClient, seed, reservation_payload, notifier):
    """Plain reservation: associations resolved, no event id, nobody notified."""
    response = await client.post(f"/api/v1/reserves/{seed.shop.id}", json=reservation_payload())
    assert response.status_code == 201
    data = response.json()
    assert data["game"]["name"] == "Catan"
    assert data["table"]["id"] == seed.table.id
    assert data["table"]["shop"]["name"] == "Dragon's Den"
    assert data["difficulty"]["description"] == "Medium"
    assert data["event_id"] is None
    assert data["confirmation_notification"] is False
    assert data["participations"] == []
    assert notifier.topics == []


@pytest.mark.asyncio
async def test_create_shop_event_notifies_followers(client: AsyncClient, seed, reservation_payload, notifier):
    response = await client.post(
        f"/api/v1/reserves/{seed.shop.id}",
        json=reservation_payload(shop_event=True),
    )
    assert response.status_code == 201
    assert response.json()["event_id"] == f"{seed.game.id}-{seed.table.id}-15/03/2030"

    assert len(notifier.topics) == 1
    message = notifier.topics[0]
    assert message["topic"] == str(seed.shop.id)
    assert "Dragon's Den" in message["title"]
    assert "Catan" in message["body"]
    assert "15 March 2030" in message["body"]
    assert message["image_url"] == "http://files.test/files/dragons-den.png"


@pytest.mark.asyncio
async def test_occurrences_on_same_day_share_event_id(client: AsyncClient, seed, reservation_payload):
    """Same game, table and local day -> same event id; another day -> another one."""
    morning = await client.post(
        f"/api/v1/reserves/{seed.shop.id}",
        json=reservation_payload(
            shop_event=True, hour_start="2030-03-15T10:00:00", hour_end="2030-03-15T12:00:00"
        ),
    )
    evening = await client.post(
        f"/api/v1/reserves/{seed.shop.id}",
        json=reservation_payload(
            shop_event=True, hour_start="2030-03-15T22:00:00", hour_end="2030-03-15T23:30:00"
        ),
    )
    next_day = await client.post(
        f"/api/v1/reserves/{seed.shop.id}",
        json=reservation_payload(
            shop_event=True, hour_start="2030-03-16T10:00:00", hour_end="2030-03-16T12:00:00"
        ),
    )
    assert morning.json()["event_id"] == evening.json()["event_id"]
    assert next_day.json()["event_id"] != morning.json()["event_id"]


@pytest.mark.asyncio
async def test_shop_event_notification_failure_keeps_reservation(
    client: AsyncClient, seed, reservation_payload, notifier, db_session
):
    notifier.fail = True
    response = await client.post(
        f"/api/v1/reserves/{seed.shop.id}",
        json=reservation_payload(shop_event=True),
    )
    assert response.status_code == 201
    count = await db_session.scalar(select(func.count()).select_from(Reservation))
    assert count == 1


@pytest.mark.asyncio
async def test_shop_event_requires_game_and_table(client: AsyncClient, seed, reservation_payload):
    response = await client.post(
        f"/api/v1/reserves/{seed.shop.id}",
        json=reservation_payload(shop_event=True, table_id=None),
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_shop_event_unknown_shop(client: AsyncClient, seed, reservation_payload):
    response = await client.post("/api/v1/reserves/9999", json=reservation_payload(shop_event=True))
    assert response.status_code == 404
    assert response.json()["detail"] == "Shop not found"


@pytest.mark.asyncio
async def test_create_with_unknown_difficulty(client: AsyncClient, seed, reservation_payload, db_session):
    """Unknown difficulty -> 404 and nothing persisted."""
    response = await client.post(
        f"/api/v1/reserves/{seed.shop.id}",
        json=reservation_payload(difficulty_id=9999),
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "Difficulty not found"
    count = await db_session.scalar(select(func.count()).select_from(Reservation))
    assert count == 0


@pytest.mark.asyncio
async def test_create_with_unknown_table(client: AsyncClient, seed, reservation_payload):
    response = await client.post(f"/api/v1/reserves/{seed.shop.id}", json=reservation_payload(table_id=9999))
    assert response.status_code == 404
    assert response.json()["detail"] == "Table not found"


@pytest.mark.asyncio
async def test_create_with_unknown_game_id(client: AsyncClient, seed, reservation_payload):
    response = await client.post(f"/api/v1/reserves/{seed.shop.id}", json=reservation_payload(game_id=9999))
    assert response.status_code == 404
    assert response.json()["detail"] == "Game not found"


@pytest.mark.asyncio
async def test_game_resolved_by_name_fragment(client: AsyncClient, seed, reservation_payload, game_lookup):
    response = await client.post(
        f"/api/v1/reserves/{seed.shop.id}",
        json=reservation_payload(game_id=None, game_name="cat"),
    )
    assert response.status_code == 201
    assert response.json()["game"]["id"] == seed.game.id
    assert game_lookup.calls == []


@pytest.mark.asyncio
async def test_game_resolved_by_local_external_id(client: AsyncClient, seed, reservation_payload, game_lookup):
    response = await client.post(
        f"/api/v1/reserves/{seed.shop.id}",
        json=reservation_payload(game_id=None, bgg_id=13),
    )
    assert response.status_code == 201
    assert response.json()["game"]["id"] == seed.game.id
    assert game_lookup.calls == []


@pytest.mark.asyncio
async def test_game_imported_from_external_database(
    client: AsyncClient, seed, reservation_payload, game_lookup, db_session
):
    """Unknown external id: fetched, stored with a new category, then used."""
    response = await client.post(
        f"/api/v1/reserves/{seed.shop.id}",
        json=reservation_payload(game_id=None, game_name="Gloom", bgg_id=174430),
    )
    assert response.status_code == 201
    game = response.json()["game"]
    assert game["name"] == "Gloomhaven"
    assert game["bgg_id"] == 174430
    assert game_lookup.calls == [174430]

    stored = await db_session.scalar(select(Game).where(Game.bgg_id == 174430))
    category = await db_session.scalar(select(GameCategory).where(GameCategory.description == "Adventure"))
    assert stored is not None
    assert category is not None
    assert stored.category_id == category.id


@pytest.mark.asyncio
async def test_game_unknown_to_external_database(client: AsyncClient, seed, reservation_payload, game_lookup):
    response = await client.post(
        f"/api/v1/reserves/{seed.shop.id}",
        json=reservation_payload(game_id=None, bgg_id=424242),
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "Game not found"
    assert game_lookup.calls == [424242]


@pytest.mark.asyncio
async def test_create_with_inverted_time_range(client: AsyncClient, seed, reservation_payload):
    response = await client.post(
        f"/api/v1/reserves/{seed.shop.id}",
        json=reservation_payload(hour_start="2030-03-15T21:00:00", hour_end="2030-03-15T18:00:00"),
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_update_description_keeps_associations(client: AsyncClient, seed, make_reservation):
    reservation = await make_reservation(participants=("alice",))
    response = await client.put(
        f"/api/v1/reserves/{reservation.id}",
        json={"description": "Catan league, round 2"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["description"] == "Catan league, round 2"
    assert data["game"]["id"] == seed.game.id
    assert data["table"]["id"] == seed.table.id
    assert data["difficulty"]["id"] == seed.difficulty.id
    assert [p["user"]["external_id"] for p in data["participations"]] == ["g-alice"]


@pytest.mark.asyncio
async def test_update_moves_event_to_another_day(client: AsyncClient, seed, reservation_payload):
    created = await client.post(
        f"/api/v1/reserves/{seed.shop.id}",
        json=reservation_payload(shop_event=True),
    )
    reservation_id = created.json()["id"]

    response = await client.put(
        f"/api/v1/reserves/{reservation_id}",
        json={
            "hour_start": "2030-03-20T18:00:00",
            "hour_end": "2030-03-20T21:00:00",
            "table_id": seed.table2.id,
        },
    )
    assert response.status_code == 200
    assert response.json()["event_id"] == f"{seed.game.id}-{seed.table2.id}-20/03/2030"


@pytest.mark.asyncio
async def test_update_rejects_end_before_start(client: AsyncClient, seed, make_reservation):
    start = datetime(2030, 3, 15, 17, 0, tzinfo=timezone.utc)
    reservation = await make_reservation(start=start)
    response = await client.put(
        f"/api/v1/reserves/{reservation.id}",
        json={"hour_end": "2030-03-15T16:00:00Z"},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_update_with_unknown_difficulty(client: AsyncClient, seed, make_reservation):
    reservation = await make_reservation()
    response = await client.put(f"/api/v1/reserves/{reservation.id}", json={"difficulty_id": 9999})
    assert response.status_code == 404
    assert response.json()["detail"] == "Difficulty not found"


@pytest.mark.asyncio
async def test_update_unknown_reservation(client: AsyncClient, seed):
    response = await client.put("/api/v1/reserves/9999", json={"description": "x"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_reservation_removes_participations(
    client: AsyncClient, seed, make_reservation, db_session
):
    reservation = await make_reservation(participants=("alice", "bob"))
    response = await client.delete(f"/api/v1/reserves/{reservation.id}")
    assert response.status_code == 204

    response = await client.get(f"/api/v1/reserves/{reservation.id}")
    assert response.status_code == 404
    remaining = await db_session.scalar(select(func.count()).select_from(Participation))
    assert remaining == 0


@pytest.mark.asyncio
async def test_delete_unknown_reservation(client: AsyncClient, seed):
    response = await client.delete("/api/v1/reserves/9999")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_reservations_empty_is_no_content(client: AsyncClient, seed):
    """Empty listing -> 204, missing single reservation -> 404."""
    response = await client.get("/api/v1/reserves/")
    assert response.status_code == 204
    assert response.content == b""

    response = await client.get("/api/v1/reserves/9999")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_reservations_ordered_by_start(client: AsyncClient, seed, make_reservation):
    later = await make_reservation(start=datetime(2030, 5, 2, 17, 0, tzinfo=timezone.utc))
    sooner = await make_reservation(start=datetime(2030, 5, 1, 17, 0, tzinfo=timezone.utc))
    response = await client.get("/api/v1/reserves/")
    assert response.status_code == 200
    assert [r["id"] for r in response.json()] == [sooner.id, later.id]


@pytest.mark.asyncio
async def test_reservations_by_local_day(client: AsyncClient, seed, make_reservation):
    """The day runs from local midnight (23:00 UTC the day before in March) for 24 hours."""
    just_after_midnight = await make_reservation(start=datetime(2030, 3, 14, 23, 30, tzinfo=timezone.utc))
    evening = await make_reservation(start=datetime(2030, 3, 15, 20, 0, tzinfo=timezone.utc))
    await make_reservation(start=datetime(2030, 3, 14, 22, 30, tzinfo=timezone.utc))  # 14th, local
    await make_reservation(start=datetime(2030, 3, 15, 23, 10, tzinfo=timezone.utc))  # 16th, local
    await make_reservation(start=datetime(2030, 3, 15, 12, 0, tzinfo=timezone.utc), table_id=seed.table2.id)

    response = await client.get(f"/api/v1/reserves/date/2030-03-15/{seed.table.id}")
    assert response.status_code == 200
    assert [r["id"] for r in response.json()] == [just_after_midnight.id, evening.id]

    response = await client.get(f"/api/v1/reserves/date/2030-04-01/{seed.table.id}")
    assert response.status_code == 204


@pytest.mark.asyncio
async def test_shop_events_one_row_per_event(client: AsyncClient, seed, make_reservation):
    """Two occurrences sharing an event id show up once, as the earliest one."""
    first = await make_reservation(
        start=datetime(2030, 3, 15, 9, 0, tzinfo=timezone.utc), shop_event=True, event_id="e-1"
    )
    await make_reservation(
        start=datetime(2030, 3, 15, 15, 0, tzinfo=timezone.utc), shop_event=True, event_id="e-1"
    )
    other = await make_reservation(
        start=datetime(2030, 3, 16, 9, 0, tzinfo=timezone.utc),
        shop_event=True,
        event_id="e-2",
        table_id=seed.table2.id,
    )
    # Not listed: plain reservation, past event, other shop, no game
    await make_reservation(start=datetime(2030, 3, 15, 10, 0, tzinfo=timezone.utc))
    await make_reservation(
        start=datetime.now(timezone.utc) - timedelta(days=2), shop_event=True, event_id="e-old"
    )
    await make_reservation(
        start=datetime(2030, 3, 15, 9, 0, tzinfo=timezone.utc),
        shop_event=True,
        event_id="e-3",
        table_id=seed.other_table.id,
    )
    await make_reservation(
        start=datetime(2030, 3, 17, 9, 0, tzinfo=timezone.utc), shop_event=True, event_id="e-4", game_id=None
    )

    response = await client.get(f"/api/v1/reserves/shop_events/{seed.shop.id}")
    assert response.status_code == 200
    assert [r["id"] for r in response.json()] == [first.id, other.id]


@pytest.mark.asyncio
async def test_shop_events_unknown_shop_and_empty_shop(client: AsyncClient, seed):
    response = await client.get("/api/v1/reserves/shop_events/9999")
    assert response.status_code == 404

    response = await client.get(f"/api/v1/reserves/shop_events/{seed.other_shop.id}")
    assert response.status_code == 204


@pytest.mark.asyncio
async def test_last_ten_players(client: AsyncClient, seed, make_reservation):
    await make_reservation(start=datetime(2030, 1, 1, 17, 0, tzinfo=timezone.utc), participants=("alice", "bob"))
    await make_reservation(
        start=datetime(2030, 1, 2, 17, 0, tzinfo=timezone.utc), participants=("alice", "bob", "carol")
    )
    await make_reservation(start=datetime(2030, 1, 3, 17, 0, tzinfo=timezone.utc), participants=("dave", "erin"))

    response = await client.get("/api/v1/reserves/last_ten_players/g-alice")
    assert response.status_code == 200
    assert [p["external_id"] for p in response.json()] == ["g-bob", "g-carol"]


@pytest.mark.asyncio
async def test_last_ten_players_only_looks_at_recent_reservations(client: AsyncClient, seed, make_reservation):
    """A co-player from the eleventh most recent reservation is not listed."""
    await make_reservation(start=datetime(2029, 1, 1, 17, 0, tzinfo=timezone.utc), participants=("alice", "erin"))
    for day in range(1, 11):
        await make_reservation(
            start=datetime(2030, 1, day, 17, 0, tzinfo=timezone.utc), participants=("alice", "bob")
        )

    response = await client.get("/api/v1/reserves/last_ten_players/g-alice")
    assert [p["external_id"] for p in response.json()] == ["g-bob"]

    response = await client.get("/api/v1/reserves/last_ten_players/unknown-user")
    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.asyncio
async def test_health_and_metrics(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["cache"] == {"status": "disabled"}

    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "reservation_operations_total" in response.text
