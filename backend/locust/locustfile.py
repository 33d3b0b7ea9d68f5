"""
Locust Load Test Suite

Users, shops and tables are not managed by this API. Seed them first; the
suite expects users with external ids "load-user-1" .. "load-user-{LOAD_USERS}"
and a shop LOAD_SHOP_ID owning table LOAD_TABLE_ID.

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test joins on a full reservation
  locust -f locustfile.py --tags throughput   # Test shop-events cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import os
import random
from locust import HttpUser, task, between, tag, events
from datetime import datetime, timezone, timedelta

LOAD_USERS = int(os.getenv("LOAD_USERS", "500"))
LOAD_SHOP_ID = int(os.getenv("LOAD_SHOP_ID", "1"))
LOAD_TABLE_ID = int(os.getenv("LOAD_TABLE_ID", "1"))
LOAD_GAME_ID = int(os.getenv("LOAD_GAME_ID", "1"))

# Shared state
RESERVE_IDS = []
CONCURRENCY_RESERVE_ID = None


def random_user_id():
    return f"load-user-{random.randint(1, LOAD_USERS)}"


def reservation_payload(places, shop_event=False, days_ahead=None):
    start = datetime.now(timezone.utc) + timedelta(
        days=days_ahead if days_ahead is not None else random.randint(1, 30),
        hours=random.randint(0, 8),
    )
    return {
        "total_places": places,
        "hour_start": start.isoformat(),
        "hour_end": (start + timedelta(hours=3)).isoformat(),
        "description": "Load test game night",
        "required_material": "None",
        "shop_event": shop_event,
        "game_id": LOAD_GAME_ID,
        "table_id": LOAD_TABLE_ID,
    }


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "="*60)
    print(f"SETUP: shop={LOAD_SHOP_ID} table={LOAD_TABLE_ID} users={LOAD_USERS}")
    print("="*60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 players -> 10 places

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COUNT(*) FROM user_reservations WHERE reservation_id = X;
    Should be <= 10, and no (user_id, reservation_id) pair twice
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.user_id = random_user_id()
        if not CONCURRENCY_RESERVE_ID:
            resp = self.client.post(f"/api/v1/reserves/{LOAD_SHOP_ID}",
                json=reservation_payload(10))
            if resp.status_code == 201:
                globals()["CONCURRENCY_RESERVE_ID"] = resp.json()["id"]
                print(f"\n✓ Created reservation {CONCURRENCY_RESERVE_ID} with 10 places\n")

    @tag("concurrency")
    @task
    def join_limited_reserve(self):
        """All players fight for the same 10 places."""
        if not CONCURRENCY_RESERVE_ID:
            return

        with self.client.post(f"/api/v1/users/{self.user_id}/reserves/{CONCURRENCY_RESERVE_ID}",
            name="/api/v1/users/{user_id}/reserves/{id} [join]",
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: full or already joined
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false on the API, run again

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_shop_events_cached(self):
        """Hammer the cached endpoint."""
        with self.client.get(f"/api/v1/reserves/shop_events/{LOAD_SHOP_ID}",
            name="/api/v1/reserves/shop_events/{shop_id} [cached]",
            catch_response=True
        ) as resp:
            if resp.status_code in [200, 204]:
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("throughput", "read")
    @task(3)
    def get_reserve_detail(self):
        if RESERVE_IDS:
            self.client.get(f"/api/v1/reserves/{random.choice(RESERVE_IDS)}",
                name="/api/v1/reserves/{id}")

    @tag("throughput")
    @task(1)
    def health_check(self):
        """Monitor system health."""
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.user_id = random_user_id()

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_reserve(self):
        """Join a reservation that does not exist."""
        with self.client.post(f"/api/v1/users/{self.user_id}/reserves/999999",
            name="/api/v1/users/{user_id}/reserves/{id} [unknown]",
            catch_response=True
        ) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def non_numeric_reserve(self):
        with self.client.post(f"/api/v1/users/{self.user_id}/reserves/abc",
            name="/api/v1/users/{user_id}/reserves/{id} [invalid]",
            catch_response=True
        ) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def confirm_without_joining(self):
        with self.client.put(f"/api/v1/users/{self.user_id}/reserves/999999/confirm",
            name="/api/v1/users/{user_id}/reserves/{id}/confirm [unlinked]",
            catch_response=True
        ) as resp:
            self._expect(resp, [412])

    @tag("edge")
    @task
    def inverted_time_range(self):
        payload = reservation_payload(4)
        payload["hour_start"], payload["hour_end"] = payload["hour_end"], payload["hour_start"]
        with self.client.post(f"/api/v1/reserves/{LOAD_SHOP_ID}",
            json=payload,
            name="/api/v1/reserves/{shop_id} [inverted]",
            catch_response=True
        ) as resp:
            self._expect(resp, [400, 422])

    @tag("edge")
    @task
    def zero_places(self):
        with self.client.post(f"/api/v1/reserves/{LOAD_SHOP_ID}",
            json=reservation_payload(0),
            name="/api/v1/reserves/{shop_id} [zero places]",
            catch_response=True
        ) as resp:
            self._expect(resp, [400, 422])

    @tag("edge")
    @task
    def malformed_json(self):
        """Send garbage data."""
        with self.client.post(f"/api/v1/reserves/{LOAD_SHOP_ID}",
            data="not json at all",
            name="/api/v1/reserves/{shop_id} [garbage]",
            catch_response=True
        ) as resp:
            self._expect(resp, [400, 422])


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Simulates real traffic:
      - Mostly browsing events and own reservations
      - Some joins and leaves
      - Rare creates
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.user_id = random_user_id()
        self.joined = []

    @task(40)
    def browse_shop_events(self):
        resp = self.client.get(f"/api/v1/reserves/shop_events/{LOAD_SHOP_ID}")
        if resp.status_code == 200:
            for reserve in resp.json():
                if reserve["id"] not in RESERVE_IDS:
                    RESERVE_IDS.append(reserve["id"])

    @task(20)
    def my_reserves(self):
        with self.client.get(f"/api/v1/users/{self.user_id}/reserves",
            name="/api/v1/users/{user_id}/reserves",
            catch_response=True
        ) as resp:
            if resp.status_code in [200, 204]:
                resp.success()

    @task(10)
    def join(self):
        if not RESERVE_IDS:
            return
        reserve_id = random.choice(RESERVE_IDS)
        with self.client.post(f"/api/v1/users/{self.user_id}/reserves/{reserve_id}",
            name="/api/v1/users/{user_id}/reserves/{id} [join]",
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                self.joined.append(reserve_id)
                resp.success()
            elif resp.status_code == 409:
                resp.success()

    @task(4)
    def leave(self):
        if self.joined:
            reserve_id = self.joined.pop()
            self.client.delete(f"/api/v1/users/{self.user_id}/reserves/{reserve_id}",
                name="/api/v1/users/{user_id}/reserves/{id} [leave]")

    @task(2)
    def create_shop_event(self):
        """Rare: the shop publishes a new event."""
        resp = self.client.post(f"/api/v1/reserves/{LOAD_SHOP_ID}",
            json=reservation_payload(random.randint(4, 12), shop_event=True))
        if resp.status_code == 201:
            RESERVE_IDS.append(resp.json()["id"])
