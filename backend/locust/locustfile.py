"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags contention   # Many clients, one slot
  locust -f locustfile.py --tags throughput   # Catalog reads (cache)
  locust -f locustfile.py                     # All tests
"""

import random
import string
from datetime import date, timedelta

from locust import HttpUser, between, events, tag, task

PASSWORD = "loadtest123"
SLOT_TIMES = ["09:00", "09:30", "10:00", "10:30", "11:00", "11:30"]

# Shared state, filled by the first business user
BUSINESS = {"id": None, "service_id": None}


def random_email(kind: str) -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=10))
    return f"{kind}_{suffix}@example.com"


def slot_days(count: int = 7) -> list[str]:
    start = date.today() + timedelta(days=3)
    return [(start + timedelta(days=offset)).isoformat() for offset in range(count)]


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print("SETUP: first BusinessUser publishes a service and a week of slots")
    print("=" * 60)


class BusinessUser(HttpUser):
    """Registers one business with a service and a week of slots."""

    fixed_count = 1
    wait_time = between(1, 2)

    def on_start(self):
        resp = self.client.post("/api/v1/auth/business/register", json={
            "name": "Load Test Salon",
            "email": random_email("business"),
            "password": PASSWORD,
            "category": "hair",
        })
        if resp.status_code != 201:
            return
        self.headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}

        service = self.client.post("/api/v1/businesses/me/services", json={
            "name": "Haircut", "duration_minutes": 30, "price": "40.00",
        }, headers=self.headers)
        self.client.post("/api/v1/businesses/me/availability", json={
            "slots": [{"date": day, "time": at} for day in slot_days() for at in SLOT_TIMES],
        }, headers=self.headers)

        BUSINESS["id"] = resp.json()["account"]["id"]
        BUSINESS["service_id"] = service.json()["id"]
        print(f"\n✓ Business {BUSINESS['id']} open with {len(SLOT_TIMES) * 7} slots\n")

    @task
    def review_pending(self):
        if hasattr(self, "headers"):
            self.client.get("/api/v1/bookings/pending", headers=self.headers)


class ContentionUser(HttpUser):
    """
    All clients fight for the same handful of slots.

    Run: locust -f locustfile.py --tags contention -u 100 -r 50 --run-time 30s

    After the run, verify no slot has two live bookings:
      SELECT availability_id, COUNT(*) FROM bookings
      WHERE status != 'cancelled' GROUP BY availability_id HAVING COUNT(*) > 1;
    Should return no rows.
    """

    wait_time = between(0, 0.1)

    def on_start(self):
        resp = self.client.post("/api/v1/auth/client/register", json={
            "name": "Load Client",
            "email": random_email("client"),
            "password": PASSWORD,
        })
        self.headers = {"Authorization": f"Bearer {resp.json()['access_token']}"} if resp.status_code == 201 else {}

    @tag("contention")
    @task
    def book_first_day(self):
        if not BUSINESS["id"] or not self.headers:
            return

        with self.client.post("/api/v1/bookings/", json={
            "business_id": BUSINESS["id"],
            "service_id": BUSINESS["service_id"],
            "date": slot_days(1)[0],
            "time": random.choice(SLOT_TIMES),
        }, headers=self.headers, catch_response=True, name="/api/v1/bookings/ [contention]") as resp:
            if resp.status_code in (201, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    Catalog reads. Run once with Redis and once without, then compare
    requests/sec and P95 latency.

    Run: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
    """

    wait_time = between(0.1, 0.5)

    @tag("throughput")
    @task(5)
    def list_businesses(self):
        self.client.get("/api/v1/businesses/", params={"category": "hair"}, name="/api/v1/businesses/")

    @tag("throughput")
    @task(2)
    def search_free_slot(self):
        self.client.get(
            "/api/v1/businesses/",
            params={"date": random.choice(slot_days()), "time": random.choice(SLOT_TIMES)},
            name="/api/v1/businesses/?date&time",
        )

    @tag("throughput")
    @task(1)
    def business_detail(self):
        if BUSINESS["id"]:
            self.client.get(f"/api/v1/businesses/{BUSINESS['id']}", name="/api/v1/businesses/{id}")
