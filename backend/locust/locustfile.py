"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags contention   # Many customers, few seats
  locust -f locustfile.py --tags throughput   # Status polling / cache
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests

Gateway payments are signed locally; export the server's secret:
  PAYMENT_GATEWAY_KEY_SECRET=... locust -f locustfile.py
"""

import hashlib
import hmac
import os
import random
import string
from locust import HttpUser, task, between, tag, events

GATEWAY_SECRET = os.environ.get("PAYMENT_GATEWAY_KEY_SECRET", "gateway-secret-change-in-production")
SEAT_COUNT = int(os.environ.get("SEAT_COUNT", "100"))

# Seats every ContentionUser fights over
HOT_SEATS = [1, 2, 3, 4, 5, 6, 7, 8, 9, 10]


def random_order_id():
    return "LOAD-" + "".join(random.choices(string.ascii_uppercase + string.digits, k=10))


def sign(gateway_order_id, gateway_payment_id):
    message = f"{gateway_order_id}|{gateway_payment_id}".encode()
    return hmac.new(GATEWAY_SECRET.encode(), message, hashlib.sha256).hexdigest()


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "="*60)
    print(f"Seat contention run: {len(HOT_SEATS)} hot seats of {SEAT_COUNT}")
    print("="*60)


class ContentionUser(HttpUser):
    """
    TEST 1: Contention - 100 users -> 10 seats

    Run: locust -f locustfile.py --tags contention -u 100 -r 50 --run-time 30s

    After test, verify no seat has two active rows:
      SELECT seat_number FROM seat_bookings WHERE status = 'active'
      GROUP BY seat_number HAVING COUNT(*) > 1;
    Should return nothing (or GET /api/v1/seats/admin/audit -> healthy).
    """
    wait_time = between(0, 0.1)

    @tag("contention")
    @task(3)
    def hold_hot_seats(self):
        """Everyone grabs 1-3 of the same 10 seats."""
        seats = random.sample(HOT_SEATS, random.randint(1, 3))
        with self.client.post("/api/v1/seats/hold",
            json={"seats": seats, "order_id": random_order_id()},
            name="/api/v1/seats/hold [hot]",
            catch_response=True
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()  # 409: someone else got there first
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("contention")
    @task(1)
    def book_cash_hot_seat(self):
        with self.client.post("/api/v1/seats/book-cash",
            json={"seats": [random.choice(HOT_SEATS)], "order_id": random_order_id()},
            name="/api/v1/seats/book-cash [hot]",
            catch_response=True
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("contention")
    @task(1)
    def pay_for_hot_seat(self):
        gateway_order_id = "gw_" + random_order_id()
        gateway_payment_id = "pay_" + random_order_id()
        with self.client.post("/api/v1/seats/book-after-payment",
            json={
                "seats": [random.choice(HOT_SEATS)],
                "order_id": random_order_id(),
                "gateway_order_id": gateway_order_id,
                "gateway_payment_id": gateway_payment_id,
                "signature": sign(gateway_order_id, gateway_payment_id),
            },
            name="/api/v1/seats/book-after-payment [hot]",
            catch_response=True
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false on the server, run again

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def poll_status(self):
        """Clients poll the seat map every ~15s."""
        self.client.get("/api/v1/seats/status", name="/api/v1/seats/status [cached]")

    @tag("throughput", "read")
    @task(3)
    def available(self):
        self.client.get("/api/v1/seats/available")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def seat_out_of_range(self):
        with self.client.post("/api/v1/seats/hold",
            json={"seats": [SEAT_COUNT + 1], "order_id": random_order_id()},
            catch_response=True
        ) as resp:
            self._expect(resp, [422])

    @tag("edge")
    @task
    def zero_seat(self):
        with self.client.post("/api/v1/seats/hold",
            json={"seats": [0], "order_id": random_order_id()},
            catch_response=True
        ) as resp:
            self._expect(resp, [422])

    @tag("edge")
    @task
    def empty_request(self):
        with self.client.post("/api/v1/seats/hold",
            json={"seats": [], "order_id": random_order_id()},
            catch_response=True
        ) as resp:
            self._expect(resp, [422])

    @tag("edge")
    @task
    def forged_signature(self):
        """Bad signature: 402, and the hold is left to lapse."""
        seat = random.randint(len(HOT_SEATS) + 1, SEAT_COUNT)
        with self.client.post("/api/v1/seats/book-after-payment",
            json={
                "seats": [seat],
                "order_id": random_order_id(),
                "gateway_order_id": "gw_forged",
                "gateway_payment_id": "pay_forged",
                "signature": "0" * 64,
            },
            catch_response=True
        ) as resp:
            self._expect(resp, [402, 409])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/v1/seats/hold",
            data="not json at all",
            catch_response=True
        ) as resp:
            self._expect(resp, [400, 422])

    @tag("edge")
    @task
    def admin_without_token(self):
        with self.client.get("/api/v1/seats/admin/stats", catch_response=True) as resp:
            self._expect(resp, [401])


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Simulates a busy evening:
      - Mostly polling the seat map
      - Some holds followed by payment
      - A few walk-in cash bookings
    """
    wait_time = between(1, 3)

    @task(50)
    def poll_status(self):
        resp = self.client.get("/api/v1/seats/available")
        if resp.status_code == 200:
            self.available = resp.json().get("available_seats", [])

    @task(10)
    def hold_then_pay(self):
        available = getattr(self, "available", [])
        if not available:
            return
        seats = random.sample(available, min(len(available), random.randint(1, 3)))
        order_id = random_order_id()
        resp = self.client.post("/api/v1/seats/hold", json={"seats": seats, "order_id": order_id})
        if resp.status_code != 201:
            return

        gateway_order_id = f"gw_{order_id}"
        gateway_payment_id = f"pay_{order_id}"
        self.client.post("/api/v1/seats/confirm-payment",
            json={
                "order_id": order_id,
                "gateway_order_id": gateway_order_id,
                "gateway_payment_id": gateway_payment_id,
                "signature": sign(gateway_order_id, gateway_payment_id),
            })

    @task(3)
    def walk_in_cash(self):
        available = getattr(self, "available", [])
        if available:
            self.client.post("/api/v1/seats/book-cash",
                json={"seats": [random.choice(available)], "order_id": random_order_id()})
