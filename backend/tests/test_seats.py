"""
Tests for seat availability, holds and client-side release.
"""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_all_seats_available_initially(client: AsyncClient):
    response = await client.get("/api/v1/seats/status")
    assert response.status_code == 200
    data = response.json()
    assert data["total_seats"] == 100
    assert data["available_seats"] == 100
    assert data["occupied_seats"] == 0
    assert [s["seat_number"] for s in data["seats"]] == list(range(1, 101))


@pytest.mark.asyncio
async def test_hold_seats(client: AsyncClient, hold):
    """A hold occupies the seats for HOLD_DURATION_MINUTES as a temporary booking."""
    response = await hold([3, 1, 2])
    assert response.status_code == 201
    data = response.json()
    assert data["order_id"] == "ORD-1"
    assert data["is_temporary"] is True
    assert data["payment_verified"] is False
    assert data["time_remaining_minutes"] == 30
    assert [b["seat_number"] for b in data["bookings"]] == [1, 2, 3]
    assert all(b["payment_status"] == "pending" for b in data["bookings"])

    status = (await client.get("/api/v1/seats/status")).json()
    assert status["occupied_seats"] == 3
    seat_1 = status["seats"][0]
    assert seat_1["status"] == "occupied"
    assert seat_1["booking"]["order_id"] == "ORD-1"
    assert seat_1["booking"]["user_name"] == "Asha"

    available = (await client.get("/api/v1/seats/available")).json()
    assert available["count"] == 97
    assert 1 not in available["available_seats"]


@pytest.mark.asyncio
async def test_hold_taken_seat_conflicts(client: AsyncClient, hold):
    """A seat held by one order cannot be held by another."""
    assert (await hold([7], order_id="ORD-A")).status_code == 201

    response = await hold([7], order_id="ORD-B")
    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["error"] == "seat_unavailable"
    assert detail["seats"] == [7]


@pytest.mark.asyncio
async def test_batch_hold_is_all_or_nothing(client: AsyncClient, hold):
    """[5,6,7] with 6 taken: the request fails and 5 and 7 stay free."""
    assert (await hold([6], order_id="ORD-A")).status_code == 201

    response = await hold([5, 6, 7], order_id="ORD-B")
    assert response.status_code == 409
    assert response.json()["detail"]["seats"] == [6]

    available = (await client.get("/api/v1/seats/available")).json()["available_seats"]
    assert 5 in available
    assert 7 in available
    assert 6 not in available

    order = await client.get("/api/v1/seats/order/ORD-B")
    assert order.status_code == 404


@pytest.mark.asyncio
async def test_same_order_retry_reuses_its_seats(client: AsyncClient, hold):
    """Retrying a hold for the same order does not conflict with itself."""
    first = await hold([1, 2], order_id="ORD-R")
    assert first.status_code == 201

    retry = await hold([1, 2, 3], order_id="ORD-R")
    assert retry.status_code == 201
    assert [b["seat_number"] for b in retry.json()["bookings"]] == [1, 2, 3]

    order = (await client.get("/api/v1/seats/order/ORD-R")).json()
    assert len(order["bookings"]) == 3


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "seats",
    [
        [0],
        [101],
        [4, 4],
        list(range(1, 12)),
    ],
    ids=["zero", "past_last_seat", "duplicate", "too_many"],
)
async def test_hold_rejects_invalid_seats(client: AsyncClient, hold, seats):
    response = await hold(seats)
    assert response.status_code == 422

    status = (await client.get("/api/v1/seats/status")).json()
    assert status["occupied_seats"] == 0


@pytest.mark.asyncio
async def test_hold_rejects_empty_request(client: AsyncClient, hold):
    response = await hold([])
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_lapsed_hold_reads_as_available(client: AsyncClient, hold, clock):
    """Expiry is applied on read even before the sweeper has run."""
    await hold([9])
    clock.advance(minutes=29)
    status = (await client.get("/api/v1/seats/status")).json()
    assert status["seats"][8]["status"] == "occupied"
    assert status["seats"][8]["booking"]["time_remaining_minutes"] == 1

    clock.advance(minutes=2)
    status = (await client.get("/api/v1/seats/status")).json()
    assert status["seats"][8]["status"] == "available"
    assert status["occupied_seats"] == 0


@pytest.mark.asyncio
async def test_seat_can_be_rebooked_after_hold_lapses(client: AsyncClient, hold, clock):
    """31 minutes after an unpaid hold, another customer gets the seat."""
    assert (await hold([12], order_id="ORD-A")).status_code == 201
    clock.advance(minutes=31)

    response = await hold([12], order_id="ORD-B")
    assert response.status_code == 201

    first = (await client.get("/api/v1/seats/order/ORD-A")).json()["bookings"][0]
    assert first["status"] == "expired"
    second = (await client.get("/api/v1/seats/order/ORD-B")).json()["bookings"][0]
    assert second["status"] == "active"


@pytest.mark.asyncio
async def test_protection_status(client: AsyncClient, hold, pay):
    await hold([1, 2], order_id="ORD-1")
    await pay(order_id="ORD-1")
    await hold([5], order_id="ORD-2")

    response = await client.get("/api/v1/seats/protection-status")
    assert response.status_code == 200
    data = response.json()
    assert data["summary"] == {
        "total_seats": 100,
        "protected_seats": 3,
        "available_seats": 97,
        "confirmed_bookings": 2,
        "temporary_reservations": 1,
    }
    seat_5 = data["protection_status"][4]
    assert seat_5["protected"] is True
    assert seat_5["protection_type"] == "temporary"
    assert seat_5["order_id"] == "ORD-2"
    assert data["protection_status"][9]["protected"] is False


@pytest.mark.asyncio
async def test_cancel_releases_unpaid_hold(client: AsyncClient, hold):
    await hold([20, 21], order_id="ORD-C")

    response = await client.delete("/api/v1/seats/cancel/ORD-C")
    assert response.status_code == 200
    assert response.json()["released"] == 2

    available = (await client.get("/api/v1/seats/available")).json()["available_seats"]
    assert 20 in available and 21 in available


@pytest.mark.asyncio
async def test_cancel_confirmed_booking_is_rejected(client: AsyncClient, hold, pay):
    """Paid bookings can only be released by an admin."""
    await hold([22], order_id="ORD-P")
    await pay(order_id="ORD-P")

    response = await client.delete("/api/v1/seats/cancel/ORD-P")
    assert response.status_code == 409

    status = (await client.get("/api/v1/seats/status")).json()
    assert status["seats"][21]["status"] == "occupied"


@pytest.mark.asyncio
async def test_cancel_unknown_order(client: AsyncClient):
    response = await client.delete("/api/v1/seats/cancel/NOPE")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_order_lookup_unknown(client: AsyncClient):
    response = await client.get("/api/v1/seats/order/NOPE")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_order_details_are_echoed(client: AsyncClient, hold):
    details = {"items": [{"name": "Cold Brew", "qty": 2}], "table_note": "window"}
    await hold([30], order_id="ORD-D", order_details=details)

    order = (await client.get("/api/v1/seats/order/ORD-D")).json()
    assert order["bookings"][0]["order_details"] == details


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["seat_count"] == 100
    assert data["cache"]["status"] == "disabled"


@pytest.mark.asyncio
async def test_growing_a_hold_keeps_the_batch_together(client: AsyncClient, hold, pay, clock):
    """Adding a seat to an order's hold restarts the earlier seat's clock too."""
    await hold([1], order_id="ORD-A")
    clock.advance(minutes=20)
    assert (await hold([1, 2], order_id="ORD-A")).status_code == 201
    clock.advance(minutes=15)

    seats = (await client.get("/api/v1/seats/status")).json()["seats"]
    assert [seats[0]["status"], seats[1]["status"]] == ["occupied", "occupied"]

    confirmed = await pay(order_id="ORD-A")
    assert confirmed.status_code == 200
    assert [b["seat_number"] for b in confirmed.json()["bookings"]] == [1, 2]


@pytest.mark.asyncio
async def test_lapsed_seat_stays_free_when_rest_of_order_is_paid(
    client: AsyncClient, hold, pay, clock
):
    await hold([1], order_id="ORD-A")
    clock.advance(minutes=20)
    await hold([2], order_id="ORD-A")
    clock.advance(minutes=15)

    seats = (await client.get("/api/v1/seats/status")).json()["seats"]
    assert seats[0]["status"] == "available"

    confirmed = await pay(order_id="ORD-A")
    assert confirmed.status_code == 200
    assert [b["seat_number"] for b in confirmed.json()["bookings"]] == [2]

    seats = (await client.get("/api/v1/seats/status")).json()["seats"]
    assert seats[0]["status"] == "available"
    assert seats[1]["status"] == "occupied"
    assert (await hold([1], order_id="ORD-B")).status_code == 201
