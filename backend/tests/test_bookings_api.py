"""
Tests for booking endpoints including concurrency scenarios.
"""

import asyncio
from datetime import datetime, timezone

import pytest
from httpx import AsyncClient

from conftest import SLOT_DATE


def booking_payload(business, service, at="10:00"):
    return {
        "business_id": business.id,
        "service_id": service.id,
        "date": SLOT_DATE.isoformat(),
        "time": at,
    }


@pytest.mark.asyncio
async def test_create_booking(client: AsyncClient, client_headers, business, service, slots):
    """Creation reveals the business's contact details and the cancellation policy."""
    response = await client.post("/api/v1/bookings/", json=booking_payload(business, service), headers=client_headers)
    assert response.status_code == 201
    booking = response.json()["booking"]
    assert booking["status"] == "pending"
    assert booking["price"] == 40.0
    assert booking["commission_amount"] == 6.0
    assert booking["confirmation_code"].startswith("BK-")
    assert booking["service"] == "Haircut"
    assert booking["business"] == {
        "name": business.name,
        "address": business.address,
        "phone": business.phone,
        "zone": business.zone,
    }
    assert "24 hours" in booking["cancellation_policy"]


@pytest.mark.asyncio
async def test_create_booking_unauthenticated(client: AsyncClient, business, service, slots):
    response = await client.post("/api/v1/bookings/", json=booking_payload(business, service))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_business_cannot_book(client: AsyncClient, business_headers, business, service, slots):
    response = await client.post("/api/v1/bookings/", json=booking_payload(business, service), headers=business_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_book_taken_slot(client: AsyncClient, client_headers, other_client_headers, business, service, slots):
    first = await client.post("/api/v1/bookings/", json=booking_payload(business, service), headers=client_headers)
    assert first.status_code == 201

    second = await client.post("/api/v1/bookings/", json=booking_payload(business, service), headers=other_client_headers)
    assert second.status_code == 409
    assert second.json()["error"] == "slot_unavailable"


@pytest.mark.asyncio
async def test_book_unknown_service(client: AsyncClient, client_headers, business, service, slots):
    payload = booking_payload(business, service)
    payload["service_id"] = 9999
    response = await client.post("/api/v1/bookings/", json=payload, headers=client_headers)
    assert response.status_code == 404
    assert response.json()["error"] == "service_not_found"


@pytest.mark.asyncio
async def test_concurrent_http_bookings(client: AsyncClient, client_headers, other_client_headers, business, service, slots):
    """
    CONCURRENCY TEST: simultaneous requests for one slot.
    Exactly one 201, everyone else 409.
    """
    responses = await asyncio.gather(*[
        client.post(
            "/api/v1/bookings/",
            json=booking_payload(business, service),
            headers=client_headers if i % 2 else other_client_headers,
        )
        for i in range(10)
    ])
    codes = sorted(r.status_code for r in responses)
    assert codes == [201] + [409] * 9


@pytest.mark.asyncio
async def test_booking_lifecycle(client: AsyncClient, client_headers, business_headers, business, service, slots, clock):
    created = await client.post("/api/v1/bookings/", json=booking_payload(business, service), headers=client_headers)
    booking_id = created.json()["booking"]["id"]

    pending = await client.get("/api/v1/bookings/pending", headers=business_headers)
    assert [b["id"] for b in pending.json()] == [booking_id]

    confirmed = await client.put(f"/api/v1/bookings/{booking_id}/confirm", headers=business_headers)
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "confirmed"

    early = await client.put(f"/api/v1/bookings/{booking_id}/complete", headers=business_headers)
    assert early.status_code == 400

    clock.now = datetime(2026, 3, 12, 11, 0, tzinfo=timezone.utc)
    completed = await client.put(f"/api/v1/bookings/{booking_id}/complete", headers=business_headers)
    assert completed.json()["status"] == "completed"

    review = await client.post(
        f"/api/v1/bookings/{booking_id}/review",
        json={"rating": 5, "comment": "Spotless"},
        headers=client_headers,
    )
    assert review.status_code == 201
    assert review.json()["business_rating"] == 5.0
    assert review.json()["business_total_reviews"] == 1

    again = await client.post(f"/api/v1/bookings/{booking_id}/review", json={"rating": 4}, headers=client_headers)
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_review_out_of_range(client: AsyncClient, client_headers, business_headers, business, service, slots, clock):
    created = await client.post("/api/v1/bookings/", json=booking_payload(business, service), headers=client_headers)
    booking_id = created.json()["booking"]["id"]

    response = await client.post(f"/api/v1/bookings/{booking_id}/review", json={"rating": 6}, headers=client_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_rating"


@pytest.mark.asyncio
@pytest.mark.parametrize("rating", [4.5, "x", "4", True])
async def test_review_non_integer_rating(client: AsyncClient, client_headers, business_headers, business, service, slots, clock, rating):
    created = await client.post("/api/v1/bookings/", json=booking_payload(business, service), headers=client_headers)
    booking_id = created.json()["booking"]["id"]
    await client.put(f"/api/v1/bookings/{booking_id}/confirm", headers=business_headers)
    clock.now = datetime(2026, 3, 12, 11, 0, tzinfo=timezone.utc)
    await client.put(f"/api/v1/bookings/{booking_id}/complete", headers=business_headers)

    response = await client.post(f"/api/v1/bookings/{booking_id}/review", json={"rating": rating}, headers=client_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_rating"


@pytest.mark.asyncio
async def test_review_pending_booking(client: AsyncClient, client_headers, business, service, slots):
    created = await client.post("/api/v1/bookings/", json=booking_payload(business, service), headers=client_headers)
    booking_id = created.json()["booking"]["id"]

    response = await client.post(f"/api/v1/bookings/{booking_id}/review", json={"rating": 5}, headers=client_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_state"


@pytest.mark.asyncio
async def test_reject_frees_slot(client: AsyncClient, client_headers, business_headers, business, service, slots):
    created = await client.post("/api/v1/bookings/", json=booking_payload(business, service), headers=client_headers)
    booking_id = created.json()["booking"]["id"]

    rejected = await client.put(f"/api/v1/bookings/{booking_id}/reject", headers=business_headers)
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "cancelled"
    assert rejected.json()["cancellation_charge"] == 0.0

    rebooked = await client.post("/api/v1/bookings/", json=booking_payload(business, service), headers=client_headers)
    assert rebooked.status_code == 201


@pytest.mark.asyncio
async def test_free_cancel(client: AsyncClient, client_headers, business, service, slots):
    created = await client.post("/api/v1/bookings/", json=booking_payload(business, service), headers=client_headers)
    booking_id = created.json()["booking"]["id"]

    response = await client.put(f"/api/v1/bookings/{booking_id}/cancel", headers=client_headers)
    assert response.status_code == 200
    assert response.json()["cancellation_charge"] == 0.0

    twice = await client.put(f"/api/v1/bookings/{booking_id}/cancel", headers=client_headers)
    assert twice.status_code == 400
    assert twice.json()["error"] == "already_cancelled"


@pytest.mark.asyncio
async def test_late_cancel_keeps_slot_blocked(client: AsyncClient, client_headers, other_client_headers, business, service, slots, clock):
    created = await client.post("/api/v1/bookings/", json=booking_payload(business, service), headers=client_headers)
    booking_id = created.json()["booking"]["id"]

    clock.now = datetime(2026, 3, 11, 12, 0, tzinfo=timezone.utc)
    response = await client.put(f"/api/v1/bookings/{booking_id}/cancel", headers=client_headers)
    assert response.json()["cancellation_charge"] == 20.0

    blocked = await client.post("/api/v1/bookings/", json=booking_payload(business, service), headers=other_client_headers)
    assert blocked.status_code == 409


@pytest.mark.asyncio
async def test_cancel_other_clients_booking(client: AsyncClient, client_headers, other_client_headers, business, service, slots):
    created = await client.post("/api/v1/bookings/", json=booking_payload(business, service), headers=client_headers)
    booking_id = created.json()["booking"]["id"]

    response = await client.put(f"/api/v1/bookings/{booking_id}/cancel", headers=other_client_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_my_bookings(client: AsyncClient, client_headers, business_headers, other_client_headers, business, service, slots):
    await client.post("/api/v1/bookings/", json=booking_payload(business, service, "10:00"), headers=client_headers)
    await client.post("/api/v1/bookings/", json=booking_payload(business, service, "12:00"), headers=client_headers)

    mine = await client.get("/api/v1/bookings/my", headers=client_headers)
    assert [b["time"] for b in mine.json()] == ["12:00:00", "10:00:00"]

    agenda = await client.get("/api/v1/bookings/my", headers=business_headers)
    assert [b["time"] for b in agenda.json()] == ["10:00:00", "12:00:00"]

    nobody = await client.get("/api/v1/bookings/my", headers=other_client_headers)
    assert nobody.json() == []


@pytest.mark.asyncio
async def test_client_cannot_confirm(client: AsyncClient, client_headers, business, service, slots):
    created = await client.post("/api/v1/bookings/", json=booking_payload(business, service), headers=client_headers)
    booking_id = created.json()["booking"]["id"]

    response = await client.put(f"/api/v1/bookings/{booking_id}/confirm", headers=client_headers)
    assert response.status_code == 403
