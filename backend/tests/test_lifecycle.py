"""
Tests for booking status transitions: owner cancellation, the cancellation
window, and admin overrides.
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.core.exceptions import ConflictError, ValidationError
from app.models.booking import Booking
from app.models.notification import Notification
from app.services import lifecycle
from app.services.availability_service import utc_today


def make_booking(status: str = "upcoming", payment_status: str = "pending") -> Booking:
    return Booking(
        user_id=1,
        target_kind="facility",
        facility_id=1,
        date=date(2030, 1, 14),
        time_slot="10:00-12:00",
        duration_hours=2,
        status=status,
        payment_status=payment_status,
        booking_code="ABCD1234",
    )


async def create_booking(client: AsyncClient, headers: dict, facility_id: int, day: date, slot: str = "10:00-12:00"):
    response = await client.post(
        "/api/v1/bookings",
        json={"facility_id": facility_id, "date": day.isoformat(), "time_slot": slot},
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()


async def notifications_for(db_session, user_id: int) -> list[Notification]:
    result = await db_session.execute(
        select(Notification).where(Notification.user_id == user_id).order_by(Notification.id)
    )
    return list(result.scalars().all())


# Pure state-machine checks

def test_cancellation_window_boundary():
    booking = make_booking()
    starts = datetime(2030, 1, 14, 10, 0, tzinfo=timezone.utc)

    lifecycle.check_cancellation(booking, by_admin=False, now=starts - timedelta(hours=24, minutes=1), window_hours=24)
    with pytest.raises(ValidationError, match="Cancellation window has passed"):
        lifecycle.check_cancellation(booking, by_admin=False, now=starts - timedelta(hours=24), window_hours=24)
    lifecycle.check_cancellation(booking, by_admin=True, now=starts - timedelta(hours=1), window_hours=24)


@pytest.mark.parametrize(
    "status, message",
    [
        ("cancelled", "Booking is already cancelled"),
        ("completed", "Cannot cancel a completed booking"),
        ("no-show", "Cannot cancel a booking marked no-show"),
    ],
)
def test_only_upcoming_bookings_cancel(status, message):
    now = datetime(2029, 1, 1, tzinfo=timezone.utc)
    with pytest.raises(ValidationError, match=message):
        lifecycle.check_cancellation(make_booking(status), by_admin=True, now=now, window_hours=24)


def test_admin_transition_rules():
    assert lifecycle.check_admin_transition(make_booking("upcoming"), "upcoming") is False
    assert lifecycle.check_admin_transition(make_booking("upcoming"), "no-show") is True
    assert lifecycle.check_admin_transition(make_booking("no-show"), "completed") is True
    for terminal in ("completed", "cancelled", "no-show"):
        with pytest.raises(ConflictError):
            lifecycle.check_admin_transition(make_booking(terminal), "upcoming")
    with pytest.raises(ConflictError):
        lifecycle.check_admin_transition(make_booking("completed"), "cancelled")
    with pytest.raises(ValidationError):
        lifecycle.check_admin_transition(make_booking(), "archived")


def test_cancelling_paid_booking_flags_refund():
    paid = make_booking(payment_status="paid")
    assert lifecycle.apply_status(paid, "cancelled") == "upcoming"
    assert paid.refund_due is True
    assert paid.payment_status == "paid"

    unpaid = make_booking()
    lifecycle.apply_status(unpaid, "cancelled")
    assert not unpaid.refund_due


def test_reactivation_detection():
    assert lifecycle.reactivates("cancelled", "completed") is True
    assert lifecycle.reactivates("no-show", "completed") is True
    assert lifecycle.reactivates("upcoming", "completed") is False
    assert lifecycle.reactivates("upcoming", "cancelled") is False


# API flows

@pytest.mark.asyncio
async def test_owner_cancels(client: AsyncClient, db_session, auth_headers, test_user, facility, booking_date):
    booking = await create_booking(client, auth_headers, facility.id, booking_date)

    response = await client.put(f"/api/v1/bookings/{booking['id']}/cancel", headers=auth_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Booking cancelled successfully"
    assert body["booking"]["status"] == "cancelled"
    assert body["booking"]["refund_due"] is False

    notifications = await notifications_for(db_session, test_user.id)
    assert [n.type for n in notifications] == ["booking_created", "booking_status_update"]
    assert notifications[-1].message.startswith("Confirmation: your booking for Court A")
    assert "has been cancelled" in notifications[-1].message


@pytest.mark.asyncio
async def test_double_cancel_rejected(client: AsyncClient, auth_headers, facility, booking_date):
    booking = await create_booking(client, auth_headers, facility.id, booking_date)
    await client.put(f"/api/v1/bookings/{booking['id']}/cancel", headers=auth_headers)

    again = await client.put(f"/api/v1/bookings/{booking['id']}/cancel", headers=auth_headers)
    assert again.status_code == 400
    assert again.json() == {"detail": "Booking is already cancelled"}


@pytest.mark.asyncio
async def test_owner_cannot_cancel_inside_window(client: AsyncClient, auth_headers, facility):
    booking = await create_booking(client, auth_headers, facility.id, utc_today(), slot="20:00-22:00")

    response = await client.put(f"/api/v1/bookings/{booking['id']}/cancel", headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["detail"].startswith("Cancellation window has passed")


@pytest.mark.asyncio
async def test_admin_cancels_inside_window(
    client: AsyncClient, db_session, auth_headers, admin_headers, test_user, facility
):
    booking = await create_booking(client, auth_headers, facility.id, utc_today(), slot="20:00-22:00")

    response = await client.put(f"/api/v1/bookings/{booking['id']}/cancel", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["booking"]["status"] == "cancelled"

    latest = (await notifications_for(db_session, test_user.id))[-1]
    assert "cancelled by administration" in latest.message


@pytest.mark.asyncio
async def test_stranger_cannot_cancel(client: AsyncClient, auth_headers, other_headers, facility, booking_date):
    booking = await create_booking(client, auth_headers, facility.id, booking_date)
    response = await client.put(f"/api/v1/bookings/{booking['id']}/cancel", headers=other_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_cancel_paid_booking_sets_refund_due(
    client: AsyncClient, db_session, auth_headers, facility, booking_date
):
    booking = await create_booking(client, auth_headers, facility.id, booking_date)
    row = await db_session.get(Booking, booking["id"])
    row.payment_status = "paid"
    await db_session.commit()

    response = await client.put(f"/api/v1/bookings/{booking['id']}/cancel", headers=auth_headers)
    data = response.json()["booking"]
    assert data["refund_due"] is True
    assert data["payment_status"] == "paid"


@pytest.mark.asyncio
async def test_admin_marks_completed(
    client: AsyncClient, db_session, auth_headers, admin_headers, admin_user, test_user, facility, booking_date
):
    booking = await create_booking(client, auth_headers, facility.id, booking_date)

    response = await client.put(
        f"/api/v1/admin/bookings/{booking['id']}/status", json={"status": "completed"}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "completed"

    latest = (await notifications_for(db_session, test_user.id))[-1]
    assert latest.type == "booking_status_update"
    assert "marked as completed" in latest.message
    assert latest.related_user_id == admin_user.id


@pytest.mark.asyncio
async def test_admin_same_status_is_noop(
    client: AsyncClient, db_session, auth_headers, admin_headers, test_user, facility, booking_date
):
    booking = await create_booking(client, auth_headers, facility.id, booking_date)

    response = await client.put(
        f"/api/v1/admin/bookings/{booking['id']}/status", json={"status": "upcoming"}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "upcoming"
    assert len(await notifications_for(db_session, test_user.id)) == 1


@pytest.mark.asyncio
async def test_admin_cannot_reopen_or_cancel_completed(
    client: AsyncClient, auth_headers, admin_headers, facility, booking_date
):
    booking = await create_booking(client, auth_headers, facility.id, booking_date)
    url = f"/api/v1/admin/bookings/{booking['id']}/status"
    await client.put(url, json={"status": "completed"}, headers=admin_headers)

    assert (await client.put(url, json={"status": "upcoming"}, headers=admin_headers)).status_code == 409
    assert (await client.put(url, json={"status": "cancelled"}, headers=admin_headers)).status_code == 409


@pytest.mark.asyncio
async def test_admin_reactivation_rechecks_slot(
    client: AsyncClient, auth_headers, other_headers, admin_headers, facility, booking_date
):
    first = await create_booking(client, auth_headers, facility.id, booking_date)
    await client.put(f"/api/v1/bookings/{first['id']}/cancel", headers=auth_headers)
    await create_booking(client, other_headers, facility.id, booking_date)

    response = await client.put(
        f"/api/v1/admin/bookings/{first['id']}/status", json={"status": "completed"}, headers=admin_headers
    )
    assert response.status_code == 409
    assert response.json()["detail"].startswith("Facility is not available")


@pytest.mark.asyncio
async def test_admin_status_rejects_unknown_value(
    client: AsyncClient, auth_headers, admin_headers, facility, booking_date
):
    booking = await create_booking(client, auth_headers, facility.id, booking_date)
    response = await client.put(
        f"/api/v1/admin/bookings/{booking['id']}/status", json={"status": "archived"}, headers=admin_headers
    )
    assert response.status_code == 400
