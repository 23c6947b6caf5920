"""
Tests for booking endpoints including double-booking scenarios.
"""

from datetime import date, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ValidationError
from app.main import app
from app.models.booking import Booking
from app.models.notification import Notification
from app.services import booking_service
from app.services.background import task_runner
from app.services.conflict_service import translate_integrity_error


def booking_payload(booking_date: date, **overrides) -> dict:
    payload = {"date": booking_date.isoformat(), "time_slot": "10:00-12:00"}
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_book_facility(client: AsyncClient, auth_headers, test_user, facility, booking_date):
    """Successful booking stores the cost snapshot and starts upcoming/pending."""
    response = await client.post(
        "/api/v1/bookings",
        json=booking_payload(
            booking_date,
            facility_id=facility.id,
            rented_equipment=[{"name": "Racket", "quantity": 2}],
            needs_transportation=True,
        ),
        headers=auth_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["user_id"] == test_user.id
    assert data["target_kind"] == "facility"
    assert data["facility"]["name"] == "Court A"
    assert data["status"] == "upcoming"
    assert data["payment_status"] == "pending"
    assert data["facility_cost"] == 3000
    assert data["equipment_cost"] == 800
    assert data["transportation_cost"] == 1000
    assert data["total_cost"] == 4800
    assert data["rented_equipment"] == [{"name": "Racket", "quantity": 2, "unit_price_per_hour": 200.0}]
    assert len(data["booking_code"]) == 8


@pytest.mark.asyncio
async def test_book_unauthenticated(client: AsyncClient, facility, booking_date):
    """Unauthenticated booking returns 401."""
    response = await client.post("/api/v1/bookings", json=booking_payload(booking_date, facility_id=facility.id))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_book_without_target(client: AsyncClient, auth_headers, booking_date):
    response = await client.post("/api/v1/bookings", json=booking_payload(booking_date), headers=auth_headers)
    assert response.status_code == 400
    assert response.json() == {"detail": "Booking must be associated with either a facility or a trainer."}


@pytest.mark.asyncio
async def test_book_unknown_facility(client: AsyncClient, auth_headers, booking_date):
    response = await client.post(
        "/api/v1/bookings", json=booking_payload(booking_date, facility_id=9999), headers=auth_headers
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_book_malformed_slot(client: AsyncClient, auth_headers, facility, booking_date):
    response = await client.post(
        "/api/v1/bookings",
        json=booking_payload(booking_date, facility_id=facility.id, time_slot="12:00-10:00"),
        headers=auth_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize("time_slot", ["09:00-11:00", "08:00-20:00", "10:30-12:30"])
async def test_off_catalog_slot_rejected(client: AsyncClient, auth_headers, facility, trainer, booking_date, time_slot):
    """Slots straddling catalog boundaries would overlap booked slots without matching them."""
    booked = await client.post(
        "/api/v1/bookings", json=booking_payload(booking_date, facility_id=facility.id), headers=auth_headers
    )
    assert booked.status_code == 201

    for target in ({"facility_id": facility.id}, {"trainer_id": trainer.id}):
        response = await client.post(
            "/api/v1/bookings",
            json=booking_payload(booking_date, time_slot=time_slot, **target),
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["detail"].startswith("Time slot must be one of: 06:00-08:00")


@pytest.mark.asyncio
async def test_double_booking_rejected(
    client: AsyncClient, auth_headers, other_headers, facility, booking_date
):
    """A second booking of the same facility slot returns 409, whoever asks."""
    payload = booking_payload(booking_date, facility_id=facility.id)
    first = await client.post("/api/v1/bookings", json=payload, headers=auth_headers)
    assert first.status_code == 201

    second = await client.post("/api/v1/bookings", json=payload, headers=other_headers)
    assert second.status_code == 409
    assert second.json() == {"detail": "Facility is not available at the selected date and time slot."}

    other_slot = await client.post(
        "/api/v1/bookings",
        json=booking_payload(booking_date, facility_id=facility.id, time_slot="12:00-14:00"),
        headers=other_headers,
    )
    assert other_slot.status_code == 201


@pytest.mark.asyncio
async def test_cancelled_booking_frees_slot(
    client: AsyncClient, auth_headers, other_headers, facility, booking_date
):
    payload = booking_payload(booking_date, facility_id=facility.id)
    first = await client.post("/api/v1/bookings", json=payload, headers=auth_headers)
    cancel = await client.put(f"/api/v1/bookings/{first.json()['id']}/cancel", headers=auth_headers)
    assert cancel.status_code == 200

    again = await client.post("/api/v1/bookings", json=payload, headers=other_headers)
    assert again.status_code == 201


@pytest.mark.asyncio
async def test_trainer_conflict_through_facility_booking(
    client: AsyncClient, auth_headers, other_headers, facility, trainer, booking_date
):
    """A facility booking that brings a trainer also holds the trainer's slot."""
    combined = await client.post(
        "/api/v1/bookings",
        json=booking_payload(booking_date, facility_id=facility.id, trainer_id=trainer.id),
        headers=auth_headers,
    )
    assert combined.status_code == 201
    assert combined.json()["trainer_cost"] == 4000

    trainer_only = await client.post(
        "/api/v1/bookings",
        json=booking_payload(booking_date, trainer_id=trainer.id),
        headers=other_headers,
    )
    assert trainer_only.status_code == 409
    assert trainer_only.json()["detail"].startswith("Trainer is not available")


@pytest.mark.asyncio
async def test_primary_target_reported_first(
    client: AsyncClient, auth_headers, other_headers, facility, trainer, booking_date
):
    await client.post(
        "/api/v1/bookings",
        json=booking_payload(booking_date, facility_id=facility.id, trainer_id=trainer.id),
        headers=auth_headers,
    )
    response = await client.post(
        "/api/v1/bookings",
        json=booking_payload(booking_date, facility_id=facility.id, trainer_id=trainer.id),
        headers=other_headers,
    )
    assert response.status_code == 409
    assert response.json()["detail"].startswith("Facility is not available")


@pytest.mark.asyncio
async def test_missing_secondary_target_is_dropped(
    client: AsyncClient, auth_headers, facility, booking_date
):
    response = await client.post(
        "/api/v1/bookings",
        json=booking_payload(booking_date, facility_id=facility.id, trainer_id=9999),
        headers=auth_headers,
    )
    assert response.status_code == 201
    assert response.json()["trainer_id"] is None
    assert response.json()["trainer_cost"] == 0


@pytest.mark.asyncio
async def test_trainer_session_hours(client: AsyncClient, auth_headers, trainer, booking_date):
    response = await client.post(
        "/api/v1/bookings",
        json=booking_payload(booking_date, trainer_id=trainer.id, session_hours=1.5),
        headers=auth_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["target_kind"] == "trainer"
    assert data["duration_hours"] == 1.5
    assert data["trainer_cost"] == 3000
    assert data["total_cost"] == 3000


@pytest.mark.asyncio
async def test_booking_creates_confirmation_notification(
    client: AsyncClient, db_session, auth_headers, test_user, trainer, trainer_account, booking_date
):
    response = await client.post(
        "/api/v1/bookings", json=booking_payload(booking_date, trainer_id=trainer.id), headers=auth_headers
    )
    booking = response.json()
    await task_runner.drain()

    result = await db_session.execute(select(Notification).where(Notification.user_id == test_user.id))
    notifications = result.scalars().all()
    assert len(notifications) == 1
    notification = notifications[0]
    assert notification.type == "booking_created"
    assert notification.is_read is False
    assert notification.related_booking_id == booking["id"]
    assert notification.related_user_id == trainer_account.id
    assert booking["booking_code"] in notification.message
    assert notification.link == f"/bookings/{booking['id']}"


@pytest.mark.asyncio
async def test_rejected_booking_leaves_no_rows(
    client: AsyncClient, db_session, auth_headers, other_headers, facility, booking_date
):
    payload = booking_payload(booking_date, facility_id=facility.id)
    await client.post("/api/v1/bookings", json=payload, headers=auth_headers)
    await client.post("/api/v1/bookings", json=payload, headers=other_headers)

    bookings = (await db_session.execute(select(Booking))).scalars().all()
    notifications = (await db_session.execute(select(Notification))).scalars().all()
    assert len(bookings) == 1
    assert len(notifications) == 1


@pytest.mark.asyncio
async def test_list_and_get_my_bookings(
    client: AsyncClient, auth_headers, other_headers, facility, booking_date
):
    created = await client.post(
        "/api/v1/bookings", json=booking_payload(booking_date, facility_id=facility.id), headers=auth_headers
    )
    booking_id = created.json()["id"]

    mine = await client.get("/api/v1/bookings", headers=auth_headers)
    assert [b["id"] for b in mine.json()] == [booking_id]
    theirs = await client.get("/api/v1/bookings", headers=other_headers)
    assert theirs.json() == []

    assert (await client.get(f"/api/v1/bookings/{booking_id}", headers=auth_headers)).status_code == 200
    assert (await client.get(f"/api/v1/bookings/{booking_id}", headers=other_headers)).status_code == 403
    assert (await client.get("/api/v1/bookings/9999", headers=auth_headers)).status_code == 404


@pytest.mark.asyncio
async def test_slot_index_violation_maps_to_conflict(db_session, test_user, facility, booking_date):
    """The storage backstop rejects a second active booking even without the pre-check."""
    for _ in range(2):
        db_session.add(
            Booking(
                user_id=test_user.id,
                target_kind="facility",
                facility_id=facility.id,
                date=booking_date,
                time_slot="10:00-12:00",
                duration_hours=2,
            )
        )
    with pytest.raises(IntegrityError) as exc_info:
        await db_session.flush()
    await db_session.rollback()

    conflict = translate_integrity_error(exc_info.value)
    assert conflict is not None
    assert conflict.target_kind == "facility"
    assert conflict.status_code == 409


@pytest.mark.asyncio
async def test_cancelled_rows_do_not_hit_slot_index(db_session, test_user, facility, booking_date):
    day = booking_date + timedelta(days=7)
    for status in ("cancelled", "no-show", "upcoming"):
        db_session.add(
            Booking(
                user_id=test_user.id,
                target_kind="facility",
                facility_id=facility.id,
                date=day,
                time_slot="10:00-12:00",
                duration_hours=2,
                status=status,
            )
        )
    await db_session.commit()


def test_total_must_equal_component_sum():
    booking = Booking(
        user_id=1,
        target_kind="facility",
        facility_id=1,
        date=date(2030, 1, 14),
        time_slot="10:00-12:00",
        duration_hours=2,
    )
    booking.facility_cost = 3000
    booking.trainer_cost = 500
    with pytest.raises(ValidationError):
        booking.total_cost = 3000
    booking.total_cost = 3500
    assert booking.total_cost == 3500


def test_booking_requires_a_target():
    with pytest.raises(ValidationError):
        Booking(user_id=1, target_kind="facility", date=date(2030, 1, 14), time_slot="10:00-12:00")
    with pytest.raises(ValidationError):
        Booking(user_id=1, target_kind="trainer", facility_id=1, date=date(2030, 1, 14), time_slot="10:00-12:00")


@pytest.mark.asyncio
async def test_lost_race_returns_conflict(
    client: AsyncClient, db_session, auth_headers, other_headers, facility, booking_date, monkeypatch
):
    """With the pre-check skipped, the slot index alone turns the second insert into a 409."""

    async def no_precheck(*args, **kwargs):
        return None

    monkeypatch.setattr(booking_service, "ensure_slot_free", no_precheck)
    payload = booking_payload(booking_date, facility_id=facility.id)

    first = await client.post("/api/v1/bookings", json=payload, headers=auth_headers)
    assert first.status_code == 201
    second = await client.post("/api/v1/bookings", json=payload, headers=other_headers)
    assert second.status_code == 409
    assert second.json() == {"detail": "Facility is not available at the selected date and time slot."}

    await task_runner.drain()
    bookings = (await db_session.execute(select(Booking))).scalars().all()
    notifications = (await db_session.execute(select(Notification))).scalars().all()
    assert [b.id for b in bookings] == [first.json()["id"]]
    assert [n.related_booking_id for n in notifications] == [first.json()["id"]]


@pytest.mark.asyncio
async def test_failed_commit_is_reported(db_session, auth_headers, facility, booking_date, monkeypatch):
    """A booking that was never stored must not be answered with 201."""

    async def failing_commit(self):
        raise OperationalError("COMMIT", {}, Exception("connection lost"))

    monkeypatch.setattr(AsyncSession, "commit", failing_commit)
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.post(
            "/api/v1/bookings", json=booking_payload(booking_date, facility_id=facility.id), headers=auth_headers
        )
    monkeypatch.undo()

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}
    await task_runner.drain()
    assert (await db_session.execute(select(Booking))).scalars().all() == []
    assert (await db_session.execute(select(Notification))).scalars().all() == []
