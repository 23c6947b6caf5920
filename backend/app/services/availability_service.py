"""
Facility availability grid.

For one facility and one calendar month, every day gets the fixed catalog of
two-hour slots, each marked available or not:

  day < today (UTC)                  -> every slot unavailable
  no operating-hours entry for day   -> every slot unavailable (closed)
  malformed open/close for day       -> every slot unavailable (that day only)
  otherwise a slot is available iff  start >= open
                                     end   <= close   (close "00:00" = 24:00)
                                     not occupied by a booking that day

Occupied means a booking for the facility whose status is not cancelled or
failed. That deliberately differs from the creation-time conflict check
(which only counts upcoming/completed), so a no-show still greys out its slot.

The computation never raises for bad stored data; only an unknown facility
is an error. Results are cached per (facility, month, today).
"""

import calendar
import re
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.core.logging import get_logger
from app.models.booking import Booking
from app.models.facility import Facility
from app.services.cache_service import (
    get_availability_generation,
    get_cached_availability,
    set_cached_availability,
)

logger = get_logger(__name__)

SLOT_CATALOG = (
    "06:00-08:00",
    "08:00-10:00",
    "10:00-12:00",
    "12:00-14:00",
    "14:00-16:00",
    "16:00-18:00",
    "18:00-20:00",
    "20:00-22:00",
)
NON_OCCUPYING_STATUSES = ("cancelled", "failed")

_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")
_CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def parse_month(month: Optional[str], today: date) -> date:
    """First day of the requested "YYYY-MM" month; the current month when absent or malformed."""
    match = _MONTH_RE.match(month or "")
    if match:
        year, month_number = int(match.group(1)), int(match.group(2))
        if 1 <= month_number <= 12 and year >= 1:
            return date(year, month_number, 1)
    if month:
        logger.info("availability_month_defaulted", requested=month)
    return today.replace(day=1)


def month_bounds(first_day: date) -> tuple[date, date]:
    """[first day, first day of next month)"""
    days = calendar.monthrange(first_day.year, first_day.month)[1]
    return first_day, first_day + timedelta(days=days)


def _clock_minutes(value, is_close: bool = False) -> int:
    match = _CLOCK_RE.match(str(value).strip()) if value is not None else None
    if not match:
        raise ValueError(f"bad clock value {value!r}")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if minutes > 59 or hours > 24 or (hours == 24 and minutes):
        raise ValueError(f"bad clock value {value!r}")
    total = hours * 60 + minutes
    if is_close and total == 0:
        return 24 * 60
    return total


def _slot_minutes(slot: str) -> tuple[int, int]:
    start, end = slot.split("-")
    return _clock_minutes(start), _clock_minutes(end, is_close=True)


def _hours_by_weekday(operating_hours) -> dict[str, dict]:
    table = {}
    for entry in operating_hours or []:
        day = entry.get("day") if isinstance(entry, dict) else None
        if day:
            table.setdefault(str(day).strip().lower(), entry)
    return table


def _closed_day(day: date) -> dict:
    return {"date": day.isoformat(), "slots": [{"time": slot, "available": False} for slot in SLOT_CATALOG]}


def build_availability_grid(
    first_day: date,
    operating_hours: list,
    occupied: dict[date, set[str]],
    today: date,
) -> list[dict]:
    """Pure grid computation for one month; see module docstring for the rules."""
    start, end = month_bounds(first_day)
    hours_table = _hours_by_weekday(operating_hours)
    grid = []

    day = start
    while day < end:
        entry = hours_table.get(calendar.day_name[day.weekday()].lower())
        if day < today or entry is None:
            grid.append(_closed_day(day))
            day += timedelta(days=1)
            continue

        try:
            opens = _clock_minutes(entry.get("open"))
            closes = _clock_minutes(entry.get("close"), is_close=True)
        except ValueError as e:
            logger.warning("operating_hours_malformed", date=day.isoformat(), entry=entry, error=str(e))
            grid.append(_closed_day(day))
            day += timedelta(days=1)
            continue

        taken = occupied.get(day, set())
        slots = []
        for slot in SLOT_CATALOG:
            slot_start, slot_end = _slot_minutes(slot)
            available = slot_start >= opens and slot_end <= closes and slot not in taken
            slots.append({"time": slot, "available": available})
        grid.append({"date": day.isoformat(), "slots": slots})
        day += timedelta(days=1)

    return grid


async def _occupied_slots(db: AsyncSession, facility_id: int, start: date, end: date) -> dict[date, set[str]]:
    result = await db.execute(
        select(Booking.date, Booking.time_slot).where(
            Booking.facility_id == facility_id,
            Booking.date >= start,
            Booking.date < end,
            Booking.status.not_in(NON_OCCUPYING_STATUSES),
        )
    )
    occupied: dict[date, set[str]] = defaultdict(set)
    for booked_date, time_slot in result.all():
        occupied[booked_date].add(time_slot)
    return occupied


async def get_facility_availability(
    db: AsyncSession,
    facility_id: int,
    month: Optional[str] = None,
    today: Optional[date] = None,
) -> list[dict]:
    """
    Availability grid for a facility and month ("YYYY-MM").
    Raises NotFoundError for an unknown facility.
    """
    facility = await db.get(Facility, facility_id)
    if facility is None:
        raise NotFoundError("Facility not found")

    today = today or utc_today()
    first_day = parse_month(month, today)
    month_key = first_day.strftime("%Y-%m")

    generation = await get_availability_generation(facility_id)
    if generation is not None:
        cached = await get_cached_availability(facility_id, generation, month_key, today.isoformat())
        if cached is not None:
            return cached

    if not facility.operating_hours:
        logger.warning("operating_hours_missing", facility_id=facility_id)

    start, end = month_bounds(first_day)
    occupied = await _occupied_slots(db, facility_id, start, end)
    grid = build_availability_grid(first_day, facility.operating_hours, occupied, today)

    if generation is not None:
        await set_cached_availability(facility_id, generation, month_key, today.isoformat(), grid)
    logger.info(
        "availability_computed",
        facility_id=facility_id,
        month=month_key,
        occupied_days=len(occupied),
    )
    return grid
