"""
Cost calculation for new bookings.

PRICING RULES
=============

  facility_cost        = facility hourly rate x slot hours
                         (only when the facility is the primary target; a
                         trainer session held at a facility does not pay rent)
  equipment_cost       = sum(unit price x quantity x item hours)
                         over catalog items with enough advertised stock
  transportation_cost  = flat TRANSPORTATION_FEE when requested
  trainer_cost         = trainer hourly rate x trainer hours
  total_cost           = sum of the four

Trainer hours are the requested session hours when the trainer is primary,
otherwise the slot duration. Equipment uses the same rule, which means gear
rented for a facility booking with a trainer is billed on the slot length
even if the trainer session is shorter.

Everything here is a pure function of its inputs: no database access, no
clock. Prices are captured into RentedItem snapshots so later catalog edits
never change an existing booking.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Sequence

from app.core.config import get_settings
from app.core.exceptions import ValidationError
from app.core.logging import get_logger
from app.models.booking import slot_duration_hours

logger = get_logger(__name__)

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class RentedItem:
    name: str
    quantity: int
    unit_price_per_hour: Decimal

    def to_snapshot(self) -> dict:
        return {
            "name": self.name,
            "quantity": self.quantity,
            "unit_price_per_hour": float(self.unit_price_per_hour),
        }


@dataclass
class CostBreakdown:
    duration_hours: Decimal
    facility_cost: Decimal = Decimal("0.00")
    equipment_cost: Decimal = Decimal("0.00")
    transportation_cost: Decimal = Decimal("0.00")
    trainer_cost: Decimal = Decimal("0.00")
    rented_equipment: list[RentedItem] = field(default_factory=list)

    @property
    def total_cost(self) -> Decimal:
        return self.facility_cost + self.equipment_cost + self.transportation_cost + self.trainer_cost


def _session_hours(value) -> Decimal:
    try:
        hours = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError("Invalid session duration")
    if not hours.is_finite() or hours <= 0:
        raise ValidationError("Invalid session duration")
    return hours


def _price_equipment(facility, requests: Sequence, hours: Decimal) -> tuple[Decimal, list[RentedItem]]:
    total = Decimal("0")
    rented: list[RentedItem] = []
    for request in requests:
        name, quantity = request.name, request.quantity
        if not name or not quantity or quantity <= 0:
            logger.warning("equipment_request_ignored", equipment=name, quantity=quantity, reason="invalid_quantity")
            continue
        item = facility.find_equipment(name)
        if item is None or (item.get("available") or 0) < quantity:
            logger.warning(
                "equipment_request_ignored",
                equipment=name,
                quantity=quantity,
                available=item.get("available") if item else None,
                reason="unknown" if item is None else "insufficient_stock",
            )
            continue
        unit_price = Decimal(str(item.get("price_per_hour") or 0))
        total += unit_price * quantity * hours
        rented.append(RentedItem(name=item["name"], quantity=quantity, unit_price_per_hour=unit_price))
    return to_money(total), rented


def calculate_costs(
    target_kind: str,
    time_slot: str,
    facility=None,
    trainer=None,
    equipment: Sequence = (),
    needs_transportation: bool = False,
    session_hours: Optional[float] = None,
) -> CostBreakdown:
    """
    Price a booking from its targets and extras.

    `facility`/`trainer` are the resolved targets (None when not part of the
    booking); `equipment` items expose `.name` and `.quantity`.
    """
    slot_hours = Decimal(str(slot_duration_hours(time_slot)))
    requested_hours = _session_hours(session_hours) if session_hours is not None else None
    trainer_hours = requested_hours if target_kind == "trainer" and requested_hours else slot_hours

    breakdown = CostBreakdown(duration_hours=trainer_hours if target_kind == "trainer" else slot_hours)

    if facility is not None:
        if target_kind == "facility":
            breakdown.facility_cost = to_money(Decimal(str(facility.price_per_hour or 0)) * slot_hours)
        if equipment:
            breakdown.equipment_cost, breakdown.rented_equipment = _price_equipment(
                facility, equipment, trainer_hours
            )

    if trainer is not None:
        breakdown.trainer_cost = to_money(Decimal(str(trainer.hourly_rate or 0)) * trainer_hours)

    if needs_transportation:
        breakdown.transportation_cost = to_money(get_settings().TRANSPORTATION_FEE)

    logger.debug(
        "booking_costs_calculated",
        target_kind=target_kind,
        duration_hours=float(breakdown.duration_hours),
        facility_cost=float(breakdown.facility_cost),
        equipment_cost=float(breakdown.equipment_cost),
        transportation_cost=float(breakdown.transportation_cost),
        trainer_cost=float(breakdown.trainer_cost),
        total_cost=float(breakdown.total_cost),
    )
    return breakdown
