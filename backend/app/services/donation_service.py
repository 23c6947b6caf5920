"""
Donations to athlete campaigns.

Payments are simulated: every accepted donation is recorded as succeeded.
The campaign total is bumped with one atomic statement in the same
transaction as the donation row:

    UPDATE athletes SET raised_amount = raised_amount + :amount
     WHERE id = :athlete_id AND is_active

so concurrent donations never overwrite each other's increments.
"""

import secrets
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.core.logging import get_logger
from app.models.athlete import Athlete, Donation
from app.models.user import User
from app.schemas.donation import DonationCreate
from app.services.notification_service import notify

logger = get_logger(__name__)


def _format_amount(amount: Decimal) -> str:
    return f"LKR {amount:,.2f}"


async def make_donation(
    db: AsyncSession,
    donor: User,
    athlete_id: int,
    donation_data: DonationCreate,
) -> tuple[Donation, Decimal, Decimal]:
    """
    Record a donation and increment the campaign total.
    Returns (donation, raised_amount, goal_amount) as of this transaction.
    """
    athlete = await db.get(Athlete, athlete_id)
    if athlete is None or not athlete.is_active:
        raise NotFoundError("Active athlete campaign not found")

    amount = donation_data.amount
    donor_name = "Anonymous" if donation_data.is_anonymous else (donation_data.donor_name or donor.name)
    donation = Donation(
        donor_user_id=donor.id,
        athlete_id=athlete_id,
        amount=amount,
        is_anonymous=donation_data.is_anonymous,
        donor_name=donor_name,
        donor_email=donation_data.donor_email,
        message=(donation_data.message or "").strip() or None,
        payment_status="succeeded",
        payment_reference=f"manual_{secrets.token_hex(8)}",
    )
    db.add(donation)
    await db.flush()
    await db.refresh(donation)

    result = await db.execute(
        update(Athlete)
        .where(Athlete.id == athlete_id, Athlete.is_active.is_(True))
        .values(raised_amount=Athlete.raised_amount + amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFoundError("Active athlete campaign not found")

    totals = await db.execute(
        select(Athlete.raised_amount, Athlete.goal_amount).where(Athlete.id == athlete_id)
    )
    raised_amount, goal_amount = totals.one()

    await notify(
        db,
        donor.id,
        "donation_thankyou",
        f"Thank you for your generous donation of {_format_amount(amount)} to {athlete.name}! "
        "Your support makes a difference.",
        link=f"/donations/{athlete_id}",
        related_athlete_id=athlete_id,
    )
    if athlete.user_id is not None:
        display_name = "An anonymous donor" if donation.is_anonymous else donor_name
        await notify(
            db,
            athlete.user_id,
            "donation_received",
            f"Great news! {display_name} just donated {_format_amount(amount)} to your campaign. "
            "Keep up the great work!",
            link="/profile/donations",
            related_user_id=None if donation.is_anonymous else donor.id,
            related_athlete_id=athlete_id,
        )

    logger.info(
        "donation_recorded",
        donation_id=donation.id,
        athlete_id=athlete_id,
        donor_user_id=donor.id,
        amount=float(amount),
        raised_amount=float(raised_amount),
    )
    return donation, Decimal(str(raised_amount)), Decimal(str(goal_amount))
