"""
Business dashboard figures.

Revenue and commission sums exclude cancelled bookings; collected
cancellation charges are reported separately. The month filter arrives as a
validated YYYY-MM string and becomes a typed date range here.
"""

import calendar
from datetime import date
from decimal import Decimal
from typing import Optional

from marketplace.models import BookingStatus
from marketplace.repositories.base import StoreTransaction
from marketplace.schemas.catalog import BusinessStats


def month_range(month: str) -> tuple[date, date]:
    year, month_number = (int(part) for part in month.split("-"))
    last_day = calendar.monthrange(year, month_number)[1]
    return date(year, month_number, 1), date(year, month_number, last_day)


async def business_stats(tx: StoreTransaction, business_id: int, month: Optional[str] = None) -> BusinessStats:
    date_from = date_to = None
    if month:
        date_from, date_to = month_range(month)

    bookings = await tx.list_bookings(business_id=business_id, date_from=date_from, date_to=date_to)

    live = [b for b in bookings if b.status != BookingStatus.CANCELLED]
    gross = sum((Decimal(str(b.price)) for b in live), Decimal("0.00"))
    commissions = sum((Decimal(str(b.commission_amount)) for b in live), Decimal("0.00"))
    charges = sum(
        (Decimal(str(b.cancellation_charge)) for b in bookings if b.status == BookingStatus.CANCELLED),
        Decimal("0.00"),
    )

    return BusinessStats(
        month=month,
        total=len(bookings),
        confirmed=sum(1 for b in bookings if b.status in (BookingStatus.CONFIRMED, BookingStatus.COMPLETED)),
        cancelled=sum(1 for b in bookings if b.status == BookingStatus.CANCELLED),
        pending=sum(1 for b in bookings if b.status == BookingStatus.PENDING),
        gross_revenue=gross,
        commissions=commissions,
        net_revenue=gross - commissions,
        cancellation_charges=charges,
    )
