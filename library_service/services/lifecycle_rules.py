"""Date and fine arithmetic for borrows and reservations.

Pure functions over naive UTC datetimes; the services feed them the values
configured on the Flask app.
"""
from datetime import datetime, timedelta
from decimal import Decimal

from flask import current_app, has_app_context

ONE_DAY = timedelta(days=1)

DEFAULTS = {
    "LOAN_PERIOD_DAYS": 14,
    "MAX_RENEWALS": 2,
    "RESERVATION_PERIOD_DAYS": 7,
    "DAILY_FINE": Decimal("1.00"),
}


def setting(name: str):
    if has_app_context():
        return current_app.config.get(name, DEFAULTS[name])
    return DEFAULTS[name]


def due_date_for(borrowed_at: datetime, loan_days: int | None = None) -> datetime:
    return borrowed_at + timedelta(days=loan_days or setting("LOAN_PERIOD_DAYS"))


def renewed_due_date(current_due: datetime, loan_days: int | None = None) -> datetime:
    # renewals stack on the previous due date, not on the renewal time
    return current_due + timedelta(days=loan_days or setting("LOAN_PERIOD_DAYS"))


def reservation_expiry(reserved_at: datetime, days: int | None = None) -> datetime:
    return reserved_at + timedelta(days=days or setting("RESERVATION_PERIOD_DAYS"))


def days_overdue(due_date: datetime, at: datetime) -> int:
    """Started days past ``due_date``; one second late counts as a full day."""
    if at <= due_date:
        return 0
    return -((due_date - at) // ONE_DAY)


def fine_for(due_date: datetime, returned_at: datetime, daily_fine: Decimal | None = None):
    """Fine owed for a return at ``returned_at``, or None when it is on time."""
    days = days_overdue(due_date, returned_at)
    if days <= 0:
        return None
    rate = Decimal(str(daily_fine if daily_fine is not None else setting("DAILY_FINE")))
    return (rate * days).quantize(Decimal("0.01"))


def can_renew(renewal_count: int, max_renewals: int | None = None) -> bool:
    limit = max_renewals if max_renewals is not None else setting("MAX_RENEWALS")
    return renewal_count < limit
