"""Which perishable entry batches still hold stock, and how close they are to expiring.

Derived read over one item's movements; nothing here mutates the ledger or
feeds back into quantities.
"""

import calendar
from dataclasses import dataclass
from datetime import date
from enum import Enum as PyEnum

from stockledger.models.movement import Movement, MovementType


class ExpiryAlert(str, PyEnum):
    URGENT = "urgent"  # less than one month left, or already expired
    WARNING = "warning"  # less than two months
    REMINDER = "reminder"  # less than three months
    NONE = "none"


@dataclass
class Batch:
    movement: Movement
    remaining_quantity: int
    active: bool
    alert: ExpiryAlert

    @property
    def expiration_date(self) -> date:
        return self.movement.expiration_date


def add_months(day: date, months: int) -> date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def classify_expiry(expiration_date: date, today: date) -> ExpiryAlert:
    if expiration_date < add_months(today, 1):
        return ExpiryAlert.URGENT
    if expiration_date < add_months(today, 2):
        return ExpiryAlert.WARNING
    if expiration_date < add_months(today, 3):
        return ExpiryAlert.REMINDER
    return ExpiryAlert.NONE


def reconcile_batches(movements: list[Movement], today: date | None = None) -> list[Batch]:
    """FIFO depletion of dated entry batches by the item's total exits.

    Batches are walked oldest expiry first. A batch fully covered by the
    remaining exits is consumed. The first batch that is only partly covered
    is active and absorbs the rest of the exits; every later batch is active
    with its full quantity.
    """
    today = today or date.today()
    entries = sorted(
        (m for m in movements if m.type == MovementType.ENTRY and m.expiration_date),
        key=lambda m: (m.expiration_date, m.date),
    )
    remaining_exits = sum(m.quantity for m in movements if m.type == MovementType.EXIT)

    batches = []
    for entry in entries:
        remaining = entry.quantity
        active = True
        if remaining_exits > 0:
            if entry.quantity <= remaining_exits:
                remaining_exits -= entry.quantity
                remaining = 0
                active = False
            else:
                remaining = entry.quantity - remaining_exits
                remaining_exits = 0
        alert = classify_expiry(entry.expiration_date, today) if active else ExpiryAlert.NONE
        batches.append(Batch(movement=entry, remaining_quantity=remaining, active=active, alert=alert))
    return batches


def active_batches(movements: list[Movement], today: date | None = None) -> list[Batch]:
    return [b for b in reconcile_batches(movements, today) if b.active]
