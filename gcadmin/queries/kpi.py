"""
Dashboard KPIs

DESIGN DECISION: KPIs are computed from stored records on demand.
Nothing is cached or pre-aggregated, so the numbers are always exactly what
the store holds. Money is summed as Decimal and only rounded at the end.
"""

import datetime as dt
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from gcadmin.models.records import AssignmentStatus, SubscriptionStatus, TaskStatus
from gcadmin.models.snapshot import Record
from gcadmin.services.storage.interface import StoreInterface

CENT = Decimal("0.01")

# Billing days past the 28th fall on the 28th so every month has one
MAX_BILLING_DAY = 28


class Kpis(BaseModel):
    """Dashboard figures, serialized in camelCase."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    services_active: int
    free_slots: int
    utilization: int
    mrr: float
    net_month: float
    overdue_payments: int
    tasks_today: int

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def _money(value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        return Decimal("0")
    try:
        return Decimal(str(value))
    except ArithmeticError:
        return Decimal("0")


def _day(value: Any) -> str:
    """Date part (YYYY-MM-DD) of a stored date or timestamp string."""
    return str(value)[:10] if value else ""


def is_overdue(assignment: Record, today: dt.date) -> bool:
    """
    An active assignment is overdue once this month's billing day has
    passed and no payment has been recorded since the 1st.
    """
    if assignment.get("status") != AssignmentStatus.ACTIVE.value:
        return False
    try:
        billing_day = int(assignment.get("billingDay") or 1)
    except (TypeError, ValueError):
        billing_day = 1
    due_day = min(max(billing_day, 1), MAX_BILLING_DAY)
    due_date = today.replace(day=due_day)

    month_start = today.replace(day=1).isoformat()
    last_paid = _day(assignment.get("lastPaidAt"))
    paid_this_month = bool(last_paid) and last_paid >= month_start
    return not paid_this_month and today >= due_date


async def calc_kpis(
    store: StoreInterface,
    today: Optional[dt.date] = None,
) -> Kpis:
    """Compute the dashboard KPIs for `today` (defaults to the local date)."""
    today = today or dt.date.today()
    services = await store.list("services")
    subscriptions = await store.list("subscriptions")
    assignments = await store.list("assignments")
    incomes = await store.list("incomes")
    expenses = await store.list("expenses")
    tasks = await store.list("tasks")

    capacity = sum(
        int(s.get("currentSlots") or 0)
        for s in subscriptions
        if s.get("status") == SubscriptionStatus.ACTIVE.value
    )
    active = [
        a for a in assignments
        if a.get("status") == AssignmentStatus.ACTIVE.value
    ]
    free_slots = max(0, capacity - len(active))
    utilization = (
        int((Decimal(len(active) * 100) / capacity).quantize(Decimal("1"), ROUND_HALF_UP))
        if capacity else 0
    )

    mrr = sum((_money(a.get("pricePerMonth")) for a in active), Decimal("0"))

    month = today.isoformat()[:7]
    money_in = sum(
        (_money(i.get("amount")) for i in incomes if _day(i.get("date")).startswith(month)),
        Decimal("0"),
    )
    money_out = sum(
        (_money(e.get("amount")) for e in expenses if _day(e.get("date")).startswith(month)),
        Decimal("0"),
    )

    return Kpis(
        services_active=sum(1 for s in services if s.get("active")),
        free_slots=free_slots,
        utilization=utilization,
        mrr=float(mrr.quantize(CENT, ROUND_HALF_UP)),
        net_month=float((money_in - money_out).quantize(CENT, ROUND_HALF_UP)),
        overdue_payments=sum(1 for a in assignments if is_overdue(a, today)),
        tasks_today=sum(1 for t in tasks if t.get("status") != TaskStatus.DONE.value),
    )
