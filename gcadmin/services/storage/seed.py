"""
Demo data for an empty store.

The first start of a fresh install shows a few services, people and tasks
instead of an empty dashboard. Seeding only happens while `services` is empty.
"""

import datetime as dt
from typing import TYPE_CHECKING, Optional

import structlog

from gcadmin.models.records import (
    COLLECTIONS,
    Assignment,
    Expense,
    Income,
    PaidVia,
    Person,
    Project,
    Service,
    Subscription,
    Task,
)
from gcadmin.models.snapshot import Record
from gcadmin.services.storage.interface import StoreInterface

if TYPE_CHECKING:
    from gcadmin.audit.logger import AuditLogger

logger = structlog.get_logger(__name__)


def seed_records(today: Optional[dt.date] = None) -> dict[str, list[Record]]:
    """Build the demo records, keyed by collection."""
    today = today or dt.date.today()

    services = [
        Service(name="Spotify", plan="Family", maxSlots=6, baseCostPerMonth=14.99),
        Service(name="Apple Music", plan="Individual", maxSlots=1,
                baseCostPerMonth=10.99, active=False),
        Service(name="Apple One", plan="Family", maxSlots=5, baseCostPerMonth=19.95),
        Service(name="Premium", plan="All-in", maxSlots=99, baseCostPerMonth=0),
    ]
    spotify, apple_one = services[0], services[2]

    subscriptions = [
        Subscription(serviceId=spotify.id, startDate=today, currentSlots=6),
        Subscription(serviceId=apple_one.id, startDate=today, currentSlots=5),
    ]
    people = [Person(name="Sophia"), Person(name="Max M.")]
    assignments = [
        Assignment(subscriptionId=subscriptions[0].id, personId=people[0].id,
                   since=today, pricePerMonth=7.99, billingDay=1),
        Assignment(subscriptionId=subscriptions[1].id, personId=people[1].id,
                   since=today, pricePerMonth=19.99, billingDay=5),
    ]
    incomes = [
        Income(date=today, assignmentId=a.id, amount=a.pricePerMonth,
               memo="Initial payment", paidVia=PaidVia.BANK)
        for a in assignments
    ]
    expenses = [
        Expense(date=today, serviceId=spotify.id, amount=14.99, memo="Spotify Family"),
        Expense(date=today, serviceId=apple_one.id, amount=19.95, memo="Apple One Family"),
    ]
    projects = [
        Project(name="Abo-Website", description="Continue with patch 016+",
                status="active", tags=["web", "subs"]),
    ]
    tasks = [
        Task(title="Patch 016 StatusChip", priority=2, tags=["abo-website"]),
        Task(title="Giannicorp Branding Update", priority=3, tags=["branding"]),
    ]

    models = {
        "services": services,
        "subscriptions": subscriptions,
        "people": people,
        "assignments": assignments,
        "expenses": expenses,
        "incomes": incomes,
        "projects": projects,
        "milestones": [],
        "tasks": tasks,
    }
    return {name: [m.to_record() for m in models[name]] for name in COLLECTIONS}


async def ensure_seed(
    store: StoreInterface,
    audit_logger: Optional["AuditLogger"] = None,
    today: Optional[dt.date] = None,
) -> bool:
    """
    Seed the store with demo data if it has no services yet.

    Returns:
        True if demo data was written
    """
    if await store.count("services") > 0:
        return False

    records = seed_records(today)
    async with store.transaction(list(COLLECTIONS)) as tx:
        # Re-check inside the transaction; another caller may have seeded
        if await tx.count("services") > 0:
            return False
        for name in COLLECTIONS:
            await tx.bulk_insert(name, records[name])

    counts = {name: len(records[name]) for name in COLLECTIONS}
    logger.info("store_seeded", counts=counts)
    if audit_logger is not None:
        await audit_logger.log_store_seeded(counts)
    return True
