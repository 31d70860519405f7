"""
Record Models for the Nine Store Collections

These models describe what the back office stores: services, subscriptions,
people, seat assignments, money in and out, projects, milestones and tasks.

DESIGN DECISION: Field names keep the camelCase wire form used by the store
and by snapshot files, so a record dumped from a model is byte-compatible with
one read back from a backup.

The backup pipeline does NOT use these models. It moves records as opaque
JSON objects and only the seeding and KPI code relies on typed fields.
Extra fields are allowed so older or newer records still load.
"""

import datetime as dt
from enum import Enum
from typing import Any, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def new_id() -> str:
    """Create a new opaque record key."""
    return str(uuid4())


# =============================================================================
# COLLECTION CATALOGUE
# =============================================================================

class Collection(str, Enum):
    """
    The nine collections of the store, in snapshot order.

    A snapshot must contain every one of these, even when empty.
    """
    SERVICES = "services"
    SUBSCRIPTIONS = "subscriptions"
    PEOPLE = "people"
    ASSIGNMENTS = "assignments"
    EXPENSES = "expenses"
    INCOMES = "incomes"
    PROJECTS = "projects"
    MILESTONES = "milestones"
    TASKS = "tasks"


COLLECTIONS: tuple[str, ...] = tuple(c.value for c in Collection)

# Secondary indexes per collection (usable with query_range)
COLLECTION_INDEXES: dict[str, tuple[str, ...]] = {
    "services": ("name", "active"),
    "subscriptions": ("serviceId", "status"),
    "people": ("name",),
    "assignments": ("subscriptionId", "personId", "status"),
    "expenses": ("date",),
    "incomes": ("date", "assignmentId"),
    "projects": ("status",),
    "milestones": ("projectId",),
    "tasks": ("status", "due"),
}


# =============================================================================
# ENUMS
# =============================================================================

class BillingCycle(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELED = "canceled"


class AssignmentStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    ENDED = "ended"


class PaidVia(str, Enum):
    CASH = "cash"
    BANK = "bank"
    PAYPAL = "paypal"
    OTHER = "other"


class ProjectStatus(str, Enum):
    IDEA = "idea"
    PLANNING = "planning"
    ACTIVE = "active"
    DONE = "done"


class MilestoneStatus(str, Enum):
    OPEN = "open"
    DONE = "done"


class TaskStatus(str, Enum):
    OPEN = "open"
    DOING = "doing"
    REVIEW = "review"
    DONE = "done"


class TaskRepeat(str, Enum):
    NONE = "none"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


# =============================================================================
# RECORDS
# =============================================================================

class StoreRecord(BaseModel):
    """Base for every stored record: an opaque string key plus fields."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        extra="allow",
        use_enum_values=True,
    )

    id: str = Field(
        default_factory=new_id,
        min_length=1,
        description="Collection-unique record key"
    )

    def to_record(self) -> dict[str, Any]:
        """Dump to the plain JSON object kept in the store."""
        return self.model_dump(mode="json", exclude_none=True)


class Service(StoreRecord):
    """A subscribable product/plan (e.g. Spotify Family)."""

    name: str = Field(..., min_length=1, max_length=200)
    plan: Optional[str] = None
    maxSlots: int = Field(..., ge=0, description="Seats the plan allows")
    baseCostPerMonth: float = Field(..., ge=0)
    billingCycle: BillingCycle = BillingCycle.MONTHLY
    notes: Optional[str] = None
    active: bool = True


class Subscription(StoreRecord):
    """One purchased instance of a Service."""

    serviceId: str
    startDate: dt.date
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    currentSlots: int = Field(..., ge=0)
    customNotes: Optional[str] = None


class Person(StoreRecord):
    """Someone who can be billed for a seat."""

    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[str] = None
    phone: Optional[str] = None
    tg: Optional[str] = Field(default=None, description="Telegram handle")
    notes: Optional[str] = None


class Assignment(StoreRecord):
    """One person's paid seat on one subscription."""

    subscriptionId: str
    personId: str
    since: dt.date
    pricePerMonth: float = Field(..., ge=0)
    billingDay: int = Field(default=1, ge=1, le=31)
    status: AssignmentStatus = AssignmentStatus.ACTIVE
    # Kept as strings: the UI writes either plain dates or full timestamps
    lastPaidAt: Optional[str] = None
    nextDueAt: Optional[str] = None
    notes: Optional[str] = None


class Expense(StoreRecord):
    """A dated outgoing payment."""

    date: dt.date
    serviceId: Optional[str] = None
    subscriptionId: Optional[str] = None
    amount: float
    memo: Optional[str] = None


class Income(StoreRecord):
    """A dated incoming payment, usually for an assignment."""

    date: dt.date
    assignmentId: str
    amount: float
    memo: Optional[str] = None
    paidVia: Optional[PaidVia] = None


class Project(StoreRecord):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    status: ProjectStatus = ProjectStatus.IDEA
    tags: list[str] = Field(default_factory=list)


class Milestone(StoreRecord):
    projectId: str
    title: str = Field(..., min_length=1)
    due: Optional[dt.date] = None
    status: MilestoneStatus = MilestoneStatus.OPEN


class Task(StoreRecord):
    projectId: Optional[str] = None
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    priority: Literal[1, 2, 3] = 2
    tags: list[str] = Field(default_factory=list)
    due: Optional[dt.date] = None
    repeating: Optional[TaskRepeat] = None
    status: TaskStatus = TaskStatus.OPEN


RECORD_MODELS: dict[str, type[StoreRecord]] = {
    "services": Service,
    "subscriptions": Subscription,
    "people": Person,
    "assignments": Assignment,
    "expenses": Expense,
    "incomes": Income,
    "projects": Project,
    "milestones": Milestone,
    "tasks": Task,
}
