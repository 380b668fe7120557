import logging
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Union

from .dates import parse_calendar_date
from .models import MembershipStatus, MembershipType

ACTIVE = "active"
EXPIRES_SOON = "expires-soon"
EXPIRED = "expired"

STATUS_LABELS = {
    ACTIVE: "Active",
    EXPIRES_SOON: "Expires soon",
    EXPIRED: "Expired",
}

# Days before expiry (inclusive) during which a membership counts as expiring soon.
EXPIRY_WARNING_DAYS = 7

DEFAULT_PLAN_KEY = "mensual"
DEFAULT_DURATION_DAYS = 30

DEFAULT_PLANS = (
    MembershipType(key="mensual", name="Mensual", duration_days=30, price=15000.0),
    MembershipType(key="trimestral", name="Trimestral", duration_days=90, price=40000.0),
    MembershipType(key="semestral", name="Semestral", duration_days=180, price=75000.0),
    MembershipType(key="anual", name="Anual", duration_days=365, price=140000.0),
)


class PlanCatalog:
    """The set of plans members can hold, indexed by stable key and by row id."""

    def __init__(self, plans: Iterable[MembershipType]):
        self.plans: List[MembershipType] = [p for p in plans if p.is_active]
        self._by_key: Dict[str, MembershipType] = {
            p.key.strip().lower(): p for p in self.plans
        }
        self._by_id: Dict[str, MembershipType] = {
            str(p.id): p for p in self.plans if p.id is not None
        }

    @classmethod
    def default(cls) -> "PlanCatalog":
        return cls(DEFAULT_PLANS)

    def __len__(self):
        return len(self.plans)

    def __iter__(self):
        return iter(self.plans)

    @property
    def fallback(self) -> MembershipType:
        plan = self._by_key.get(DEFAULT_PLAN_KEY)
        if plan is not None:
            return plan
        return MembershipType(
            key=DEFAULT_PLAN_KEY,
            name="Mensual",
            duration_days=DEFAULT_DURATION_DAYS,
            price=DEFAULT_PLANS[0].price,
        )

    def get(self, plan_key: Optional[str]) -> Optional[MembershipType]:
        if plan_key is None:
            return None
        lookup = str(plan_key).strip()
        return self._by_key.get(lookup.lower()) or self._by_id.get(lookup)

    def resolve(self, plan_key: Optional[str]) -> MembershipType:
        """Returns the plan for a key or id, or the fallback plan for unknown keys."""
        plan = self.get(plan_key)
        if plan is None:
            fallback = self.fallback
            logging.warning(
                f"Unknown membership plan '{plan_key}', using '{fallback.key}' "
                f"({fallback.duration_days} days)."
            )
            return fallback
        return plan


def calculate_expiry_date(
    start_date: Union[str, date],
    plan_key: Optional[str],
    catalog: Optional[PlanCatalog] = None,
) -> date:
    """Expiry is start_date plus the plan's duration in days.

    Works on calendar dates only, so the result is the same whatever the
    time of day or time zone the caller runs in.
    """
    start = parse_calendar_date(start_date)
    plan = (catalog or PlanCatalog.default()).resolve(plan_key)
    return start + timedelta(days=plan.duration_days)


def status_of(today: Union[str, date], expiry: Union[str, date]) -> MembershipStatus:
    days = (parse_calendar_date(expiry) - parse_calendar_date(today)).days
    if days < 0:
        state = EXPIRED
    elif days <= EXPIRY_WARNING_DAYS:
        state = EXPIRES_SOON
    else:
        state = ACTIVE
    return MembershipStatus(state=state, days_until_expiry=days, label=STATUS_LABELS[state])


def describe_status(status: MembershipStatus) -> str:
    """Human readable detail, e.g. 'Expires in 3 days' or 'Expired 2 days ago'."""
    if status.state == EXPIRED:
        return f"Expired {status.days_overdue} day{'s' if status.days_overdue != 1 else ''} ago"
    if status.days_until_expiry == 0:
        return "Expires today"
    if status.state == EXPIRES_SOON:
        return f"Expires in {status.days_left} day{'s' if status.days_left != 1 else ''}"
    return f"{status.days_left} days left"
