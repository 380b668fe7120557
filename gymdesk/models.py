from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional

INCOME = "income"
EXPENSE = "expense"
TRANSACTION_TYPES = (INCOME, EXPENSE)


def _from_row(cls, row: Dict[str, Any]):
    """Builds a dataclass from a store row, ignoring columns it does not declare."""
    names = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in dict(row).items() if k in names})


def _to_row(obj, exclude=("id", "created_at", "updated_at")) -> Dict[str, Any]:
    return {k: v for k, v in asdict(obj).items() if k not in exclude}


@dataclass
class Member:
    dni: str
    name: str
    membership_type: str  # plan key
    start_date: str  # YYYY-MM-DD
    expiry_date: str  # YYYY-MM-DD
    phone: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row):
        return _from_row(cls, row)

    def to_row(self) -> Dict[str, Any]:
        return _to_row(self)


@dataclass
class Transaction:
    type: str  # 'income' or 'expense'
    amount: float
    concept: str
    date: str  # YYYY-MM-DD
    time: str  # HH:MM
    id: Optional[int] = None
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row):
        tx = _from_row(cls, row)
        tx.amount = float(tx.amount)
        return tx

    def to_row(self) -> Dict[str, Any]:
        return _to_row(self)


@dataclass
class CheckIn:
    member_dni: str
    member_name: str
    check_in_time: str  # local ISO timestamp, YYYY-MM-DDTHH:MM:SS
    membership_status: str  # label snapshot at check-in time
    id: Optional[int] = None
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row):
        return _from_row(cls, row)

    def to_row(self) -> Dict[str, Any]:
        return _to_row(self)


@dataclass
class MembershipType:
    key: str
    name: str
    duration_days: int
    price: float
    has_personal_trainer: bool = False
    description: Optional[str] = None
    is_active: bool = True
    id: Optional[Any] = None  # integer locally, UUID on the hosted store
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row):
        row = dict(row)
        if not row.get("key"):
            # Rows created before plans carried a key are addressed by name.
            row["key"] = str(row.get("name", "")).strip().lower()
        plan = _from_row(cls, row)
        plan.duration_days = int(plan.duration_days)
        plan.price = float(plan.price)
        plan.has_personal_trainer = bool(plan.has_personal_trainer)
        plan.is_active = bool(plan.is_active)
        return plan

    def to_row(self) -> Dict[str, Any]:
        return _to_row(self)


@dataclass
class Employee:
    name: str
    role: str
    email: str
    salary: float
    hire_date: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool = True
    id: Optional[Any] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row):
        employee = _from_row(cls, row)
        employee.salary = float(employee.salary)
        employee.is_active = bool(employee.is_active)
        return employee

    def to_row(self) -> Dict[str, Any]:
        return _to_row(self)


@dataclass
class ClassType:
    name: str
    duration_minutes: int
    price: float
    max_participants: int
    description: str = ""
    requires_trainer: bool = False
    is_active: bool = True
    id: Optional[Any] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row):
        class_type = _from_row(cls, row)
        class_type.price = float(class_type.price)
        class_type.requires_trainer = bool(class_type.requires_trainer)
        class_type.is_active = bool(class_type.is_active)
        return class_type

    def to_row(self) -> Dict[str, Any]:
        return _to_row(self)


@dataclass(frozen=True)
class MembershipStatus:
    state: str  # 'active', 'expires-soon' or 'expired'
    days_until_expiry: int
    label: str

    @property
    def days_left(self) -> int:
        return max(self.days_until_expiry, 0)

    @property
    def days_overdue(self) -> int:
        return max(-self.days_until_expiry, 0)


@dataclass
class MemberView:
    member: Member
    status: MembershipStatus
    plan_name: str


@dataclass
class CheckInResult:
    outcome: str  # 'found', 'not_found' or 'error'
    message: str
    member: Optional[Member] = None
    status: Optional[MembershipStatus] = None
    recorded: bool = False
    checked_in_at: Optional[str] = None


@dataclass(frozen=True)
class LedgerSummary:
    income: float = 0.0
    expense: float = 0.0
    balance: float = 0.0
    count: int = 0

