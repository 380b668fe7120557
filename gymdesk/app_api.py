import io
import logging
from typing import List, Optional, Tuple

import pandas as pd

from .database_manager import DatabaseManager, DataIntegrityError
from .dates import Clock, format_calendar_date, parse_calendar_date
from .ledger import filter_transactions, summary_of
from .models import (
    INCOME,
    TRANSACTION_TYPES,
    CheckIn,
    CheckInResult,
    ClassType,
    Employee,
    LedgerSummary,
    Member,
    MembershipType,
    MemberView,
    Transaction,
)
from .plans import PlanCatalog, calculate_expiry_date, describe_status, status_of
from .store import StoreError

FOUND = "found"
NOT_FOUND = "not_found"
ERROR = "error"


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def _number(value, cast, label: str):
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise ValueError(f"{label} must be numeric.")


class AppAPI:
    """
    API layer for the gym dashboard.
    Acts as a bridge between the UI and the table store.

    Mutations return (success, message) and never raise for store failures.
    Reads propagate StoreError so the caller can keep what it already shows.
    """

    def __init__(self, db_manager: DatabaseManager, clock: Optional[Clock] = None) -> None:
        self.db_manager = db_manager
        self.clock = clock or Clock()

    # Plan catalog

    def get_plan_catalog(self) -> PlanCatalog:
        """Active plans from the store, or the built-in plans if there are none
        or they cannot be read."""
        try:
            plans = self.db_manager.get_membership_types(active_only=True)
        except StoreError as e:
            logging.warning(f"Could not load membership types, using default plans: {e}")
            return PlanCatalog.default()
        if not plans:
            logging.warning("No active membership types found, using default plans.")
            return PlanCatalog.default()
        return PlanCatalog(plans)

    # Members

    def get_all_members_for_view(self, search: str = "") -> List[MemberView]:
        members = self.db_manager.get_all_members()
        term = _clean(search).lower()
        if term:
            members = [m for m in members if term in m.name.lower() or term in m.dni.lower()]
        catalog = self.get_plan_catalog()
        today = self.clock.today()
        views = []
        for member in members:
            plan = catalog.get(member.membership_type)
            views.append(
                MemberView(
                    member=member,
                    status=status_of(today, member.expiry_date),
                    plan_name=plan.name if plan else member.membership_type,
                )
            )
        return views

    def get_member(self, dni: str) -> Optional[Member]:
        return self.db_manager.get_member_by_dni(dni)

    def save_member(
        self,
        dni: str,
        name: str,
        membership_type: str,
        start_date,
        phone: Optional[str] = None,
        update_existing: bool = True,
    ) -> Tuple[bool, str]:
        """Registers a new member or updates the one holding this DNI.

        The expiry date is always recomputed from the start date and plan.
        New members also get an income entry for the plan price.
        With update_existing=False an already registered DNI is refused
        instead of overwritten.
        """
        dni, name, plan_key = _clean(dni), _clean(name), _clean(membership_type)
        if not dni:
            return False, "DNI is required."
        if not name:
            return False, "Name is required."
        if not plan_key:
            return False, "Membership type is required."
        if not start_date:
            return False, "Start date is required."
        try:
            start = parse_calendar_date(start_date)
        except ValueError as e:
            return False, str(e)

        try:
            catalog = self.get_plan_catalog()
            plan = catalog.resolve(plan_key)
            expiry = calculate_expiry_date(start, plan.key, catalog)
            values = {
                "name": name,
                "phone": _clean(phone) or None,
                "membership_type": plan.key,
                "start_date": format_calendar_date(start),
                "expiry_date": format_calendar_date(expiry),
            }

            existing = self.db_manager.get_member_by_dni(dni)
            if existing:
                if not update_existing:
                    return False, f"DNI {dni} is already registered to {existing.name}. Use Edit to change this member."
                if not self.db_manager.update_member(dni, **values):
                    return False, f"No member found with DNI {dni}. It may have been deleted."
                return True, "Member updated successfully."

            self.db_manager.add_member(Member(dni=dni, **values))
        except (StoreError, DataIntegrityError) as e:
            logging.error(f"Error saving member DNI {dni}: {e}", exc_info=True)
            return False, f"Error saving member: {e}"

        if not self._record_membership_income(plan, f"Membership {plan.name} - {name}"):
            return True, "Member added, but the payment could not be recorded."
        return True, "Member added successfully."

    def renew_membership(self, dni: str, membership_type: Optional[str] = None) -> Tuple[bool, str]:
        """Restarts the membership today on its current plan (or a new one)
        and records the renewal payment."""
        dni = _clean(dni)
        if not dni:
            return False, "DNI is required."
        try:
            member = self.db_manager.get_member_by_dni(dni)
            if member is None:
                return False, f"No member found with DNI {dni}."

            catalog = self.get_plan_catalog()
            plan = catalog.resolve(_clean(membership_type) or member.membership_type)
            today = self.clock.today()
            expiry = calculate_expiry_date(today, plan.key, catalog)
            updated = self.db_manager.update_member(
                dni,
                membership_type=plan.key,
                start_date=format_calendar_date(today),
                expiry_date=format_calendar_date(expiry),
            )
            if not updated:
                return False, f"No member found with DNI {dni}. It may have been deleted."
        except (StoreError, DataIntegrityError) as e:
            logging.error(f"Error renewing membership for DNI {dni}: {e}", exc_info=True)
            return False, f"Error renewing membership: {e}"

        logging.info(f"Membership for DNI {dni} renewed on plan '{plan.key}' until {expiry}.")
        if not self._record_membership_income(plan, f"Renewal {plan.name} - {member.name}"):
            return True, "Membership renewed, but the payment could not be recorded."
        return True, f"Membership renewed until {format_calendar_date(expiry)}."

    def delete_member(self, dni: str) -> Tuple[bool, str]:
        dni = _clean(dni)
        try:
            if self.db_manager.delete_member(dni):
                return True, "Member deleted."
            return False, f"No member found with DNI {dni}."
        except StoreError as e:
            logging.error(f"Error deleting member DNI {dni}: {e}", exc_info=True)
            return False, f"Error deleting member: {e}"

    def _record_membership_income(self, plan: MembershipType, concept: str) -> bool:
        if plan.price <= 0:
            logging.info(f"Plan '{plan.key}' is free, no income recorded for '{concept}'.")
            return True
        try:
            self.db_manager.add_transaction(
                Transaction(
                    type=INCOME,
                    amount=plan.price,
                    concept=concept,
                    date=self.clock.today_str(),
                    time=self.clock.time_str(),
                )
            )
            return True
        except StoreError as e:
            logging.error(f"Could not record income '{concept}': {e}", exc_info=True)
            return False

    # Check-in

    def check_in_member(self, dni: str) -> CheckInResult:
        dni = _clean(dni)
        if not dni:
            return CheckInResult(outcome=ERROR, message="Enter a valid DNI.")
        try:
            member = self.db_manager.get_member_by_dni(dni)
        except DataIntegrityError as e:
            return CheckInResult(outcome=ERROR, message=str(e))
        except StoreError as e:
            logging.error(f"Error looking up DNI {dni} for check-in: {e}", exc_info=True)
            return CheckInResult(outcome=ERROR, message="Error searching for the member.")

        if member is None:
            logging.info(f"Check-in: no member with DNI {dni}.")
            return CheckInResult(outcome=NOT_FOUND, message="Member not found.")

        status = status_of(self.clock.today(), member.expiry_date)
        checked_in_at = self.clock.timestamp_str()
        result = CheckInResult(
            outcome=FOUND,
            message=f"{member.name}: {describe_status(status)}.",
            member=member,
            status=status,
            checked_in_at=checked_in_at,
        )
        try:
            self.db_manager.add_checkin(
                CheckIn(
                    member_dni=member.dni,
                    member_name=member.name,
                    check_in_time=checked_in_at,
                    membership_status=status.label,
                )
            )
            result.recorded = True
        except StoreError as e:
            logging.error(f"Check-in for DNI {dni} could not be recorded: {e}", exc_info=True)
        return result

    def get_today_checkins(self) -> List[CheckIn]:
        return self.db_manager.get_checkins_for_day(self.clock.today())

    # Ledger

    def add_transaction(self, transaction_type: str, amount, concept: str) -> Tuple[bool, str]:
        if transaction_type not in TRANSACTION_TYPES:
            return False, "Type must be income or expense."
        try:
            amount_value = float(amount)
        except (TypeError, ValueError):
            return False, "Amount must be numeric."
        if amount_value <= 0:
            return False, "Amount must be greater than zero."
        concept = _clean(concept)
        if not concept:
            return False, "Concept is required."
        try:
            self.db_manager.add_transaction(
                Transaction(
                    type=transaction_type,
                    amount=amount_value,
                    concept=concept,
                    date=self.clock.today_str(),
                    time=self.clock.time_str(),
                )
            )
        except StoreError as e:
            logging.error(f"Error adding transaction '{concept}': {e}", exc_info=True)
            return False, f"Error recording transaction: {e}"
        return True, "Transaction added successfully."

    def delete_transaction(self, transaction_id: int) -> Tuple[bool, str]:
        try:
            if self.db_manager.delete_transaction(transaction_id):
                return True, "Transaction deleted."
            return False, f"No transaction found with ID {transaction_id}."
        except StoreError as e:
            logging.error(f"Error deleting transaction {transaction_id}: {e}", exc_info=True)
            return False, f"Error deleting transaction: {e}"

    def get_ledger(self, start_date, end_date, type_filter: str = "all") -> Tuple[List[Transaction], LedgerSummary]:
        transactions = self.db_manager.get_transactions(start_date, end_date)
        selected = filter_transactions(transactions, start_date, end_date, type_filter)
        return selected, summary_of(selected)

    def export_ledger_excel(self, transactions: List[Transaction], summary: LedgerSummary) -> bytes:
        details = pd.DataFrame(
            [
                {
                    "Date": t.date,
                    "Time": t.time,
                    "Type": t.type,
                    "Concept": t.concept,
                    "Amount": t.amount,
                }
                for t in transactions
            ],
            columns=["Date", "Time", "Type", "Concept", "Amount"],
        )
        totals = pd.DataFrame(
            [
                {"Item": "Income", "Value": summary.income},
                {"Item": "Expense", "Value": summary.expense},
                {"Item": "Balance", "Value": summary.balance},
                {"Item": "Transactions", "Value": summary.count},
            ]
        )
        output = io.BytesIO()
        with pd.ExcelWriter(output, engine="openpyxl") as writer:
            totals.to_excel(writer, index=False, sheet_name="Summary")
            details.to_excel(writer, index=False, sheet_name="Transactions")
        return output.getvalue()

    # Lookup rows

    def get_membership_types(self, active_only: bool = True) -> List[MembershipType]:
        return self.db_manager.get_membership_types(active_only=active_only)

    def save_membership_type(self, plan: MembershipType) -> Tuple[bool, str]:
        if not _clean(plan.key) or not _clean(plan.name):
            return False, "Plan key and name are required."
        try:
            plan.duration_days = _number(plan.duration_days, int, "Duration")
            plan.price = _number(plan.price, float, "Price")
        except ValueError as e:
            return False, str(e)
        if plan.duration_days <= 0:
            return False, "Duration must be at least one day."
        if plan.price < 0:
            return False, "Price cannot be negative."
        plan.key = _clean(plan.key).lower()
        return self._save_lookup(self.db_manager.save_membership_type, plan, "membership type")

    def deactivate_membership_type(self, plan_id) -> Tuple[bool, str]:
        return self._deactivate_lookup(self.db_manager.deactivate_membership_type, plan_id, "membership type")

    def get_employees(self, active_only: bool = True) -> List[Employee]:
        return self.db_manager.get_employees(active_only=active_only)

    def save_employee(self, employee: Employee) -> Tuple[bool, str]:
        if not _clean(employee.name) or not _clean(employee.role):
            return False, "Employee name and role are required."
        if not _clean(employee.email):
            return False, "Employee email is required."
        try:
            employee.salary = _number(employee.salary, float, "Salary")
        except ValueError as e:
            return False, str(e)
        if employee.salary < 0:
            return False, "Salary cannot be negative."
        if employee.id is None and not employee.hire_date:
            employee.hire_date = self.clock.today_str()
        return self._save_lookup(self.db_manager.save_employee, employee, "employee")

    def deactivate_employee(self, employee_id) -> Tuple[bool, str]:
        return self._deactivate_lookup(self.db_manager.deactivate_employee, employee_id, "employee")

    def get_class_types(self, active_only: bool = True) -> List[ClassType]:
        return self.db_manager.get_class_types(active_only=active_only)

    def save_class_type(self, class_type: ClassType) -> Tuple[bool, str]:
        if not _clean(class_type.name):
            return False, "Class name is required."
        try:
            class_type.duration_minutes = _number(class_type.duration_minutes, int, "Duration")
            class_type.max_participants = _number(class_type.max_participants, int, "Capacity")
            class_type.price = _number(class_type.price, float, "Price")
        except ValueError as e:
            return False, str(e)
        if class_type.duration_minutes <= 0 or class_type.max_participants <= 0:
            return False, "Duration and capacity must be greater than zero."
        if class_type.price < 0:
            return False, "Price cannot be negative."
        return self._save_lookup(self.db_manager.save_class_type, class_type, "class type")

    def deactivate_class_type(self, class_type_id) -> Tuple[bool, str]:
        return self._deactivate_lookup(self.db_manager.deactivate_class_type, class_type_id, "class type")

    def _save_lookup(self, save, obj, label: str) -> Tuple[bool, str]:
        creating = obj.id is None
        try:
            saved = save(obj)
        except StoreError as e:
            logging.error(f"Error saving {label} '{obj.name}': {e}", exc_info=True)
            return False, f"Error saving {label}: {e}"
        if saved is None:
            return False, f"The {label} no longer exists."
        return True, f"{label.capitalize()} {'created' if creating else 'updated'} successfully."

    def _deactivate_lookup(self, deactivate, row_id, label: str) -> Tuple[bool, str]:
        try:
            if deactivate(row_id):
                return True, f"{label.capitalize()} removed."
            return False, f"No {label} found with ID {row_id}."
        except StoreError as e:
            logging.error(f"Error removing {label} {row_id}: {e}", exc_info=True)
            return False, f"Error removing {label}: {e}"
