import logging
from typing import Any, List, Optional

from .dates import day_bounds, format_calendar_date, parse_calendar_date
from .models import CheckIn, ClassType, Employee, Member, MembershipType, Transaction
from .store import TableStore

# Basic logging configuration (can be overridden by application's config)
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)


class DataIntegrityError(Exception):
    """Stored rows break an invariant, e.g. two members share one DNI."""


class DatabaseManager:
    """Typed reads and writes over the six gym tables.

    Store failures surface as StoreError; callers decide how to report them.
    """

    def __init__(self, store: TableStore):
        self.store = store

    # Members

    def get_all_members(self) -> List[Member]:
        rows = self.store.select("members", order_by=("created_at", "id"), descending=True)
        return [Member.from_row(row) for row in rows]

    def find_members_by_dni(self, dni: str) -> List[Member]:
        rows = self.store.select("members", eq={"dni": dni.strip()})
        return [Member.from_row(row) for row in rows]

    def get_member_by_dni(self, dni: str) -> Optional[Member]:
        """Returns the member with this DNI, or None.
        Raises DataIntegrityError if the store holds more than one row for it.
        """
        members = self.find_members_by_dni(dni)
        if len(members) > 1:
            logging.error(f"{len(members)} members share DNI {dni.strip()}.")
            raise DataIntegrityError(
                f"DNI {dni.strip()} is registered {len(members)} times. Fix the duplicates before continuing."
            )
        return members[0] if members else None

    def add_member(self, member: Member) -> Member:
        row = self.store.insert("members", member.to_row())
        created = Member.from_row(row)
        logging.info(f"Member '{created.name}' (DNI {created.dni}) added with ID {created.id}.")
        return created

    def update_member(self, dni: str, **values: Any) -> bool:
        """Updates the given columns of the member with this DNI.
        Returns False if no member matched.
        """
        if not values:
            logging.info(f"No fields provided to update for member DNI {dni}.")
            return True
        updated = self.store.update("members", values, eq={"dni": dni.strip()})
        if not updated:
            logging.warning(f"Member with DNI {dni} not found for update.")
            return False
        logging.info(f"Member DNI {dni} updated: {', '.join(sorted(values))}.")
        return True

    def delete_member(self, dni: str) -> bool:
        deleted = self.store.delete("members", eq={"dni": dni.strip()})
        if deleted == 0:
            logging.warning(f"No member found with DNI {dni} to delete.")
            return False
        logging.info(f"Member DNI {dni} deleted.")
        return True

    # Transactions

    def add_transaction(self, transaction: Transaction) -> Transaction:
        row = self.store.insert("transactions", transaction.to_row())
        created = Transaction.from_row(row)
        logging.info(
            f"Transaction {created.id} recorded: {created.type} {created.amount:.2f} '{created.concept}'."
        )
        return created

    def get_transactions(self, start_date, end_date) -> List[Transaction]:
        """Entries dated between start_date and end_date, both inclusive."""
        rows = self.store.select(
            "transactions",
            gte={"date": format_calendar_date(parse_calendar_date(start_date))},
            lte={"date": format_calendar_date(parse_calendar_date(end_date))},
            order_by=("date", "time", "id"),
            descending=True,
        )
        return [Transaction.from_row(row) for row in rows]

    def delete_transaction(self, transaction_id: int) -> bool:
        deleted = self.store.delete("transactions", eq={"id": transaction_id})
        if deleted == 0:
            logging.warning(f"No transaction found with ID {transaction_id} to delete.")
            return False
        logging.info(f"Transaction ID {transaction_id} deleted.")
        return True

    # Check-ins

    def add_checkin(self, checkin: CheckIn) -> CheckIn:
        row = self.store.insert("checkins", checkin.to_row())
        return CheckIn.from_row(row)

    def get_checkins_for_day(self, day) -> List[CheckIn]:
        start, end = day_bounds(parse_calendar_date(day))
        rows = self.store.select(
            "checkins",
            gte={"check_in_time": start},
            lte={"check_in_time": end},
            order_by=("check_in_time",),
            descending=True,
        )
        return [CheckIn.from_row(row) for row in rows]

    # Lookup rows: membership types, employees, class types.
    # These are never hard-deleted; deactivation flips is_active.

    def _get_lookup_rows(self, table: str, model, active_only: bool) -> list:
        eq = {"is_active": True} if active_only else None
        rows = self.store.select(table, eq=eq, order_by=("created_at", "id"))
        return [model.from_row(row) for row in rows]

    def _save_lookup_row(self, table: str, model, obj):
        if obj.id is None:
            created = model.from_row(self.store.insert(table, obj.to_row()))
            logging.info(f"Added {table} row '{created.name}' with ID {created.id}.")
            return created
        updated = self.store.update(table, obj.to_row(), eq={"id": obj.id})
        if not updated:
            logging.warning(f"{table} row with ID {obj.id} not found for update.")
            return None
        logging.info(f"Updated {table} row ID {obj.id}.")
        return model.from_row(updated[0])

    def _deactivate_lookup_row(self, table: str, row_id) -> bool:
        updated = self.store.update(table, {"is_active": False}, eq={"id": row_id})
        if not updated:
            logging.warning(f"No {table} row with ID {row_id} to deactivate.")
            return False
        logging.info(f"Deactivated {table} row ID {row_id}.")
        return True

    def get_membership_types(self, active_only: bool = True) -> List[MembershipType]:
        return self._get_lookup_rows("membership_types", MembershipType, active_only)

    def save_membership_type(self, plan: MembershipType) -> Optional[MembershipType]:
        return self._save_lookup_row("membership_types", MembershipType, plan)

    def deactivate_membership_type(self, plan_id) -> bool:
        return self._deactivate_lookup_row("membership_types", plan_id)

    def get_employees(self, active_only: bool = True) -> List[Employee]:
        return self._get_lookup_rows("employees", Employee, active_only)

    def save_employee(self, employee: Employee) -> Optional[Employee]:
        return self._save_lookup_row("employees", Employee, employee)

    def deactivate_employee(self, employee_id) -> bool:
        return self._deactivate_lookup_row("employees", employee_id)

    def get_class_types(self, active_only: bool = True) -> List[ClassType]:
        return self._get_lookup_rows("class_types", ClassType, active_only)

    def save_class_type(self, class_type: ClassType) -> Optional[ClassType]:
        return self._save_lookup_row("class_types", ClassType, class_type)

    def deactivate_class_type(self, class_type_id) -> bool:
        return self._deactivate_lookup_row("class_types", class_type_id)
