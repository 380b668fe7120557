import calendar
from datetime import date
from typing import Iterable, List, Optional, Tuple, Union

from .dates import Clock, format_calendar_date, parse_calendar_date
from .models import EXPENSE, INCOME, LedgerSummary, Transaction

TYPE_FILTERS = ("all", INCOME, EXPENSE)


def today_period(clock: Clock) -> Tuple[date, date]:
    today = clock.today()
    return today, today


def month_period(day: date) -> Tuple[date, date]:
    last_day = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last_day)


def sort_transactions(transactions: Iterable[Transaction]) -> List[Transaction]:
    """Newest first. Dates and times are zero-padded, so string order is time order."""
    return sorted(transactions, key=lambda t: (t.date, t.time), reverse=True)


def filter_transactions(
    transactions: Iterable[Transaction],
    start: Optional[Union[str, date]] = None,
    end: Optional[Union[str, date]] = None,
    type_filter: str = "all",
) -> List[Transaction]:
    """Keeps entries dated within [start, end] (both inclusive) of the given type."""
    if type_filter not in TYPE_FILTERS:
        raise ValueError(f"Unknown transaction type filter: {type_filter}")
    start_str = format_calendar_date(parse_calendar_date(start)) if start else None
    end_str = format_calendar_date(parse_calendar_date(end)) if end else None

    selected = []
    for t in transactions:
        if start_str and t.date < start_str:
            continue
        if end_str and t.date > end_str:
            continue
        if type_filter != "all" and t.type != type_filter:
            continue
        selected.append(t)
    return sort_transactions(selected)


def summary_of(transactions: Iterable[Transaction]) -> LedgerSummary:
    income = 0.0
    expense = 0.0
    count = 0
    for t in transactions:
        count += 1
        if t.type == INCOME:
            income += float(t.amount)
        elif t.type == EXPENSE:
            expense += float(t.amount)
    return LedgerSummary(income=income, expense=expense, balance=income - expense, count=count)


def format_amount(amount: float) -> str:
    return f"${amount:,.2f}"
