"""Finance CSV export: incomes and expenses in one file, two sections."""

import csv
import io
from typing import Any, Iterable

from gcadmin.models.snapshot import Record
from gcadmin.services.storage.interface import StoreInterface

INCOME_COLUMNS = ("date", "amount", "memo", "assignmentId")
EXPENSE_COLUMNS = ("date", "amount", "memo", "serviceId", "subscriptionId")


def _cell(value: Any) -> str:
    return "" if value is None else str(value)


def to_csv(rows: Iterable[Record], headers: Iterable[str]) -> str:
    """Header line plus one line per record; every cell quoted."""
    headers = list(headers)
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    buffer.write(",".join(headers) + "\n")
    for row in rows:
        writer.writerow([_cell(row.get(h)) for h in headers])
    return buffer.getvalue().rstrip("\n")


async def export_finance_csv(store: StoreInterface) -> str:
    """
    Render incomes and expenses as CSV text.

    Layout:
        # Incomes
        date,amount,memo,assignmentId
        "2024-12-01","7.99","Initial payment","a1"

        # Expenses
        date,amount,memo,serviceId,subscriptionId
        ...
    """
    incomes = await store.list("incomes")
    expenses = await store.list("expenses")
    return (
        f"# Incomes\n{to_csv(incomes, INCOME_COLUMNS)}\n\n"
        f"# Expenses\n{to_csv(expenses, EXPENSE_COLUMNS)}"
    )
