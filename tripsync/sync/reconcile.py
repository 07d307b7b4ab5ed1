"""Merge remote expenses with device-local fields the remote does not keep.

The normalized backend may not store ``settled_by``. When a reload replaces
local expenses with remote rows, each remote row that lacks it is matched
back to the local copy:

1. Exact id match: the local record with the same id.
2. Signature match: a local record with the same normalized item, date,
   amount and currency. This covers rows whose id changed, e.g. after
   moving from snapshot to entity storage.

Each local record can satisfy at most one remote row per pass. Id matches
are reserved first so a signature match can never take a record that
another remote row owns by id.
"""
import logging
from dataclasses import dataclass

from tripsync.models.base import EntityId
from tripsync.models.expense import Expense

logger = logging.getLogger(__name__)


def signature(expense: Expense) -> str:
    """Content identity: ``item|date|amount|currency`` with item trimmed and lowercased."""
    return (
        f"{expense.item.strip().lower()}|{expense.date}|"
        f"{round(expense.amount, 2):.2f}|{expense.currency}"
    )


@dataclass
class Recovery:
    """A local field adopted into a remote record."""
    expense_id: EntityId
    source_id: EntityId
    matched_by: str  # "id" or "signature"
    settled_by: list[str]


def merge_expenses(
    remote: list[Expense], local: list[Expense]
) -> tuple[list[Expense], list[Recovery]]:
    """Return the remote expenses with ``settled_by`` restored from ``local``.

    The remote list is ground truth for every other field and keeps its
    order. Recoveries describe what was restored so it can be pushed back.
    """
    local_by_id: dict[str, Expense] = {}
    for expense in local:
        local_by_id.setdefault(str(expense.id), expense)

    used: set[str] = set()
    sources: dict[int, tuple[Expense, str]] = {}

    # Pass 1: exact id matches
    for idx, row in enumerate(remote):
        if row.settled_by:
            continue
        candidate = local_by_id.get(str(row.id))
        if candidate is not None and candidate.settled_by and str(candidate.id) not in used:
            used.add(str(candidate.id))
            sources[idx] = (candidate, "id")

    # Pass 2: signature matches for the rest
    for idx, row in enumerate(remote):
        if row.settled_by or idx in sources:
            continue
        sig = signature(row)
        for candidate in local:
            if not candidate.settled_by or str(candidate.id) in used:
                continue
            if signature(candidate) == sig:
                used.add(str(candidate.id))
                sources[idx] = (candidate, "signature")
                break

    merged: list[Expense] = []
    recoveries: list[Recovery] = []
    for idx, row in enumerate(remote):
        if idx not in sources:
            merged.append(row)
            continue
        source, matched_by = sources[idx]
        settled_by = list(source.settled_by or [])
        merged.append(row.model_copy(update={"settled_by": settled_by}))
        recoveries.append(
            Recovery(
                expense_id=row.id,
                source_id=source.id,
                matched_by=matched_by,
                settled_by=settled_by,
            )
        )

    if recoveries:
        logger.info(f"Recovered settled_by for {len(recoveries)} expenses from local copy")
    return merged, recoveries
