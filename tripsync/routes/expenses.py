"""Expense routes for the shared trip ledger."""
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from tripsync.core.trip_store import TripStore, get_trip_store
from tripsync.models.base import WireModel
from tripsync.models.expense import Expense

router = APIRouter(prefix="/expenses", tags=["expenses"])


class ExpenseCreate(WireModel):
    item: str
    amount: Any = 0
    currency: Any = "THB"
    category: str = ""
    date: str | None = None
    bill_photo: str | None = None
    paid_by: str | None = None
    participants: list[str] | None = None
    settled_by: list[str] | None = None


class ExpenseUpdate(WireModel):
    """Partial update; only fields present in the request body change."""
    item: str | None = None
    amount: Any = None
    currency: Any = None
    category: str | None = None
    date: str | None = None
    bill_photo: str | None = None
    paid_by: str | None = None
    participants: list[str] | None = None
    settled_by: list[str] | None = None


class SettledUpdate(BaseModel):
    person: str
    settled: bool = True


@router.get("")
async def list_expenses(store: TripStore = Depends(get_trip_store)):
    """List expenses with their THB totals."""
    expenses = list(store.expenses)
    return {
        "expenses": [e.to_wire() for e in expenses],
        "total_thb": round(sum(store.to_thb(e.amount, e.currency) for e in expenses), 2),
    }


@router.post("", status_code=201)
async def create_expense(body: ExpenseCreate, store: TripStore = Depends(get_trip_store)):
    """
    Record a new expense.

    Amount and currency are normalized like imported data: an unparseable
    amount becomes 0 and an unsupported currency becomes THB. The id is
    assigned by the store (or by the remote in entity mode).
    """
    if not body.item.strip():
        raise HTTPException(status_code=400, detail="Expense item cannot be blank")
    expense = Expense.model_validate(body.model_dump(exclude_none=True))
    created = store.add_expense(expense)
    return created.to_wire()


@router.get("/{expense_id}")
async def get_expense(expense_id: str, store: TripStore = Depends(get_trip_store)):
    expense = store.get_expense(expense_id)
    if expense is None:
        raise HTTPException(status_code=404, detail="Expense not found")
    return expense.to_wire()


@router.patch("/{expense_id}")
async def update_expense(
    expense_id: str, body: ExpenseUpdate, store: TripStore = Depends(get_trip_store)
):
    changes = body.model_dump(exclude_unset=True)
    expense = store.update_expense(expense_id, **changes)
    if expense is None:
        raise HTTPException(status_code=404, detail="Expense not found")
    return expense.to_wire()


@router.post("/{expense_id}/settled")
async def set_settled(
    expense_id: str, body: SettledUpdate, store: TripStore = Depends(get_trip_store)
):
    """Mark whether a participant has paid the payer back."""
    expense = store.set_expense_settled(expense_id, body.person, body.settled)
    if expense is None:
        raise HTTPException(status_code=404, detail="Expense not found")
    return expense.to_wire()


@router.delete("/{expense_id}")
async def delete_expense(expense_id: str, store: TripStore = Depends(get_trip_store)):
    if not store.delete_expense(expense_id):
        raise HTTPException(status_code=404, detail="Expense not found")
    return {"success": True}


@router.delete("")
async def reset_expenses(store: TripStore = Depends(get_trip_store)):
    """Delete every expense."""
    store.reset_expenses()
    return {"success": True}
