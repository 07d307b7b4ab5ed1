"""Settlement of the shared expense ledger.

Core algorithm:
1. Convert each expense to THB and split it equally among its participants
   (the whole roster when none are listed). That is each person's fair share
   (``owed``), whether or not it has been paid back.
2. Credit the payer with the full amount (``paid``).
3. A participant listed in ``settled_by`` has already handed their share to
   the payer: move that share from the payer's ``paid`` to theirs.
   Everyone else still owes the payer their share (``detail_by_pair``).
4. ``balance = paid - owed`` for every roster member.
5. Greedily match the largest debtor with the largest creditor until one
   side runs out, producing at most ``debtors + creditors - 1`` transfers.

The computation is pure and never persisted; callers recompute it whenever
the expenses, roster or rates change.
"""

from collections.abc import Iterable

from pydantic import Field

from tripsync.ledger.currency import Rates, to_thb
from tripsync.models.base import EntityId, WireModel
from tripsync.models.expense import Expense

EPSILON = 1e-6


class Transfer(WireModel):
    """A suggested payment from a debtor to a creditor, in THB."""
    from_: str = Field(alias="from")
    to: str
    amount: float


class PersonLine(WireModel):
    """One expense as seen by one person."""
    expense_id: EntityId
    item: str
    date: str
    share: float
    paid: float
    settled: bool


class Obligation(WireModel):
    """An outstanding share a participant still owes the payer."""
    expense_id: EntityId
    item: str
    date: str
    amount: float


class Settlement(WireModel):
    paid: dict[str, float]
    owed: dict[str, float]
    balance: dict[str, float]
    transfers: list[Transfer]
    detail_by_person: dict[str, list[PersonLine]]
    detail_by_pair: dict[str, dict[str, list[Obligation]]]

    @property
    def all_settled(self) -> bool:
        return not self.transfers


def minimal_transfers(balance: dict[str, float]) -> list[Transfer]:
    """Greedy debtor/creditor matching.

    Both sides are sorted by amount, largest first. Python's sort is stable,
    so equal amounts keep the order of ``balance`` (roster order).
    """
    # Balances within EPSILON of zero count as settled, not as dust transfers
    debtors = [[name, -amount] for name, amount in balance.items() if amount < -EPSILON]
    creditors = [[name, amount] for name, amount in balance.items() if amount > EPSILON]
    debtors.sort(key=lambda d: d[1], reverse=True)
    creditors.sort(key=lambda c: c[1], reverse=True)

    transfers: list[Transfer] = []
    i = 0
    j = 0
    while i < len(debtors) and j < len(creditors):
        debtor = debtors[i]
        creditor = creditors[j]
        amount = min(debtor[1], creditor[1])
        if amount > 0:
            transfers.append(Transfer(from_=debtor[0], to=creditor[0], amount=amount))
        debtor[1] -= amount
        creditor[1] -= amount
        if debtor[1] <= EPSILON:
            i += 1
        if creditor[1] <= EPSILON:
            j += 1
    return transfers


def settle(
    expenses: Iterable[Expense],
    roster: list[str],
    rates: Rates | None = None,
) -> Settlement:
    """Compute balances and suggested transfers for the trip.

    Args:
        expenses: The expense ledger.
        roster: Ordered list of trip members. Every member gets a balance,
            including those with no recorded activity.
        rates: Exchange rates to THB. Defaults apply when omitted.

    Returns:
        Settlement with per-person paid/owed/balance, the transfer list and
        detail views per person and per debtor/creditor pair.
    """
    rates = rates or Rates()
    paid: dict[str, float] = {p: 0.0 for p in roster}
    owed: dict[str, float] = {p: 0.0 for p in roster}
    detail_by_person: dict[str, list[PersonLine]] = {p: [] for p in roster}
    detail_by_pair: dict[str, dict[str, list[Obligation]]] = {}

    for expense in expenses:
        thb = to_thb(expense.amount, expense.currency, rates)
        participants = expense.sharers(roster)
        share = thb / len(participants) if participants else 0.0
        settled = expense.settled_names()
        payer = expense.paid_by

        for person in participants:
            owed[person] = owed.get(person, 0.0) + share

        if payer:
            paid[payer] = paid.get(payer, 0.0) + thb
            for person in participants:
                if person == payer:
                    continue
                if person in settled:
                    paid[payer] -= share
                    paid[person] = paid.get(person, 0.0) + share
                else:
                    detail_by_pair.setdefault(person, {}).setdefault(payer, []).append(
                        Obligation(
                            expense_id=expense.id,
                            item=expense.item,
                            date=expense.date,
                            amount=share,
                        )
                    )

        involved = list(participants)
        if payer and payer not in involved:
            involved.append(payer)
        for person in involved:
            detail_by_person.setdefault(person, []).append(
                PersonLine(
                    expense_id=expense.id,
                    item=expense.item,
                    date=expense.date,
                    share=share if person in participants else 0.0,
                    paid=thb if person == payer else 0.0,
                    settled=person == payer or person in settled,
                )
            )

    balance = {p: paid.get(p, 0.0) - owed.get(p, 0.0) for p in roster}

    return Settlement(
        paid=paid,
        owed=owed,
        balance=balance,
        transfers=minimal_transfers(balance),
        detail_by_person=detail_by_person,
        detail_by_pair=detail_by_pair,
    )
