"""Tests for merging remote expenses with the device-local copy."""

from tripsync.models.expense import Expense
from tripsync.sync.reconcile import merge_expenses, signature


def expense(id, settled_by=None, item="Dinner", amount=300, **fields) -> Expense:
    return Expense(
        id=id,
        item=item,
        amount=amount,
        currency=fields.pop("currency", "THB"),
        date=fields.pop("date", "2024-03-01"),
        paid_by="Alice",
        participants=["Alice", "Bob", "Cara"],
        settled_by=settled_by,
        **fields,
    )


class TestSignature:
    def test_normalizes_item_and_amount(self):
        a = expense(1, item="  Dinner ", amount=12.5)
        b = expense(2, item="dinner", amount=12.50)
        assert signature(a) == signature(b) == "dinner|2024-03-01|12.50|THB"

    def test_currency_and_date_distinguish(self):
        assert signature(expense(1)) != signature(expense(1, currency="USD"))
        assert signature(expense(1)) != signature(expense(1, date="2024-03-02"))


class TestMergeExpenses:
    def test_exact_id_match(self):
        merged, recoveries = merge_expenses([expense(7)], [expense(7, settled_by=["Bob"])])

        assert merged[0].settled_by == ["Bob"]
        assert recoveries[0].matched_by == "id"
        assert recoveries[0].expense_id == 7

    def test_signature_match_consumes_local_record(self):
        """Test one local record cannot satisfy two remote rows."""
        remote = [expense(7), expense(8)]
        local = [expense(99, settled_by=["Bob"])]

        merged, recoveries = merge_expenses(remote, local)

        assert merged[0].settled_by == ["Bob"]
        assert merged[1].settled_by is None
        assert len(recoveries) == 1
        assert recoveries[0].expense_id == 7
        assert recoveries[0].source_id == 99
        assert recoveries[0].matched_by == "signature"

    def test_id_match_reserved_before_signature(self):
        """Test a record claimed by id is not handed to an earlier row by signature."""
        remote = [expense(5), expense(6)]
        local = [expense(6, settled_by=["Cara"])]

        merged, recoveries = merge_expenses(remote, local)

        assert merged[0].settled_by is None
        assert merged[1].settled_by == ["Cara"]
        assert [r.matched_by for r in recoveries] == ["id"]

    def test_remote_value_wins(self):
        merged, recoveries = merge_expenses(
            [expense(7, settled_by=["Cara"])], [expense(7, settled_by=["Bob"])]
        )
        assert merged[0].settled_by == ["Cara"]
        assert recoveries == []

    def test_remote_fields_are_ground_truth(self):
        """Test only settled_by is taken from the local copy."""
        remote = [expense(7, amount=300, category="Food")]
        local = [expense(7, amount=300, category="Drinks", settled_by=["Bob"])]

        merged, _ = merge_expenses(remote, local)

        assert merged[0].category == "Food"
        assert merged[0].settled_by == ["Bob"]

    def test_local_without_settled_by_ignored(self):
        merged, recoveries = merge_expenses([expense(7)], [expense(7)])
        assert merged[0].settled_by is None
        assert recoveries == []

    def test_empty_local(self):
        remote = [expense(1), expense(2)]
        merged, recoveries = merge_expenses(remote, [])
        assert merged == remote
        assert recoveries == []

    def test_keeps_remote_order(self):
        remote = [expense(3, item="C"), expense(1, item="A"), expense(2, item="B")]
        merged, _ = merge_expenses(remote, [expense(1, item="A", settled_by=["Bob"])])
        assert [e.id for e in merged] == [3, 1, 2]
