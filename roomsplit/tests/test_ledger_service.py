"""
Unit tests for the classification engine.

Tests cover:
- Money I Owe / Money Owed to Me / History partitioning
- Aggregate totals, payer's own share never counted as a debt
- Ordering by creation time and by settlement time
- History windows
- Purity (same input, same output)
- Degraded reads
"""
import pytest
from decimal import Decimal

from roomsplit.clients.backend_client import BackendError
from roomsplit.schemas.expense_schema import HistoryWindow, LedgerRole
from roomsplit.services.ledger_service import (
    classify_expenses, fetch_expenses, fetch_roommates, find_expense, load_ledger,
    settlement_time, window_start
)
from roomsplit.tests.conftest import (
    PAYER, ROOMMATE_1, ROOMMATE_2, at, expense_doc, make_expense, split, total_of
)


def _settled_pair(expense_id, created_days, settled_days):
    """Expense paid by P with R1's share settled at the given day."""
    return make_expense(
        expense_id,
        PAYER,
        200,
        [split(PAYER, 100), split(ROOMMATE_1, 100, "settled", at(settled_days))],
        created_at=at(created_days),
    )


@pytest.mark.unit
class TestExpenseModel:

    def test_parses_backend_document(self, rent_split):
        assert rent_split.id == "e-900"
        assert rent_split.payer_id == PAYER
        assert rent_split.paid_by.name == "User P"
        assert rent_split.total_amount == Decimal("900")
        assert total_of(rent_split) == rent_split.total_amount
        assert rent_split.date.isoformat() == "2024-06-01"

    def test_bare_string_user_references(self):
        expense = make_expense(
            "e1", PAYER, 100,
            [{"user": PAYER, "amount": 50, "status": "pending"},
             {"user": ROOMMATE_1, "amount": 50, "status": "pending"}],
        )
        assert [s.user_id for s in expense.splits] == [PAYER, ROOMMATE_1]
        assert expense.share_for(ROOMMATE_1).amount == Decimal("50")

    def test_unknown_category_falls_back_to_other(self, rent_split_doc):
        rent_split_doc["category"] = "rent"
        from roomsplit.schemas.expense_schema import Expense, ExpenseCategory
        assert Expense.model_validate(rent_split_doc).category == ExpenseCategory.other

    def test_payer_share_is_not_a_debt(self, rent_split):
        assert [s.user_id for s in rent_split.debtor_shares()] == [ROOMMATE_1, ROOMMATE_2]


@pytest.mark.unit
class TestClassifyExpenses:

    def test_payer_view_scenario(self, rent_split):
        """900 split three ways: P is owed 600, not 900."""
        views = classify_expenses([rent_split], PAYER)

        assert views.totals.total_owed_to_you == Decimal("600")
        assert views.totals.total_you_owe == Decimal("0")
        assert len(views.money_owed_to_me) == 1
        entry = views.money_owed_to_me[0]
        assert entry.role == LedgerRole.payer
        assert entry.amount == Decimal("600")
        assert {s.user_id for s in entry.outstanding} == {ROOMMATE_1, ROOMMATE_2}
        assert views.money_i_owe == []
        assert views.history == []

    def test_debtor_view(self, rent_split):
        views = classify_expenses([rent_split], ROOMMATE_1)

        assert views.totals.total_you_owe == Decimal("300")
        assert len(views.money_i_owe) == 1
        assert views.money_i_owe[0].role == LedgerRole.debtor
        assert views.money_i_owe[0].amount == Decimal("300")
        assert views.money_owed_to_me == []

    def test_partial_settlement(self):
        """R1 settled: R1's history gains it, P still sees R2's 300 outstanding."""
        expense = make_expense(
            "e-900", PAYER, 900,
            [split(PAYER, 300), split(ROOMMATE_1, 300, "settled", at(1)), split(ROOMMATE_2, 300)],
        )

        r1 = classify_expenses([expense], ROOMMATE_1)
        assert r1.money_i_owe == []
        assert [e.expense_id for e in r1.history] == ["e-900"]
        assert r1.totals.total_sent == Decimal("300")

        p = classify_expenses([expense], PAYER)
        assert len(p.money_owed_to_me) == 1
        assert p.money_owed_to_me[0].amount == Decimal("300")
        assert [s.user_id for s in p.money_owed_to_me[0].outstanding] == [ROOMMATE_2]
        assert p.totals.total_owed_to_you == Decimal("300")
        assert p.totals.total_received == Decimal("300")
        assert p.history == []

    def test_fully_settled_moves_to_payer_history(self):
        expense = make_expense(
            "e1", PAYER, 300,
            [split(PAYER, 100), split(ROOMMATE_1, 100, "settled", at(1)), split(ROOMMATE_2, 100, "settled", at(2))],
        )
        views = classify_expenses([expense], PAYER)

        assert views.money_owed_to_me == []
        assert len(views.history) == 1
        assert views.history[0].amount == Decimal("200")
        assert views.history[0].settled_at == at(2)

    def test_uninvolved_viewer_sees_nothing(self, rent_split):
        views = classify_expenses([rent_split], "stranger")

        assert views.money_i_owe == []
        assert views.money_owed_to_me == []
        assert views.history == []
        assert views.totals.total_owed_to_you == Decimal("0")

    def test_open_lists_newest_first(self):
        older = make_expense("old", PAYER, 100, [split(PAYER, 50), split(ROOMMATE_1, 50)], created_at=at(0))
        newer = make_expense("new", PAYER, 100, [split(PAYER, 50), split(ROOMMATE_1, 50)], created_at=at(3))

        assert [e.expense_id for e in classify_expenses([older, newer], ROOMMATE_1).money_i_owe] == ["new", "old"]
        assert [e.expense_id for e in classify_expenses([older, newer], PAYER).money_owed_to_me] == ["new", "old"]

    def test_history_orders_by_settlement_not_creation(self):
        """A created first but settled later must be listed before B."""
        a = _settled_pair("A", created_days=0, settled_days=10)
        b = _settled_pair("B", created_days=5, settled_days=6)

        history = classify_expenses([b, a], ROOMMATE_1).history
        assert [e.expense_id for e in history] == ["A", "B"]

        history = classify_expenses([b, a], PAYER).history
        assert [e.expense_id for e in history] == ["A", "B"]

    def test_totals_across_many_expenses(self):
        expenses = [
            make_expense("e1", PAYER, 900, [split(PAYER, 300), split(ROOMMATE_1, 300), split(ROOMMATE_2, 300, "settled", at(1))]),
            make_expense("e2", ROOMMATE_1, 100, [split(ROOMMATE_1, 50), split(PAYER, 50)]),
            make_expense("e3", ROOMMATE_2, 60, [split(ROOMMATE_2, 30), split(PAYER, 30, "settled", at(2))]),
        ]
        totals = classify_expenses(expenses, PAYER).totals

        assert totals.total_owed_to_you == Decimal("300")
        assert totals.total_received == Decimal("300")
        assert totals.total_you_owe == Decimal("50")
        assert totals.total_sent == Decimal("30")

    def test_idempotent(self, rent_split):
        expenses = [
            rent_split,
            _settled_pair("A", 0, 10),
            make_expense("e2", ROOMMATE_1, 100, [split(ROOMMATE_1, 50), split(PAYER, 50)]),
        ]

        first = classify_expenses(expenses, PAYER, now=at(30))
        second = classify_expenses(expenses, PAYER, now=at(30))

        assert first == second
        assert first.model_dump() == second.model_dump()

    def test_does_not_mutate_input(self, rent_split):
        before = rent_split.model_dump()
        classify_expenses([rent_split], PAYER)
        assert rent_split.model_dump() == before


@pytest.mark.unit
class TestHistoryWindow:

    def test_window_start(self):
        assert window_start(HistoryWindow.all, at(0)) is None
        assert window_start(HistoryWindow.week, at(10)) == at(3)
        assert window_start(HistoryWindow.month, at(30)) == at(0)

    def test_window_filters_by_settlement_time(self):
        recent = _settled_pair("recent", created_days=-400, settled_days=-2)
        stale = _settled_pair("stale", created_days=-10, settled_days=-40)
        expenses = [recent, stale]

        def ids(window):
            return [e.expense_id for e in classify_expenses(expenses, ROOMMATE_1, window, now=at(0)).history]

        assert ids(HistoryWindow.week) == ["recent"]
        assert ids(HistoryWindow.month) == ["recent"]
        assert ids(HistoryWindow.year) == ["recent", "stale"]
        assert ids(HistoryWindow.all) == ["recent", "stale"]

    def test_window_does_not_change_totals(self):
        stale = _settled_pair("stale", created_days=-100, settled_days=-90)
        views = classify_expenses([stale], ROOMMATE_1, HistoryWindow.week, now=at(0))

        assert views.history == []
        assert views.totals.total_sent == Decimal("100")


@pytest.mark.unit
class TestSettlementTime:

    def test_latest_relevant_share(self):
        expense = make_expense(
            "e1", PAYER, 300,
            [split(PAYER, 100), split(ROOMMATE_1, 100, "settled", at(4)), split(ROOMMATE_2, 100, "settled", at(2))],
        )
        assert settlement_time(expense, PAYER) == at(4)
        assert settlement_time(expense, ROOMMATE_2) == at(2)

    def test_falls_back_to_updated_at(self):
        expense = make_expense(
            "e1", PAYER, 200, [split(PAYER, 100), split(ROOMMATE_1, 100, "settled")],
            created_at=at(0), updated_at=at(7),
        )
        assert settlement_time(expense, ROOMMATE_1) == at(7)

    def test_falls_back_to_created_at(self):
        expense = make_expense(
            "e1", PAYER, 200, [split(PAYER, 100), split(ROOMMATE_1, 100, "settled")], created_at=at(1),
        )
        assert settlement_time(expense, ROOMMATE_1) == at(1)


@pytest.mark.unit
class TestFetching:

    def test_fetch_expenses_parses_and_skips_malformed(self, mock_backend, rent_split_doc):
        mock_backend.list_expenses.return_value = [rent_split_doc, {"_id": "broken"}]

        expenses = fetch_expenses(mock_backend)

        assert [e.id for e in expenses] == ["e-900"]

    def test_read_errors_degrade_to_empty(self, mock_backend):
        mock_backend.list_expenses.side_effect = BackendError(500, "boom")
        mock_backend.list_roommates.side_effect = BackendError(None)

        assert load_ledger(mock_backend, "room-1") == ([], [])

    def test_roommates_are_deduplicated(self, mock_backend):
        mock_backend.list_roommates.return_value = [
            {"_id": "t1", "userId": {"_id": PAYER, "name": "Priya"}},
            {"_id": "t2", "userId": ROOMMATE_1, "name": "Rahul"},
            {"_id": "t3", "userId": {"_id": PAYER, "name": "Priya again"}},
            {"_id": "t4", "userId": None},
        ]

        roommates = fetch_roommates(mock_backend, "room-1")

        assert [r.user_id for r in roommates] == [PAYER, ROOMMATE_1]
        assert roommates[0].name == "Priya"
        assert roommates[1].name == "Rahul"
        mock_backend.list_roommates.assert_called_once_with("room-1")

    def test_load_ledger_without_room(self, mock_backend, rent_split_doc):
        mock_backend.list_expenses.return_value = [rent_split_doc]

        expenses, roommates = load_ledger(mock_backend, None)

        assert len(expenses) == 1
        assert roommates == []
        mock_backend.list_roommates.assert_not_called()

    def test_find_expense(self, rent_split):
        assert find_expense([rent_split], "e-900") is rent_split
        assert find_expense([rent_split], "missing") is None
