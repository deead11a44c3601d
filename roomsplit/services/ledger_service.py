import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from roomsplit.clients.backend_client import BackendClient, BackendError
from roomsplit.schemas.expense_schema import (
    Expense, HistoryWindow, LedgerEntry, LedgerRole, LedgerTotals, LedgerViews, Person, Share
)
from roomsplit.utils.identifiers import dedupe_roommates, extract_id

logger = logging.getLogger(__name__)

WINDOW_DAYS = {
    HistoryWindow.week: 7,
    HistoryWindow.month: 30,
    HistoryWindow.year: 365,
}


def _aware(value: datetime) -> datetime:
    # Naive timestamps from the backend are UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _sum(shares: Iterable[Share]) -> Decimal:
    return sum((share.amount for share in shares), Decimal("0"))


def relevant_shares(expense: Expense, viewer_id: str) -> List[Share]:
    """Shares that matter to the viewer: all debtors for the payer, the viewer's own otherwise"""
    if expense.payer_id == viewer_id:
        return expense.debtor_shares()
    share = expense.share_for(viewer_id)
    return [share] if share is not None else []


def settlement_time(expense: Expense, viewer_id: str) -> datetime:
    """
    When the expense was settled from the viewer's point of view.

    The latest ``settled_at`` among the relevant shares; falls back to the
    expense's last modification time, then its creation time.
    """
    stamps = [_aware(share.settled_at) for share in relevant_shares(expense, viewer_id) if share.settled_at]
    if stamps:
        return max(stamps)
    return _aware(expense.updated_at or expense.created_at)


def window_start(window: HistoryWindow, now: Optional[datetime] = None) -> Optional[datetime]:
    """Earliest settlement time included in the window; None means all time"""
    days = WINDOW_DAYS.get(window)
    if days is None:
        return None
    now = _aware(now) if now is not None else datetime.now(timezone.utc)
    return now - timedelta(days=days)


def classify_expenses(
    expenses: Iterable[Expense],
    viewer_id: str,
    window: HistoryWindow = HistoryWindow.all,
    now: Optional[datetime] = None,
) -> LedgerViews:
    """
    Partition the viewer's expenses into Money I Owe, Money Owed to Me and History.

    Pure function of its arguments: totals are recomputed from the full list on
    every call. The history window only narrows the History list; the totals
    always cover all time.

    Ordering:
        - Money I Owe / Money Owed to Me: newest ``created_at`` first
        - History: latest settlement time first, so an old expense settled
          today is at the top
    """
    viewer = extract_id(viewer_id)
    cutoff = window_start(window, now)

    i_owe: List[LedgerEntry] = []
    owed_to_me: List[LedgerEntry] = []
    history: List[LedgerEntry] = []
    totals = LedgerTotals()

    for expense in expenses:
        if expense.payer_id == viewer:
            debtors = expense.debtor_shares()
            if not debtors:
                continue
            pending = [share for share in debtors if not share.is_settled]
            settled = [share for share in debtors if share.is_settled]
            totals.total_received += _sum(settled)

            if pending:
                amount = _sum(pending)
                totals.total_owed_to_you += amount
                owed_to_me.append(LedgerEntry(
                    expense=expense, role=LedgerRole.payer, amount=amount, outstanding=pending
                ))
            else:
                history.append(LedgerEntry(
                    expense=expense,
                    role=LedgerRole.payer,
                    amount=_sum(settled),
                    settled_at=settlement_time(expense, viewer),
                ))
            continue

        share = expense.share_for(viewer)
        if share is None:
            continue

        if share.is_settled:
            totals.total_sent += share.amount
            history.append(LedgerEntry(
                expense=expense,
                role=LedgerRole.debtor,
                amount=share.amount,
                settled_at=settlement_time(expense, viewer),
            ))
        else:
            totals.total_you_owe += share.amount
            i_owe.append(LedgerEntry(
                expense=expense, role=LedgerRole.debtor, amount=share.amount, outstanding=[share]
            ))

    if cutoff is not None:
        history = [entry for entry in history if entry.settled_at >= cutoff]

    i_owe.sort(key=lambda entry: _aware(entry.expense.created_at), reverse=True)
    owed_to_me.sort(key=lambda entry: _aware(entry.expense.created_at), reverse=True)
    history.sort(key=lambda entry: entry.settled_at, reverse=True)

    return LedgerViews(
        money_i_owe=i_owe,
        money_owed_to_me=owed_to_me,
        history=history,
        totals=totals,
    )


def parse_expenses(raw_expenses: Iterable[Dict[str, Any]]) -> List[Expense]:
    """Validate backend documents, skipping the ones that do not parse"""
    expenses = []
    for raw in raw_expenses:
        try:
            expenses.append(Expense.model_validate(raw))
        except ValidationError as e:
            logger.warning(f"Skipping malformed expense {extract_id(raw)}: {e.error_count()} errors")
    return expenses


def parse_roommates(raw_tenants: Iterable[Dict[str, Any]]) -> List[Person]:
    roommates = []
    for tenant in dedupe_roommates(raw_tenants):
        try:
            roommates.append(Person.model_validate(tenant))
        except ValidationError as e:
            logger.warning(f"Skipping malformed tenant record: {e.error_count()} errors")
    return roommates


def fetch_expenses(backend: BackendClient) -> List[Expense]:
    """Read path: a failed fetch degrades to an empty ledger"""
    try:
        return parse_expenses(backend.list_expenses())
    except BackendError as e:
        logger.error(f"Error fetching expenses: {e}")
        return []


def fetch_roommates(backend: BackendClient, room_id: str) -> List[Person]:
    try:
        return parse_roommates(backend.list_roommates(room_id))
    except BackendError as e:
        logger.error(f"Error fetching roommates for room {room_id}: {e}")
        return []


def load_ledger(backend: BackendClient, room_id: Optional[str]) -> Tuple[List[Expense], List[Person]]:
    """Expenses and de-duplicated roommates for the viewer's room"""
    if not room_id:
        return fetch_expenses(backend), []
    return fetch_expenses(backend), fetch_roommates(backend, room_id)


def find_expense(expenses: Iterable[Expense], expense_id: str) -> Optional[Expense]:
    for expense in expenses:
        if expense.id == expense_id:
            return expense
    return None
