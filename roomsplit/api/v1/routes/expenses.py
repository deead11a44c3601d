from fastapi import APIRouter, Depends, HTTPException, Query
from decimal import Decimal
from typing import List, Optional
from roomsplit.api.deps import get_backend_client, get_current_user_id, get_preferences
from roomsplit.clients.backend_client import BackendClient
from roomsplit.services.exceptions import ExpenseValidationError, RemoteOperationError
from roomsplit.services.ledger_service import classify_expenses, fetch_expenses, fetch_roommates
from roomsplit.services.preference_service import PreferencesProvider
from roomsplit.services.share_service import create_expense, new_expense_draft, preview_share, reset_draft
from roomsplit.schemas.expense_schema import (
    ExpenseCreatedOut, ExpenseDraft, HistoryWindow, LedgerViews, RoommateOut, SharePreviewOut
)
from roomsplit.utils.identifiers import peers_of

router = APIRouter(prefix="/ledger", tags=["ledger"])


@router.get("/expenses", response_model=LedgerViews)
def get_ledger(
    window: HistoryWindow = HistoryWindow.all,
    user_id: str = Depends(get_current_user_id),
    backend: BackendClient = Depends(get_backend_client),
):
    """Money I owe, money owed to me and history, with totals"""
    expenses = fetch_expenses(backend)
    return classify_expenses(expenses, user_id, window)


@router.get("/expenses/draft", response_model=ExpenseDraft)
def get_expense_draft(
    user_id: str = Depends(get_current_user_id),
    preferences: PreferencesProvider = Depends(get_preferences),
):
    """Empty add-expense form, pre-filled with the last-used UPI id"""
    return new_expense_draft(user_id, preferences)


@router.get("/expenses/preview", response_model=SharePreviewOut)
def get_share_preview(
    total_amount: Optional[Decimal] = None,
    selected_count: int = Query(0, ge=0),
    user_id: str = Depends(get_current_user_id),
):
    """Per-person amount for the form, counting the caller as a participant"""
    return SharePreviewOut(
        total_amount=total_amount,
        participants=selected_count + 1,
        per_person=preview_share(total_amount, selected_count),
    )


@router.post("/expenses", response_model=ExpenseCreatedOut, status_code=201)
def add_expense(
    draft: ExpenseDraft,
    user_id: str = Depends(get_current_user_id),
    backend: BackendClient = Depends(get_backend_client),
    preferences: PreferencesProvider = Depends(get_preferences),
):
    """Split a new expense equally between the caller and the selected roommates"""
    try:
        expense = create_expense(backend, draft, user_id, preferences)
    except ExpenseValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except RemoteOperationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return ExpenseCreatedOut(expense=expense, next_draft=reset_draft(draft))


@router.get("/rooms/{room_id}/roommates", response_model=List[RoommateOut])
def get_roommates(
    room_id: str,
    user_id: str = Depends(get_current_user_id),
    backend: BackendClient = Depends(get_backend_client),
):
    """Roommates the caller can split with (de-duplicated, caller excluded)"""
    return peers_of(fetch_roommates(backend, room_id), user_id)
