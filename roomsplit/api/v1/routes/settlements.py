from fastapi import APIRouter, Depends, HTTPException
from roomsplit.api.deps import get_backend_client, get_current_user_id, get_dispatcher
from roomsplit.clients.backend_client import BackendClient
from roomsplit.schemas.expense_schema import Expense, UpiLinkOut
from roomsplit.schemas.settlement_schema import (
    CheckoutFailure, PaymentConfirmation, ReminderBatchResult, ReminderResult,
    SettlementAttemptOut, SettlementResult, SettlementStatus
)
from roomsplit.services.exceptions import NothingToSettle, ReminderNotAllowed
from roomsplit.services.ledger_service import fetch_expenses, find_expense
from roomsplit.services.reminder_service import ReminderDispatcher, remind_all, remind_one
from roomsplit.services.settlement_service import (
    SettlementAttempt, SettlementOrchestrator, upi_payment_link
)

router = APIRouter(prefix="/ledger", tags=["settlements"])


def _load_expense(backend: BackendClient, expense_id: str) -> Expense:
    expense = find_expense(fetch_expenses(backend), expense_id)
    if not expense:
        raise HTTPException(status_code=404, detail="Expense not found")
    return expense


def _load_attempt(orchestrator: SettlementOrchestrator, order_id: str, user_id: str) -> SettlementAttempt:
    attempt = orchestrator.get_attempt(order_id)
    if not attempt:
        raise HTTPException(status_code=404, detail="Payment order not found")
    if attempt.user_id != user_id:
        raise HTTPException(status_code=403, detail="You can only complete your own payments")
    return attempt


@router.post("/expenses/{expense_id}/checkout", response_model=SettlementAttemptOut)
def start_checkout(
    expense_id: str,
    user_id: str = Depends(get_current_user_id),
    backend: BackendClient = Depends(get_backend_client),
):
    """Create a payment order for the caller's pending share"""
    expense = _load_expense(backend, expense_id)
    orchestrator = SettlementOrchestrator(backend)
    try:
        attempt = orchestrator.initiate(expense, user_id)
    except NothingToSettle as e:
        raise HTTPException(status_code=400, detail=e.message)

    if attempt.status == SettlementStatus.initiation_failed:
        raise HTTPException(status_code=502, detail=attempt.message)
    return attempt.to_out()


@router.post("/checkout/{order_id}/success", response_model=SettlementResult)
def checkout_succeeded(
    order_id: str,
    payment: PaymentConfirmation,
    user_id: str = Depends(get_current_user_id),
    backend: BackendClient = Depends(get_backend_client),
):
    """Checkout charged the caller; record the settlement"""
    orchestrator = SettlementOrchestrator(backend)
    attempt = _load_attempt(orchestrator, order_id, user_id)
    return orchestrator.handle_success(attempt, payment)


@router.post("/checkout/{order_id}/dismiss", response_model=SettlementResult)
def checkout_dismissed(
    order_id: str,
    user_id: str = Depends(get_current_user_id),
    backend: BackendClient = Depends(get_backend_client),
):
    orchestrator = SettlementOrchestrator(backend)
    attempt = _load_attempt(orchestrator, order_id, user_id)
    return orchestrator.handle_dismiss(attempt)


@router.post("/checkout/{order_id}/failure", response_model=SettlementResult)
def checkout_failed(
    order_id: str,
    failure: CheckoutFailure,
    user_id: str = Depends(get_current_user_id),
    backend: BackendClient = Depends(get_backend_client),
):
    orchestrator = SettlementOrchestrator(backend)
    attempt = _load_attempt(orchestrator, order_id, user_id)
    return orchestrator.handle_failure(attempt, failure.reason)


@router.get("/expenses/{expense_id}/upi-link", response_model=UpiLinkOut)
def get_upi_link(
    expense_id: str,
    user_id: str = Depends(get_current_user_id),
    backend: BackendClient = Depends(get_backend_client),
):
    """UPI intent link for paying the payer directly"""
    expense = _load_expense(backend, expense_id)
    try:
        link = upi_payment_link(expense, user_id)
    except NothingToSettle as e:
        raise HTTPException(status_code=400, detail=e.message)
    return UpiLinkOut(expense_id=expense.id, amount=expense.share_for(user_id).amount, link=link)


@router.post("/expenses/{expense_id}/remind/{debtor_id}", response_model=ReminderResult)
def send_reminder(
    expense_id: str,
    debtor_id: str,
    user_id: str = Depends(get_current_user_id),
    backend: BackendClient = Depends(get_backend_client),
    dispatcher: ReminderDispatcher = Depends(get_dispatcher),
):
    """Remind one roommate about their pending share"""
    expense = _load_expense(backend, expense_id)
    try:
        result = remind_one(dispatcher, expense, user_id, debtor_id)
    except ReminderNotAllowed as e:
        raise HTTPException(status_code=403, detail=e.message)

    if not result.sent:
        raise HTTPException(status_code=502, detail=result.message)
    return result


@router.post("/expenses/{expense_id}/remind-all", response_model=ReminderBatchResult)
def send_all_reminders(
    expense_id: str,
    user_id: str = Depends(get_current_user_id),
    backend: BackendClient = Depends(get_backend_client),
    dispatcher: ReminderDispatcher = Depends(get_dispatcher),
):
    """Remind everyone who still owes on this expense"""
    expense = _load_expense(backend, expense_id)
    try:
        return remind_all(dispatcher, expense, user_id)
    except ReminderNotAllowed as e:
        raise HTTPException(status_code=403, detail=e.message)
