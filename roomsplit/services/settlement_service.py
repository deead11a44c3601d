"""
Settlement orchestration for a debtor paying their own pending share.

Flow:
    1. initiate   - create a payment order for the share amount
    2. authorize  - the checkout widget reports exactly one of three outcomes
                    through CheckoutCallbacks: success, dismiss or failure
    3. reflect    - on success, settle the share on the backend and re-fetch
                    the expense list; local state is never patched by hand

A share only ever moves pending -> settled, and only through the backend's
settle call. Every outcome is reported with its own status and message so a
user can always tell whether money moved.
"""
import logging
import threading
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Protocol

from pydantic import ValidationError

from roomsplit.clients.backend_client import BackendClient, BackendError
from roomsplit.core.config import settings
from roomsplit.schemas.expense_schema import Expense
from roomsplit.schemas.settlement_schema import (
    PaymentConfirmation, PaymentOrder, SettlementAttemptOut, SettlementResult,
    SettlementStatus, TERMINAL_STATUSES
)
from roomsplit.services.exceptions import NothingToSettle
from roomsplit.services.ledger_service import fetch_expenses
from roomsplit.utils.money import to_minor_units
from roomsplit.utils.payment_utils import build_receipt_id, build_upi_payment_link

logger = logging.getLogger(__name__)

MESSAGES = {
    SettlementStatus.initiated: "Complete the payment in the checkout window.",
    SettlementStatus.settled: "Payment settled!",
    SettlementStatus.cancelled: "Payment was cancelled. You can try again.",
    SettlementStatus.gateway_failed: "Payment failed. No settlement was recorded; you can try again.",
    SettlementStatus.initiation_failed: "Failed to initiate payment. Please try again.",
    SettlementStatus.recording_failed: (
        "Your payment went through but we could not record it. "
        "Please do not pay again; reopen the page later or contact support."
    ),
}


class CheckoutCallbacks:
    """The three outcome channels of a checkout session"""

    def __init__(
        self,
        on_success: Callable[[PaymentConfirmation], SettlementResult],
        on_dismiss: Callable[[], SettlementResult],
        on_failure: Callable[[Optional[str]], SettlementResult],
    ):
        self.on_success = on_success
        self.on_dismiss = on_dismiss
        self.on_failure = on_failure


class CheckoutProvider(Protocol):
    """Third-party checkout UI; must eventually invoke exactly one callback"""

    def open(self, order: PaymentOrder, callbacks: CheckoutCallbacks) -> None:
        ...


class SettlementAttempt:
    """One debtor's attempt to pay one share"""

    def __init__(self, expense_id: str, user_id: str, amount: Decimal, receipt: str):
        self.expense_id = expense_id
        self.user_id = user_id
        self.amount = amount
        self.receipt = receipt
        self.status = SettlementStatus.initiated
        self.message = MESSAGES[SettlementStatus.initiated]
        self.order: Optional[PaymentOrder] = None
        self.payment_id: Optional[str] = None
        self.expenses: List[Expense] = []
        self.created_at = datetime.now(timezone.utc)
        self.lock = threading.Lock()

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def finish(self, status: SettlementStatus, message: Optional[str] = None):
        self.status = status
        self.message = message or MESSAGES[status]

    def to_out(self) -> SettlementAttemptOut:
        return SettlementAttemptOut(
            expense_id=self.expense_id,
            user_id=self.user_id,
            amount=self.amount,
            receipt=self.receipt,
            status=self.status,
            order=self.order,
            message=self.message,
            payment_id=self.payment_id,
            created_at=self.created_at,
        )

    def to_result(self) -> SettlementResult:
        return SettlementResult(
            status=self.status,
            message=self.message,
            expense_id=self.expense_id,
            payment_id=self.payment_id,
            expenses=self.expenses,
        )


class AttemptRegistry:
    """Open attempts by gateway order id, so the outcome can arrive in a later request"""

    def __init__(self, max_age_seconds: int = 3600):
        self.max_age_seconds = max_age_seconds
        self._attempts: Dict[str, SettlementAttempt] = {}
        self._lock = threading.Lock()

    def register(self, order_id: str, attempt: SettlementAttempt):
        with self._lock:
            self._cleanup_old_attempts()
            self._attempts[order_id] = attempt

    def get(self, order_id: str) -> Optional[SettlementAttempt]:
        with self._lock:
            return self._attempts.get(order_id)

    def _cleanup_old_attempts(self):
        now = datetime.now(timezone.utc)
        to_remove = [
            order_id for order_id, attempt in self._attempts.items()
            if (now - attempt.created_at).total_seconds() > self.max_age_seconds
        ]
        for order_id in to_remove:
            del self._attempts[order_id]
            logger.info(f"Dropped stale settlement attempt for order {order_id}")


class SettlementOrchestrator:
    """Drives one share from pending to settled through the payment gateway"""

    def __init__(
        self,
        backend: BackendClient,
        checkout: Optional[CheckoutProvider] = None,
        registry: Optional[AttemptRegistry] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.backend = backend
        self.checkout = checkout
        self.registry = registry if registry is not None else get_attempt_registry()
        self.clock = clock

    def initiate(self, expense: Expense, viewer_id: str) -> SettlementAttempt:
        """
        Create a payment order for the viewer's pending share.

        Raises:
            NothingToSettle: If the viewer is the payer or has no pending share
        """
        if expense.payer_id == viewer_id:
            raise NothingToSettle("You paid for this expense; there is nothing to settle")
        share = expense.share_for(viewer_id)
        if share is None:
            raise NothingToSettle("You are not part of this expense")
        if share.is_settled:
            raise NothingToSettle("Your share is already settled")

        receipt = build_receipt_id(expense.id, int(self.clock()), settings.RECEIPT_MAX_LENGTH)
        attempt = SettlementAttempt(expense.id, viewer_id, share.amount, receipt)

        try:
            order_data = self.backend.create_payment_order(
                to_minor_units(share.amount), receipt, settings.CURRENCY
            )
            attempt.order = PaymentOrder.model_validate(order_data)
        except BackendError as e:
            logger.error(f"Error creating payment order for expense {expense.id}: {e}")
            attempt.finish(SettlementStatus.initiation_failed)
            return attempt
        except ValidationError as e:
            logger.error(f"Unusable payment order for expense {expense.id}: {e.error_count()} errors")
            attempt.finish(SettlementStatus.initiation_failed)
            return attempt

        self.registry.register(attempt.order.id, attempt)
        logger.info(f"Payment order {attempt.order.id} created for expense {expense.id} by {viewer_id}")
        return attempt

    def handle_success(self, attempt: SettlementAttempt, payment: PaymentConfirmation) -> SettlementResult:
        """Gateway charged the debtor; record the settlement and refresh"""
        with attempt.lock:
            if attempt.is_terminal:
                logger.warning(f"Ignoring success callback for finished attempt on {attempt.expense_id}")
                return attempt.to_result()

            attempt.payment_id = payment.razorpay_payment_id
            try:
                self.backend.settle_expense(attempt.expense_id, payment.model_dump(exclude_none=True))
            except BackendError as e:
                logger.error(
                    f"Payment {payment.razorpay_payment_id} captured but settling expense "
                    f"{attempt.expense_id} failed: {e}"
                )
                attempt.finish(
                    SettlementStatus.recording_failed,
                    f"{MESSAGES[SettlementStatus.recording_failed]} Payment reference: {payment.razorpay_payment_id}",
                )
                return attempt.to_result()

            attempt.finish(SettlementStatus.settled)
            logger.info(f"Share of {attempt.user_id} on expense {attempt.expense_id} settled")
            attempt.expenses = fetch_expenses(self.backend)
            return attempt.to_result()

    def handle_dismiss(self, attempt: SettlementAttempt) -> SettlementResult:
        """Checkout closed without paying; nothing changes on the ledger"""
        with attempt.lock:
            if not attempt.is_terminal:
                attempt.finish(SettlementStatus.cancelled)
                logger.info(f"Checkout dismissed for expense {attempt.expense_id}")
            return attempt.to_result()

    def handle_failure(self, attempt: SettlementAttempt, reason: Optional[str] = None) -> SettlementResult:
        """Checkout reported a failure (e.g. card declined); nothing changes on the ledger"""
        with attempt.lock:
            if not attempt.is_terminal:
                message = f"Payment failed: {reason}. You can try again." if reason else None
                attempt.finish(SettlementStatus.gateway_failed, message)
                logger.info(f"Checkout failed for expense {attempt.expense_id}: {reason}")
            return attempt.to_result()

    def callbacks_for(self, attempt: SettlementAttempt) -> CheckoutCallbacks:
        return CheckoutCallbacks(
            on_success=lambda payment: self.handle_success(attempt, payment),
            on_dismiss=lambda: self.handle_dismiss(attempt),
            on_failure=lambda reason=None: self.handle_failure(attempt, reason),
        )

    def pay_share(
        self,
        expense: Expense,
        viewer_id: str,
        checkout: Optional[CheckoutProvider] = None,
    ) -> SettlementAttempt:
        """Initiate and hand the order to the checkout; the callbacks finish the attempt"""
        provider = checkout or self.checkout
        if provider is None:
            raise ValueError("A checkout provider is required to pay a share")

        attempt = self.initiate(expense, viewer_id)
        if attempt.is_terminal:
            return attempt

        try:
            provider.open(attempt.order, self.callbacks_for(attempt))
        except Exception as e:
            logger.error(f"Checkout could not be opened for expense {expense.id}: {e}")
            self.handle_failure(attempt, "checkout could not be opened")
        return attempt

    def get_attempt(self, order_id: str) -> Optional[SettlementAttempt]:
        return self.registry.get(order_id)


def upi_payment_link(expense: Expense, viewer_id: str) -> str:
    """
    Direct UPI intent link for the viewer's pending share, paying the UPI id
    frozen on the expense. Paying this way still needs a settle call afterwards.
    """
    if expense.payer_id == viewer_id:
        raise NothingToSettle("You paid for this expense; there is nothing to settle")
    share = expense.share_for(viewer_id)
    if share is None or share.is_settled:
        raise NothingToSettle("You have no pending share on this expense")
    if not expense.target_upi_id:
        raise NothingToSettle("The payer did not set a UPI id for this expense")
    return build_upi_payment_link(
        expense.target_upi_id,
        expense.paid_by.display_name,
        share.amount,
        expense.id,
        expense.description,
        settings.CURRENCY,
    )


# Global attempt registry
_attempt_registry: Optional[AttemptRegistry] = None


def get_attempt_registry() -> AttemptRegistry:
    """Get or create the attempt registry instance"""
    global _attempt_registry
    if _attempt_registry is None:
        _attempt_registry = AttemptRegistry()
    return _attempt_registry
