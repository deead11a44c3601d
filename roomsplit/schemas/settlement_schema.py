from pydantic import BaseModel, Field, AliasChoices
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum

from roomsplit.schemas.expense_schema import Expense


class SettlementStatus(str, Enum):
    initiated = "initiated"
    settled = "settled"
    cancelled = "cancelled"
    gateway_failed = "gateway_failed"
    initiation_failed = "initiation_failed"
    # Money moved at the gateway but the ledger was not updated
    recording_failed = "recording_failed"


TERMINAL_STATUSES = {
    SettlementStatus.settled,
    SettlementStatus.cancelled,
    SettlementStatus.gateway_failed,
    SettlementStatus.initiation_failed,
    SettlementStatus.recording_failed,
}


class PaymentOrder(BaseModel):
    """Order returned by the gateway; amount is in minor units"""
    id: str = Field(..., validation_alias=AliasChoices("id", "order_id", "orderId"))
    amount: int
    currency: str = "INR"
    receipt: Optional[str] = None


class PaymentConfirmation(BaseModel):
    """Fields handed to the success callback by the checkout widget"""
    razorpay_payment_id: str
    razorpay_order_id: Optional[str] = None
    razorpay_signature: Optional[str] = None


class CheckoutFailure(BaseModel):
    reason: Optional[str] = None


class SettlementAttemptOut(BaseModel):
    expense_id: str
    user_id: str
    amount: Decimal
    receipt: str
    status: SettlementStatus
    order: Optional[PaymentOrder] = None
    message: Optional[str] = None
    payment_id: Optional[str] = None
    created_at: datetime


class SettlementResult(BaseModel):
    status: SettlementStatus
    message: str
    expense_id: str
    payment_id: Optional[str] = None
    expenses: List[Expense] = []


class ReminderResult(BaseModel):
    expense_id: str
    user_id: str
    sent: bool
    message: str


class ReminderBatchResult(BaseModel):
    expense_id: str
    attempted: int
    succeeded: int
    failed_user_ids: List[str] = []

    @property
    def all_sent(self) -> bool:
        return self.succeeded == self.attempted
