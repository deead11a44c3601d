"""
Pytest configuration and fixtures for roomsplit tests.
"""
import threading
import pytest
from decimal import Decimal
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
from unittest.mock import Mock

from roomsplit.clients.backend_client import BackendClient
from roomsplit.schemas.expense_schema import Expense
from roomsplit.services.exceptions import RemoteOperationError
from roomsplit.services.preference_service import InMemoryPreferencesProvider
from roomsplit.services.settlement_service import AttemptRegistry

PAYER = "P"
ROOMMATE_1 = "R1"
ROOMMATE_2 = "R2"

BASE_TIME = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def at(days: float = 0) -> datetime:
    """BASE_TIME shifted by a number of days"""
    return BASE_TIME + timedelta(days=days)


def split(user_id: str, amount, status: str = "pending", settled_at: Optional[datetime] = None) -> Dict:
    """A share in the backend's wire format, with the user embedded"""
    data = {
        "_id": f"s-{user_id}",
        "user": {"_id": user_id, "name": f"User {user_id}"},
        "amount": float(amount),
        "status": status,
    }
    if settled_at is not None:
        data["settledAt"] = settled_at.isoformat()
    return data


def expense_doc(
    expense_id: str,
    payer: str,
    total,
    splits: List[Dict],
    created_at: datetime = BASE_TIME,
    updated_at: Optional[datetime] = None,
    description: str = "Groceries",
    target_upi_id: str = "payer@upi",
) -> Dict:
    """An expense document as the backend returns it"""
    data = {
        "_id": expense_id,
        "description": description,
        "totalAmount": float(total),
        "category": "groceries",
        "date": created_at.strftime("%Y-%m-%dT00:00:00.000Z"),
        "createdAt": created_at.isoformat(),
        "paidBy": {"_id": payer, "name": f"User {payer}"},
        "targetUpiId": target_upi_id,
        "splits": splits,
    }
    if updated_at is not None:
        data["updatedAt"] = updated_at.isoformat()
    return data


def make_expense(*args, **kwargs) -> Expense:
    return Expense.model_validate(expense_doc(*args, **kwargs))


@pytest.fixture
def rent_split_doc():
    """900 paid by P, split three ways with R1 and R2, nothing settled yet."""
    return expense_doc(
        "e-900",
        PAYER,
        900,
        [split(PAYER, 300), split(ROOMMATE_1, 300), split(ROOMMATE_2, 300)],
    )


@pytest.fixture
def rent_split(rent_split_doc):
    return Expense.model_validate(rent_split_doc)


@pytest.fixture
def mock_backend():
    """Backend client double; every remote call is a Mock."""
    backend = Mock(spec=BackendClient)
    backend.list_expenses.return_value = []
    backend.list_roommates.return_value = []
    backend.create_payment_order.return_value = {"id": "order_1", "amount": 30000, "currency": "INR"}
    backend.settle_expense.return_value = {"success": True}
    backend.send_reminder.return_value = {"success": True}
    backend.clone.return_value = backend
    return backend


@pytest.fixture
def registry():
    return AttemptRegistry()


@pytest.fixture
def preferences():
    return InMemoryPreferencesProvider()


def total_of(expense: Expense) -> Decimal:
    return sum((share.amount for share in expense.splits), Decimal("0"))


class RecordingDispatcher:
    """Reminder dispatcher double that records calls and fails for chosen users"""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.sent = []
        self._lock = threading.Lock()

    def send(self, expense_id, user_id):
        with self._lock:
            self.sent.append((expense_id, user_id))
        if user_id in self.failing:
            raise RemoteOperationError("Failed to send reminder")
