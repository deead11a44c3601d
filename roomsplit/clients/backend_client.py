import logging
from typing import Any, Dict, List, Optional

import requests

from roomsplit.core.config import settings

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """
    A failed call to the property backend.

    ``message`` is the backend-provided explanation when the response carried
    one, otherwise None. Callers pick their own fallback text; raw transport
    errors are never shown to users.
    """

    def __init__(self, status_code: Optional[int], message: Optional[str] = None):
        super().__init__(message or f"Backend request failed (status={status_code})")
        self.status_code = status_code
        self.message = message

    def user_message(self, fallback: str) -> str:
        return self.message or fallback


class BackendClient:
    """REST client for the property backend that owns expenses, roommates and payments"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT
        self.session = session or requests.Session()
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def clone(self) -> "BackendClient":
        """Same base URL, headers and timeout on a fresh session, for use from another thread"""
        session = requests.Session()
        session.headers.update(self.session.headers)
        return BackendClient(self.base_url, timeout=self.timeout, session=session)

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.Timeout as e:
            logger.error(f"{method} {path} timed out after {self.timeout}s: {e}")
            raise BackendError(None, "The server took too long to respond") from e
        except requests.RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            raise BackendError(None) from e

        if not response.ok:
            message = None
            try:
                body = response.json()
                if isinstance(body, dict):
                    message = body.get("message") or body.get("detail")
            except ValueError:
                pass
            logger.error(f"{method} {path} returned {response.status_code}: {message}")
            raise BackendError(response.status_code, message)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise BackendError(response.status_code, None) from e

    def list_expenses(self) -> List[Dict[str, Any]]:
        """Expenses of the authenticated user's room, with nested payer and splits"""
        data = self._request("GET", "/property/expenses")
        return data.get("expenses") or []

    def list_roommates(self, room_id: str) -> List[Dict[str, Any]]:
        data = self._request("GET", f"/property/public/rooms/{room_id}/tenants")
        return data.get("tenants") or []

    def create_expense(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = self._request("POST", "/property/expenses", json=payload)
        return data.get("expense") or data

    def create_payment_order(self, amount: int, receipt: str, currency: str = "INR") -> Dict[str, Any]:
        """amount is in minor units (paise)"""
        data = self._request(
            "POST",
            "/property/payments/create-order",
            json={"amount": amount, "currency": currency, "receipt": receipt},
        )
        return data.get("order") or data

    def settle_expense(self, expense_id: str, payment: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Mark the authenticated user's share of an expense as settled"""
        return self._request("POST", f"/property/expenses/{expense_id}/settle", json=payment or {})

    def send_reminder(self, expense_id: str, user_id: str) -> Dict[str, Any]:
        return self._request("POST", f"/property/expenses/{expense_id}/remind", json={"userId": user_id})
