import re
import time
from typing import Optional
from urllib.parse import quote, urlencode

from roomsplit.utils.money import round_decimal


def build_receipt_id(expense_id: str, timestamp: Optional[int] = None, max_length: int = 40) -> str:
    """
    Build a payment-order receipt id from an expense id and a timestamp.

    The gateway rejects receipts longer than ``max_length`` characters, so the
    expense id is cut from the left (the tail of an ObjectId/uuid is the most
    distinctive part) until ``exp_<id>_<timestamp>`` fits.
    """
    if timestamp is None:
        timestamp = int(time.time())

    # Keep only characters the gateway accepts
    clean_id = re.sub(r'[^A-Za-z0-9]', '', expense_id or "")
    suffix = f"_{timestamp}"
    prefix = "exp_"

    budget = max_length - len(prefix) - len(suffix)
    if budget <= 0:
        # Timestamp alone does not fit; fall back to its tail
        return f"{prefix}{timestamp}"[-max_length:]

    if len(clean_id) > budget:
        clean_id = clean_id[-budget:]

    return f"{prefix}{clean_id}{suffix}"


def build_upi_payment_link(
    target_upi_id: str,
    payee_name: str,
    amount,
    transaction_ref: str,
    note: str = "",
    currency: str = "INR",
) -> str:
    """
    UPI intent link for paying a roommate directly from a UPI app.

    Example:
        >>> build_upi_payment_link("asha@upi", "Asha", Decimal("300"), "e1", "Groceries")
        'upi://pay?pa=asha@upi&pn=Asha&tr=e1&tn=Groceries&am=300.00&cu=INR'
    """
    params = {
        "pa": target_upi_id,
        "pn": payee_name or "Roommate",
        "tr": transaction_ref,
        "tn": note,
        "am": f"{round_decimal(amount)}",
        "cu": currency,
    }
    # The "@" in a UPI handle must stay literal for UPI apps
    return "upi://pay?" + urlencode(params, quote_via=quote, safe="@")
