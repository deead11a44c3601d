import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from roomsplit.clients.backend_client import BackendClient, BackendError
from roomsplit.schemas.expense_schema import (
    DESCRIPTION_MAX_LENGTH, Expense, ExpenseCreate, ExpenseDraft, ExpenseCategory, ShareCreate
)
from roomsplit.services.exceptions import ExpenseValidationError, RemoteOperationError
from roomsplit.services.preference_service import PreferencesProvider
from roomsplit.utils.identifiers import extract_id, unique_ids
from roomsplit.utils.money import round_decimal, split_equally, to_decimal

logger = logging.getLogger(__name__)


def compute_shares(total_amount: Decimal, payer_id: str, selected_ids: Iterable) -> List[ShareCreate]:
    """
    Split an expense equally between the payer and the selected roommates.

    Args:
        total_amount: Positive expense total
        payer_id: Person who fronted the money; always gets a share
        selected_ids: Roommate ids or embedded user documents; duplicates and
            the payer are ignored

    Returns:
        One ShareCreate per participant, payer first. Every share is
        ``total / n`` rounded down to the minor unit and the payer's share
        absorbs the remainder, so the amounts sum to ``total_amount`` exactly.

    Raises:
        ExpenseValidationError: If the total is not positive, nobody but the
            payer is selected, or an equal share would round down to zero
    """
    total = round_decimal(to_decimal(total_amount))
    if total <= 0:
        raise ExpenseValidationError("Amount must be greater than zero")

    payer = extract_id(payer_id)
    if not payer:
        raise ExpenseValidationError("Payer is required")

    others = [uid for uid in unique_ids(selected_ids) if uid != payer]
    if not others:
        raise ExpenseValidationError("Select at least one roommate to split with")

    share, remainder = split_equally(total, len(others) + 1)
    if share <= 0:
        raise ExpenseValidationError(
            f"Amount is too small to split between {len(others) + 1} people"
        )

    shares = [ShareCreate(user_id=payer, amount=share + remainder)]
    shares.extend(ShareCreate(user_id=uid, amount=share) for uid in others)
    return shares


def preview_share(total_amount: Optional[Decimal], selected_count: int) -> Decimal:
    """Per-person amount shown under the form while the user is typing"""
    if not total_amount or selected_count < 0:
        return Decimal("0")
    share, _ = split_equally(to_decimal(total_amount), selected_count + 1)
    return share


def validate_draft(draft: ExpenseDraft) -> None:
    """Form checks that must pass before anything is sent"""
    if not draft.description.strip():
        raise ExpenseValidationError("Description is required")
    if len(draft.description.strip()) > DESCRIPTION_MAX_LENGTH:
        raise ExpenseValidationError(f"Description must be {DESCRIPTION_MAX_LENGTH} characters or fewer")
    if draft.total_amount is None or draft.total_amount <= 0:
        raise ExpenseValidationError("Amount must be greater than zero")
    if not draft.target_upi_id.strip():
        raise ExpenseValidationError("Enter the UPI ID your roommates should pay to")
    if not unique_ids(draft.split_with):
        raise ExpenseValidationError("Select at least one roommate to split with")


def build_expense_create(draft: ExpenseDraft, payer_id: str) -> ExpenseCreate:
    validate_draft(draft)
    splits = compute_shares(draft.total_amount, payer_id, draft.split_with)
    return ExpenseCreate(
        description=draft.description.strip(),
        total_amount=round_decimal(draft.total_amount),
        category=draft.category,
        expense_date=draft.expense_date or date.today(),
        target_upi_id=draft.target_upi_id.strip(),
        splits=splits,
    )


def create_expense(
    backend: BackendClient,
    draft: ExpenseDraft,
    viewer_id: str,
    preferences: Optional[PreferencesProvider] = None,
) -> Optional[Expense]:
    """
    Validate the draft, persist the expense on the backend and remember the
    payment destination as the next default.

    The UPI id is copied onto the expense; changing the default later never
    touches expenses that already exist.
    """
    expense_create = build_expense_create(draft, viewer_id)

    try:
        created = backend.create_expense(expense_create.to_payload())
    except BackendError as e:
        logger.error(f"Failed to create expense for {viewer_id}: {e}")
        raise RemoteOperationError(e.user_message("Failed to add expense")) from e

    if preferences is not None:
        try:
            preferences.remember_upi_id(viewer_id, expense_create.target_upi_id)
        except SQLAlchemyError as e:
            # The expense already exists on the backend; only the form default is lost
            logger.warning(f"Could not save default UPI id for {viewer_id}: {e}")

    logger.info(
        f"Expense created by {viewer_id}: {expense_create.total_amount} split "
        f"{len(expense_create.splits)} ways"
    )
    try:
        return Expense.model_validate(created)
    except ValidationError:
        # Some backends only acknowledge; callers refresh the list anyway
        logger.warning("Create-expense response did not include the expense")
        return None


def new_expense_draft(
    viewer_id: str,
    preferences: Optional[PreferencesProvider] = None,
    today: Optional[date] = None,
) -> ExpenseDraft:
    """Empty form, pre-filled with the viewer's last-used UPI id"""
    upi_id = None
    if preferences is not None:
        try:
            upi_id = preferences.get_default_upi_id(viewer_id)
        except SQLAlchemyError as e:
            logger.warning(f"Could not read default UPI id for {viewer_id}: {e}")
    return ExpenseDraft(
        category=ExpenseCategory.groceries,
        expense_date=today or date.today(),
        target_upi_id=upi_id or "",
    )


def reset_draft(draft: ExpenseDraft, today: Optional[date] = None) -> ExpenseDraft:
    """Clear the form after a successful submit, keeping the UPI id"""
    return ExpenseDraft(
        category=ExpenseCategory.groceries,
        expense_date=today or date.today(),
        target_upi_id=draft.target_upi_id,
    )
