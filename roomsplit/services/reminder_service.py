import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Optional, Protocol

from roomsplit.clients.backend_client import BackendClient, BackendError
from roomsplit.core.config import settings
from roomsplit.schemas.expense_schema import Expense
from roomsplit.schemas.settlement_schema import ReminderBatchResult, ReminderResult
from roomsplit.services.exceptions import ReminderNotAllowed, RemoteOperationError
from roomsplit.utils.identifiers import extract_id

logger = logging.getLogger(__name__)


class ReminderDispatcher(Protocol):
    """Fire-and-forget delivery of one reminder; raises RemoteOperationError on failure"""

    def send(self, expense_id: str, user_id: str) -> None:
        ...


class HttpReminderDispatcher:
    """Asks the backend to notify the debtor"""

    def __init__(self, backend: BackendClient):
        self.backend = backend
        # requests.Session is not thread-safe; each sending thread gets its own client
        self._local = threading.local()

    def _client(self) -> BackendClient:
        client = getattr(self._local, "client", None)
        if client is None:
            client = self.backend.clone()
            self._local.client = client
        return client

    def send(self, expense_id: str, user_id: str) -> None:
        try:
            self._client().send_reminder(expense_id, user_id)
        except BackendError as e:
            raise RemoteOperationError(e.user_message("Failed to send reminder")) from e


class QueueReminderDispatcher:
    """Publishes the reminder to the notification queue"""

    def __init__(self, producer=None):
        self.producer = producer

    def send(self, expense_id: str, user_id: str) -> None:
        if self.producer is None:
            from roomsplit.rabbitmq.producer import get_rabbitmq_producer
            self.producer = get_rabbitmq_producer()
        if not self.producer.publish_expense_reminder(expense_id, user_id):
            raise RemoteOperationError("Failed to send reminder")


def get_reminder_dispatcher(backend: BackendClient, transport: Optional[str] = None) -> ReminderDispatcher:
    """Dispatcher for the configured transport ("http" or "rabbitmq")"""
    transport = (transport or settings.REMINDER_TRANSPORT).lower()
    if transport == "rabbitmq":
        return QueueReminderDispatcher()
    if transport != "http":
        logger.warning(f"Unknown reminder transport {transport!r}, using http")
    return HttpReminderDispatcher(backend)


def _check_payer(expense: Expense, payer_id: str) -> None:
    if expense.payer_id != extract_id(payer_id):
        raise ReminderNotAllowed("Only the person who paid can send reminders")


def remind_one(dispatcher: ReminderDispatcher, expense: Expense, payer_id: str, user_id: str) -> ReminderResult:
    """
    Remind one debtor about their pending share.

    Raises:
        ReminderNotAllowed: If the caller is not the payer, or the target has
            no pending share on this expense
    """
    _check_payer(expense, payer_id)
    uid = extract_id(user_id)
    share = expense.share_for(uid)
    if share is None or uid == expense.payer_id:
        raise ReminderNotAllowed("That person does not owe anything on this expense")
    if share.is_settled:
        raise ReminderNotAllowed("That share is already settled")

    try:
        dispatcher.send(expense.id, uid)
    except RemoteOperationError as e:
        logger.error(f"Reminder for expense {expense.id} to {uid} failed: {e.message}")
        return ReminderResult(expense_id=expense.id, user_id=uid, sent=False, message=e.message)

    logger.info(f"Reminder sent for expense {expense.id} to {uid}")
    return ReminderResult(expense_id=expense.id, user_id=uid, sent=True, message="Reminder sent")


def remind_all(
    dispatcher: ReminderDispatcher,
    expense: Expense,
    payer_id: str,
    max_workers: Optional[int] = None,
) -> ReminderBatchResult:
    """
    Remind every debtor whose share is still pending.

    Dispatches run concurrently with no ordering guarantee. A failed dispatch
    is counted and logged; it never cancels the others.
    """
    _check_payer(expense, payer_id)
    targets = [share.user_id for share in expense.pending_debtor_shares()]
    if not targets:
        return ReminderBatchResult(expense_id=expense.id, attempted=0, succeeded=0)

    workers = min(max_workers or settings.REMINDER_WORKERS, len(targets))
    failed = []
    succeeded = 0

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="reminder") as pool:
        futures = {pool.submit(dispatcher.send, expense.id, uid): uid for uid in targets}
        for future in as_completed(futures):
            uid = futures[future]
            try:
                future.result()
                succeeded += 1
            except Exception as e:
                logger.error(f"Reminder for expense {expense.id} to {uid} failed: {e}")
                failed.append(uid)

    logger.info(f"Sent {succeeded}/{len(targets)} reminders for expense {expense.id}")
    return ReminderBatchResult(
        expense_id=expense.id,
        attempted=len(targets),
        succeeded=succeeded,
        failed_user_ids=sorted(failed),
    )
