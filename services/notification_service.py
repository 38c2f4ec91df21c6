# services/notification_service.py
"""
Notification Trigger Hook.

The ledger calls a NotificationHook after its database transaction has
committed. Delivery is best-effort: a failing hook is logged and never
undoes or fails the ledger operation that produced the event.
"""
import logging
from concurrent.futures import Executor
from typing import Callable, Iterable, Optional

from utils.email import send_email
from .events import CreditExpired, CreditExpiring, CreditIssued, CreditRedeemed, LedgerEvent

logger = logging.getLogger(__name__)


class NotificationHook:
     """Receiver of ledger lifecycle events. Every method is a no-op by default."""

     def on_issued(self, credit_id: int) -> None:
          pass

     def on_expiring(self, credit_id: int, days_until: int) -> None:
          pass

     def on_redeemed(self, credit_id: int, transaction_id: int) -> None:
          pass

     def on_expired(self, credit_id: int, transaction_id: int) -> None:
          pass


class NotificationDispatcher:
     """
     Delivers outbox events to a hook.

     Args:
          hook: Receiver of the events
          executor: Optional executor; when given, delivery is fire-and-forget
     """

     def __init__(self, hook: NotificationHook, executor: Optional[Executor] = None):
          self.hook = hook
          self.executor = executor

     def dispatch(self, events: Iterable[LedgerEvent]) -> None:
          for event in events:
               if self.executor is None:
                    self.deliver(event)
                    continue
               try:
                    self.executor.submit(self.deliver, event)
               except RuntimeError:
                    # Executor already shut down
                    logger.warning("Notification executor unavailable; delivering %r inline", event)
                    self.deliver(event)

     def deliver(self, event: LedgerEvent) -> bool:
          """Call the hook method matching the event. Returns False if the hook failed."""
          try:
               if isinstance(event, CreditIssued):
                    self.hook.on_issued(event.credit_id)
               elif isinstance(event, CreditRedeemed):
                    self.hook.on_redeemed(event.credit_id, event.transaction_id)
               elif isinstance(event, CreditExpiring):
                    self.hook.on_expiring(event.credit_id, event.days_until)
               elif isinstance(event, CreditExpired):
                    self.hook.on_expired(event.credit_id, event.transaction_id)
               else:
                    raise TypeError(f"Unknown ledger event: {event!r}")
               return True
          except Exception:
               logger.exception("Notification hook failed for %r", event)
               return False


class EmailNotificationHook(NotificationHook):
     """
     Sends customer e-mails through Brevo.

     Args:
          store: LedgerStore used to load the credit being notified about
          recipient_lookup: Maps a customer_id to an e-mail address (or None)
          sender: Function sending one e-mail (to, subject, html)
     """

     def __init__(
          self,
          store,
          recipient_lookup: Callable[[str], Optional[str]],
          sender: Callable[[str, str, str], None] = send_email,
     ):
          self.store = store
          self.recipient_lookup = recipient_lookup
          self.sender = sender

     def _recipient(self, credit) -> Optional[str]:
          if credit is None or not credit.customer_id:
               return None
          email = self.recipient_lookup(credit.customer_id)
          if not email:
               logger.info("No e-mail address for customer %s; skipping notification", credit.customer_id)
          return email

     def on_issued(self, credit_id: int) -> None:
          credit = self.store.get_credit(credit_id)
          to_email = self._recipient(credit)
          if not to_email:
               return
          expires = (
               f"<p>Valid until {credit.expiration_date:%Y-%m-%d}.</p>"
               if credit.expiration_date else ""
          )
          self.sender(
               to_email,
               "You've received store credit",
               f"""
                    <h2>You've received store credit</h2>
                    <p>Amount: <strong>{credit.original_amount} {credit.currency}</strong></p>
                    <p>Your code: <strong>{credit.code}</strong></p>
                    {expires}
               """,
          )

     def on_expiring(self, credit_id: int, days_until: int) -> None:
          credit = self.store.get_credit(credit_id)
          if credit is None or not credit.is_active or credit.balance <= 0:
               logger.info("Skipping expiration notification for credit %s: zero balance or inactive", credit_id)
               return
          to_email = self._recipient(credit)
          if not to_email:
               return
          self.sender(
               to_email,
               f"Your store credit expires in {days_until} day{'s' if days_until != 1 else ''}",
               f"""
                    <h2>Your store credit is about to expire</h2>
                    <p>Remaining balance: <strong>{credit.balance} {credit.currency}</strong></p>
                    <p>Code: <strong>{credit.code}</strong></p>
                    <p>Expires on {credit.expiration_date:%Y-%m-%d}.</p>
               """,
          )

     def on_redeemed(self, credit_id: int, transaction_id: int) -> None:
          credit = self.store.get_credit(credit_id)
          entry = self.store.get_transaction(transaction_id)
          to_email = self._recipient(credit)
          if not to_email or entry is None:
               return
          order = f"<p>Order: {entry.order_number or entry.order_id}</p>" if (entry.order_number or entry.order_id) else ""
          self.sender(
               to_email,
               "Your store credit was used",
               f"""
                    <h2>Your store credit was used</h2>
                    <p>Amount used: <strong>{-entry.amount} {credit.currency}</strong></p>
                    <p>Remaining balance: <strong>{entry.balance_after} {credit.currency}</strong></p>
                    {order}
               """,
          )
