"""
User Conversation Flow

Drives an authorized subscriber through onboarding and the record-a-movement
menu.

FLOW:
1. Email gate    -> ASK_EMAIL until a valid email is stored
2. Name gate     -> ASK_NAME until a display name is stored
3. Ledger gate   -> provision the personal ledger if it is still missing
4. Main flow     -> MENU -> CATEGORY_SELECT -> [CATEGORY_NEW] -> AMOUNT_ENTRY -> CONFIRM

Every step is a function (session, subscriber, text) -> StepResult.
Steps never mutate the session they are given; the loop in handle()
stores whatever session the last step returned.

A gate that does its work without consuming the message (the ledger gate)
sets redispatch=True, and the same text is handled again by the next step.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Awaitable, Callable, Optional
from zoneinfo import ZoneInfo

import structlog
from pydantic import BaseModel, ConfigDict, Field

from finance_bot.audit import AuditLogger
from finance_bot.conversation import messages
from finance_bot.conversation.session_store import SessionStore
from finance_bot.models.ledger import (
    DEFAULT_ONE_SHOT_CATEGORY,
    Subscriber,
    Transaction,
    TransactionKind,
)
from finance_bot.models.session import Session, SessionStep
from finance_bot.services.provisioning import LedgerProvisioner
from finance_bot.services.storage import (
    DirectoryStorageInterface,
    LedgerStorageInterface,
    StorageError,
)
from finance_bot.validation import (
    InvalidAmount,
    InvalidEmail,
    clean_category_name,
    clean_display_name,
    looks_like_one_shot,
    parse_amount,
    signed_amount,
    validate_email,
)


logger = structlog.get_logger(__name__)

# A message can pass through at most this many steps (gate + main flow)
MAX_REDISPATCH = 4

MAX_DETAIL_LENGTH = 500

MENU_WORDS = {"0", "menu"}
RECENT_WORDS = {"recent", "movimientos"}
HELP_WORDS = {"help", "ayuda"}

MENU_CHOICES = {
    "1": TransactionKind.INCOME,
    "2": TransactionKind.EXPENSE,
}


class StepResult(BaseModel):
    """What a step decided: the next session, replies, and the fresh subscriber."""
    model_config = ConfigDict(frozen=True)

    session: Session
    subscriber: Subscriber
    replies: list[str] = Field(default_factory=list)
    redispatch: bool = False


StepHandler = Callable[[Session, Subscriber, str], Awaitable[StepResult]]


class UserFlow:
    """
    Conversation state machine for authorized subscribers.

    Usage:
        flow = UserFlow(directory, ledgers, sessions, provisioner)
        replies = await flow.handle(subscriber, "2")
    """

    def __init__(
        self,
        directory: DirectoryStorageInterface,
        ledgers: LedgerStorageInterface,
        sessions: SessionStore,
        provisioner: LedgerProvisioner,
        audit_logger: Optional[AuditLogger] = None,
        timezone: str = "America/Lima",
        recent_limit: int = 5,
        today: Optional[Callable[[], date]] = None,
    ):
        self._directory = directory
        self._ledgers = ledgers
        self._sessions = sessions
        self._provisioner = provisioner
        self._audit = audit_logger or AuditLogger()
        self._tz = ZoneInfo(timezone)
        self._recent_limit = recent_limit
        self._today = today or self._local_today

        self._steps: dict[SessionStep, StepHandler] = {
            SessionStep.MENU: self._on_menu,
            # Stale onboarding steps fall back to the menu once the gates pass
            SessionStep.ASK_EMAIL: self._on_menu,
            SessionStep.ASK_NAME: self._on_menu,
            SessionStep.CATEGORY_SELECT: self._on_category_select,
            SessionStep.CATEGORY_NEW: self._on_category_new,
            SessionStep.AMOUNT_ENTRY: self._on_amount_entry,
            SessionStep.CONFIRM: self._on_confirm,
        }

    def _local_today(self) -> date:
        return datetime.now(self._tz).date()

    async def handle(self, subscriber: Subscriber, text: str) -> list[str]:
        """
        Handle one message from an authorized subscriber.

        The session is saved only when every step completed, so a store
        failure that escapes a step leaves the user at the step they were
        on (they can simply resend).

        Raises:
            StorageError: A store call failed where the flow can't recover
        """
        identity = subscriber.phone
        session = self._sessions.get_or_menu(identity)
        replies: list[str] = []

        for _ in range(MAX_REDISPATCH):
            result = await self._step(session, subscriber, text)
            session = result.session
            subscriber = result.subscriber
            replies.extend(result.replies)
            if not result.redispatch:
                break

        self._sessions.save(identity, session)
        return replies

    async def _step(self, session: Session, subscriber: Subscriber, text: str) -> StepResult:
        text = text.strip()

        if not subscriber.has_valid_email:
            return await self._email_gate(session, subscriber, text)

        if not subscriber.has_display_name:
            return await self._name_gate(session, subscriber, text)

        if not subscriber.has_ledger:
            return await self._ledger_gate(session, subscriber)

        if text.lower() in MENU_WORDS:
            return StepResult(
                session=Session.menu(),
                subscriber=subscriber,
                replies=[messages.menu_with_help()],
            )

        handler = self._steps[session.step]
        return await handler(session, subscriber, text)

    # =========================================================================
    # ONBOARDING GATES
    # =========================================================================

    async def _email_gate(self, session: Session, subscriber: Subscriber, text: str) -> StepResult:
        # An email-shaped message is taken as the answer whatever step we're on
        try:
            email = validate_email(text)
        except InvalidEmail:
            reply = (
                messages.invalid_email()
                if session.step is SessionStep.ASK_EMAIL
                else messages.ask_email()
            )
            return StepResult(
                session=session.advance(SessionStep.ASK_EMAIL),
                subscriber=subscriber,
                replies=[reply],
            )

        await self._directory.set_fields(subscriber.phone, {"email": email})
        subscriber = subscriber.model_copy(update={"email": email})
        await self._audit.log_email_registered(subscriber.phone, email)

        # Provisioning failure must not block onboarding
        subscriber, provisioned = await self._try_provision(subscriber)
        ledger_url = subscriber.ledger_url if provisioned else None

        if subscriber.has_display_name:
            return StepResult(
                session=Session.menu(),
                subscriber=subscriber,
                replies=[messages.email_saved(ledger_url, ask_name=False), messages.menu_with_help()],
            )

        return StepResult(
            session=Session.menu().advance(SessionStep.ASK_NAME),
            subscriber=subscriber,
            replies=[messages.email_saved(ledger_url)],
        )

    async def _name_gate(self, session: Session, subscriber: Subscriber, text: str) -> StepResult:
        if session.step is not SessionStep.ASK_NAME:
            return StepResult(
                session=session.advance(SessionStep.ASK_NAME),
                subscriber=subscriber,
                replies=[messages.ask_name()],
            )

        name = clean_display_name(text)
        if name is None:
            return StepResult(session=session, subscriber=subscriber, replies=[messages.ask_name()])

        await self._directory.set_fields(subscriber.phone, {"display_name": name})
        subscriber = subscriber.model_copy(update={"display_name": name})
        await self._audit.log_name_registered(subscriber.phone, name)

        replies = [messages.name_saved(name)]
        if not subscriber.has_ledger:
            subscriber, provisioned = await self._try_provision(subscriber)
            replies.append(
                messages.ledger_ready(subscriber.ledger_url)
                if provisioned
                else messages.ledger_failed()
            )
        replies.append(messages.menu_with_help())

        return StepResult(session=Session.menu(), subscriber=subscriber, replies=replies)

    async def _ledger_gate(self, session: Session, subscriber: Subscriber) -> StepResult:
        subscriber, provisioned = await self._try_provision(subscriber)
        if not provisioned:
            return StepResult(session=session, subscriber=subscriber, replies=[messages.ledger_failed()])

        return StepResult(
            session=session,
            subscriber=subscriber,
            replies=[messages.ledger_ready(subscriber.ledger_url)],
            redispatch=True,
        )

    async def _try_provision(self, subscriber: Subscriber) -> tuple[Subscriber, bool]:
        try:
            subscriber, _ = await self._provisioner.ensure_provisioned(subscriber)
        except StorageError as e:
            logger.warning("ledger_provision_failed", phone=subscriber.phone, error=str(e))
            await self._provisioner.record_failure(subscriber, e)
            return subscriber, False
        return subscriber, True

    # =========================================================================
    # MAIN FLOW
    # =========================================================================

    async def _on_menu(self, session: Session, subscriber: Subscriber, text: str) -> StepResult:
        lowered = text.lower()

        kind = MENU_CHOICES.get(text)
        if kind is not None:
            categories = await self._ledgers.list_categories(subscriber.ledger_id, kind)
            return StepResult(
                session=Session.menu().advance(
                    SessionStep.CATEGORY_SELECT,
                    kind=kind,
                    category_list=categories,
                ),
                subscriber=subscriber,
                replies=[messages.category_list(kind, categories)],
            )

        if looks_like_one_shot(text):
            return await self._one_shot(subscriber, text)

        if lowered in RECENT_WORDS:
            return await self._recent(subscriber)

        if lowered in HELP_WORDS:
            return StepResult(session=Session.menu(), subscriber=subscriber, replies=[messages.quick_help()])

        return StepResult(session=Session.menu(), subscriber=subscriber, replies=[messages.menu_with_help()])

    async def _on_category_select(self, session: Session, subscriber: Subscriber, text: str) -> StepResult:
        if text == messages.NEW_CATEGORY_OPTION:
            return StepResult(
                session=session.advance(SessionStep.CATEGORY_NEW),
                subscriber=subscriber,
                replies=[messages.ask_new_category(session.kind)],
            )

        if text.isdigit():
            index = int(text)
            if 1 <= index <= len(session.category_list):
                category = session.category_list[index - 1]
                return StepResult(
                    session=session.advance(SessionStep.AMOUNT_ENTRY, category=category),
                    subscriber=subscriber,
                    replies=[messages.ask_amount()],
                )

        return StepResult(session=session, subscriber=subscriber, replies=[messages.invalid_category_choice()])

    async def _on_category_new(self, session: Session, subscriber: Subscriber, text: str) -> StepResult:
        name = clean_category_name(text)
        if name is None:
            return StepResult(session=session, subscriber=subscriber, replies=[messages.invalid_category_name()])

        try:
            added = await self._ledgers.add_category(subscriber.ledger_id, session.kind, name)
        except StorageError as e:
            logger.error("category_add_failed", phone=subscriber.phone, category=name, error=str(e))
            await self._audit.log_store_failure("add_category", str(e), actor=subscriber.phone)
            return StepResult(session=session, subscriber=subscriber, replies=[messages.category_failed()])

        if added:
            await self._audit.log_category_added(subscriber.phone, session.kind.value, name)

        return StepResult(
            session=session.advance(SessionStep.AMOUNT_ENTRY, category=name),
            subscriber=subscriber,
            replies=[messages.ask_amount(name)],
        )

    async def _on_amount_entry(self, session: Session, subscriber: Subscriber, text: str) -> StepResult:
        magnitude = self._parse_nonzero(text)
        if magnitude is None:
            return StepResult(session=session, subscriber=subscriber, replies=[messages.invalid_amount()])

        amount = signed_amount(magnitude, session.kind)
        return StepResult(
            session=session.advance(SessionStep.CONFIRM, amount=amount),
            subscriber=subscriber,
            replies=[messages.confirm_summary(session.kind, session.category, amount)],
        )

    async def _on_confirm(self, session: Session, subscriber: Subscriber, text: str) -> StepResult:
        if text != "1":
            await self._audit.log_transaction_cancelled(
                subscriber.phone,
                session.kind.value if session.kind else None,
                str(session.amount) if session.amount is not None else None,
            )
            return StepResult(
                session=Session.menu(),
                subscriber=subscriber,
                replies=[messages.transaction_cancelled()],
            )

        transaction = Transaction.create(
            kind=session.kind,
            category=session.category,
            magnitude=session.amount,
            today=self._today(),
        )
        return await self._save(subscriber, transaction)

    # =========================================================================
    # SHORTCUTS
    # =========================================================================

    async def _one_shot(self, subscriber: Subscriber, text: str) -> StepResult:
        """
        'gasto 25.50 food lunch' / 'ingreso 1200 salary september'

        Tokens are positional: keyword, amount, optional category, then
        everything else is the detail.
        """
        tokens = text.split()
        kind = TransactionKind.from_keyword(tokens[0])
        magnitude = self._parse_nonzero(tokens[1]) if len(tokens) > 1 else None
        if kind is None or magnitude is None:
            return StepResult(
                session=Session.menu(),
                subscriber=subscriber,
                replies=[messages.one_shot_invalid_amount()],
            )

        category = (
            clean_category_name(tokens[2]) if len(tokens) > 2 else None
        ) or DEFAULT_ONE_SHOT_CATEGORY[kind]
        detail = " ".join(tokens[3:])[:MAX_DETAIL_LENGTH]

        transaction = Transaction.create(
            kind=kind,
            category=category,
            magnitude=magnitude,
            today=self._today(),
            detail=detail,
        )
        return await self._save(subscriber, transaction)

    async def _recent(self, subscriber: Subscriber) -> StepResult:
        try:
            transactions = await self._ledgers.list_recent_transactions(
                subscriber.ledger_id,
                limit=self._recent_limit,
            )
        except StorageError as e:
            logger.error("recent_movements_failed", phone=subscriber.phone, error=str(e))
            await self._audit.log_store_failure("list_recent_transactions", str(e), actor=subscriber.phone)
            return StepResult(session=Session.menu(), subscriber=subscriber, replies=[messages.recent_failed()])

        return StepResult(
            session=Session.menu(),
            subscriber=subscriber,
            replies=[messages.recent_movements(transactions)],
        )

    async def _save(self, subscriber: Subscriber, transaction: Transaction) -> StepResult:
        """Append to the ledger. Success or failure, the user lands on the menu."""
        try:
            await self._ledgers.append_transaction(subscriber.ledger_id, transaction)
        except StorageError as e:
            logger.error(
                "transaction_append_failed",
                phone=subscriber.phone,
                transaction_id=transaction.id,
                error=str(e),
            )
            await self._audit.log_store_failure("append_transaction", str(e), actor=subscriber.phone)
            return StepResult(
                session=Session.menu(),
                subscriber=subscriber,
                replies=[messages.transaction_failed(), messages.main_menu()],
            )

        await self._audit.log_transaction_saved(subscriber.phone, transaction)
        return StepResult(
            session=Session.menu(),
            subscriber=subscriber,
            replies=[messages.transaction_saved(transaction)],
        )

    @staticmethod
    def _parse_nonzero(text: str) -> Optional[Decimal]:
        try:
            magnitude = parse_amount(text)
        except InvalidAmount:
            return None
        return magnitude if magnitude != 0 else None
