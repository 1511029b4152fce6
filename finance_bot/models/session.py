"""
Conversation Session Models

A Session is the per-identity scratchpad of the chat flow.
It lives in memory only and is lost on restart.

Sessions are treated as values: a step handler returns a NEW session
(via advance/menu) instead of mutating the one it was given.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from finance_bot.models.ledger import TransactionKind


class SessionStep(str, Enum):
    """Where the user is in the conversation."""
    MENU = "MENU"
    ASK_EMAIL = "ASK_EMAIL"
    ASK_NAME = "ASK_NAME"
    CATEGORY_SELECT = "CATEGORY_SELECT"
    CATEGORY_NEW = "CATEGORY_NEW"
    AMOUNT_ENTRY = "AMOUNT_ENTRY"
    CONFIRM = "CONFIRM"


class Session(BaseModel):
    """Conversation state for one identity."""
    model_config = ConfigDict(frozen=True)

    step: SessionStep = SessionStep.MENU

    # Step-scoped scratch
    kind: Optional[TransactionKind] = None
    category_list: list[str] = Field(default_factory=list)
    category: Optional[str] = None
    amount: Optional[Decimal] = Field(
        default=None,
        description="Signed amount pending confirmation"
    )

    @classmethod
    def menu(cls) -> "Session":
        """Fresh session at the top-level menu (scratch cleared)."""
        return cls(step=SessionStep.MENU)

    def advance(self, step: SessionStep, **changes) -> "Session":
        """Copy of this session moved to `step`, with scratch fields updated."""
        return self.model_copy(update={"step": step, **changes})
