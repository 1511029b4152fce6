"""Chat conversation package: dispatcher, user and admin flows."""

from finance_bot.conversation.admin_flow import AdminFlow
from finance_bot.conversation.dispatcher import Dispatcher, InboundMessage, build_dispatcher
from finance_bot.conversation.session_store import SessionStore
from finance_bot.conversation.user_flow import StepResult, UserFlow

__all__ = [
    "AdminFlow",
    "Dispatcher",
    "InboundMessage",
    "SessionStore",
    "StepResult",
    "UserFlow",
    "build_dispatcher",
]
