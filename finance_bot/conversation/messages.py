"""
Reply Texts

Every message the bot sends is built here, so wording lives in one
place and the flows stay about state.

Formatting uses the messaging client's markup (*bold*, _italic_).
"""

from decimal import Decimal
from typing import Optional

from finance_bot.models.ledger import Subscriber, Transaction, TransactionKind
from finance_bot.validation.amount import format_amount


NEW_CATEGORY_OPTION = "99"
BACK_TO_MENU = "0) Menu"


def main_menu() -> str:
    return "\n".join([
        "What do you want to record?",
        "1) Income",
        "2) Expense",
    ])


def quick_help() -> str:
    return "\n".join([
        "📒 *Quick entry*",
        "",
        "• *gasto* <amount> [category] [detail]",
        "  e.g.  gasto 25.50 food lunch",
        "",
        "• *ingreso* <amount> [category] [detail]",
        "  e.g.  ingreso 1200 salary september",
        "",
        "• *recent* lists your latest movements",
        "",
        "_Flexible format: 10,50 or 10.50 both work_",
    ])


def menu_with_help() -> str:
    return main_menu() + "\n\n" + quick_help()


# =============================================================================
# ONBOARDING
# =============================================================================

def ask_email() -> str:
    return "To get started, send me your email address (e.g. name@domain.com)"


def invalid_email() -> str:
    return "That doesn't look like an email. Try again (e.g. name@domain.com)"


def email_saved(ledger_url: Optional[str], ask_name: bool = True) -> str:
    lines = ["Done, I saved your email."]
    if ledger_url:
        lines.append(f"Your ledger is ready: {ledger_url}")
    if ask_name:
        lines.append("Now, what should I call you? (your name)")
    return "\n".join(lines)


def ask_name() -> str:
    return "What should I call you? (send your name)"


def name_saved(display_name: str) -> str:
    return f"Perfect, {display_name}. You're all set."


def ledger_ready(ledger_url: str) -> str:
    return f"I created your ledger and shared it with you. Open it here: {ledger_url}"


def ledger_failed() -> str:
    return "I couldn't create or share your ledger. Please let the administrator know."


# =============================================================================
# GUIDED FLOW
# =============================================================================

def category_list(kind: TransactionKind, categories: list[str]) -> str:
    return "\n".join([
        f"Choose a category for *{kind.label}*:",
        *[f"{i}) {name}" for i, name in enumerate(categories, start=1)],
        f"{NEW_CATEGORY_OPTION}) Add new category",
        "",
        BACK_TO_MENU,
    ])


def invalid_category_choice() -> str:
    return "Choose a valid option from the list, or 0 to go back to the menu."


def ask_new_category(kind: TransactionKind) -> str:
    return f"Type the name of the new {kind.label.lower()} category:\n{BACK_TO_MENU}"


def invalid_category_name() -> str:
    return "Invalid name. Send a name for the category, or 0 for the menu."


def category_failed() -> str:
    return "I couldn't add the category. Try again, or send 0 to go back to the menu."


def ask_amount(category: Optional[str] = None) -> str:
    prefix = f"Category '{category}' ready. " if category else ""
    return f"{prefix}Enter the amount (e.g. 120, 120.50):\n{BACK_TO_MENU}"


def invalid_amount() -> str:
    return f"Invalid amount. Try again (e.g. 120, 120.50).\n{BACK_TO_MENU}"


def confirm_summary(kind: TransactionKind, category: str, amount: Decimal) -> str:
    return "\n".join([
        "You are about to record:",
        f"• Type: {kind.label}",
        f"• Category: {category}",
        f"• Amount: {format_amount(amount)}",
        "",
        "Confirm? 1) Yes, 2) No",
    ])


def transaction_saved(transaction: Transaction) -> str:
    lines = [
        "✅ *Recorded*",
        f"• Type: {transaction.kind.label}",
        f"• Amount: {format_amount(transaction.amount)}",
        f"• Category: {transaction.category}",
    ]
    if transaction.detail:
        lines.append(f"• Detail: {transaction.detail}")
    lines += [
        f"• Date: {transaction.date.isoformat()}",
        f"• ID: {transaction.id}",
        "",
        BACK_TO_MENU,
    ]
    return "\n".join(lines)


def transaction_failed() -> str:
    return "⚠️ The movement could not be recorded. Please let the administrator know."


def transaction_cancelled() -> str:
    return "Cancelled. Back to the menu...\n" + main_menu()


def one_shot_invalid_amount() -> str:
    return (
        "⚠️ You need a valid *amount*.\n"
        "E.g. *gasto 25.50 food lunch*\n\n" + quick_help()
    )


def recent_movements(transactions: list[Transaction]) -> str:
    if not transactions:
        return "No movements recorded yet."
    lines = ["🧾 *Latest movements*"]
    for t in transactions:
        detail = f" - {t.detail}" if t.detail else ""
        lines.append(
            f"• {t.date.isoformat()} {t.kind.label} {format_amount(t.amount)} ({t.category}){detail}"
        )
    return "\n".join(lines)


def recent_failed() -> str:
    return "⚠️ I couldn't read your movements right now. Try again later."


# =============================================================================
# ADMIN
# =============================================================================

def admin_help() -> str:
    return "\n".join([
        "🛠️ *ADMIN*",
        "",
        "• authorize <phone>",
        "• deauthorize <phone>",
        "• status <phone>",
        "",
        "Phones may be local (999999999) or international (+51999999999).",
    ])


def not_authorized() -> str:
    return "🚫 This number is not authorized to use the bot. Contact the administrator."


def admin_rejected() -> str:
    return "🚫 You are not authorized as administrator."


def admin_bad_phone() -> str:
    return "I didn't recognize that phone. Try again, e.g. *status +51999999999*."


def admin_authorized(phone: str) -> str:
    return f"✅ Phone {phone} is now AUTHORIZED."


def admin_deauthorized(phone: str) -> str:
    return f"⛔ Phone {phone} is now NOT AUTHORIZED."


def admin_not_found(phone: str) -> str:
    return f"Phone {phone} is not in the directory."


def admin_status(subscriber: Subscriber) -> str:
    lines = [
        "Subscriber status",
        f"• Phone: {subscriber.phone}",
        f"• Authorized: {'Yes' if subscriber.authorized else 'No'}",
        f"• Email: {subscriber.email or '-'}",
        f"• Name: {subscriber.display_name or '-'}",
        f"• Ledger URL: {subscriber.ledger_url or '-'}",
    ]
    if subscriber.note:
        lines.append(f"• Note: {subscriber.note}")
    return "\n".join(lines)


def admin_failed(operation: str) -> str:
    return f"⚠️ Could not {operation}. Check the Sheets configuration."


# =============================================================================
# ERRORS
# =============================================================================

def store_unavailable() -> str:
    return "⚠️ I can't reach your data right now. Please try again in a moment."


def unexpected_error() -> str:
    return "⚠️ An unexpected error occurred while processing your message."
