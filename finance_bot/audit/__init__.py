"""Audit logging package."""

from finance_bot.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
