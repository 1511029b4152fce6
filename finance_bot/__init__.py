"""
Finance Bot - Source Package

A chat bot that lets authorized phone numbers record income and
expenses into their own Google Sheets ledger.

DESIGN PRINCIPLES:
1. The directory decides who may talk to the bot
2. Nothing is recorded without an explicit confirmation (or a one-shot command)
3. Every store failure becomes a reply, never a crash
4. Every step is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Bot Team"
