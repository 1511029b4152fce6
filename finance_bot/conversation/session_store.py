"""
Session Store

In-memory conversation state keyed by canonical identity.

The dispatcher owns one SessionStore and hands it to the flows.
Sessions have no expiry: abandoned ones stay until the process restarts.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from finance_bot.models.session import Session


class SessionStore:
    """
    Sessions plus one lock per identity.

    The lock keeps messages from the same sender from interleaving:
    asyncio.Lock wakes waiters in FIFO order, so they are handled in
    arrival order.
    """

    def __init__(self):
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    def get(self, identity: str) -> Optional[Session]:
        return self._sessions.get(identity)

    def get_or_menu(self, identity: str) -> Session:
        return self._sessions.get(identity) or Session.menu()

    def save(self, identity: str, session: Session) -> None:
        self._sessions[identity] = session

    def reset(self, identity: str) -> None:
        self._sessions.pop(identity, None)

    def lock(self, identity: str) -> asyncio.Lock:
        if identity not in self._locks:
            self._locks[identity] = asyncio.Lock()
        return self._locks[identity]

    @asynccontextmanager
    async def exclusive(self, identity: str) -> AsyncIterator[None]:
        """
        Hold the identity's lock for the duration of the block.

        The lock is forgotten once nobody holds or waits on it, so
        one-off senders do not leave entries behind.
        """
        lock = self.lock(identity)
        self._holders[identity] = self._holders.get(identity, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[identity] -= 1
            if not self._holders[identity]:
                del self._holders[identity]
                del self._locks[identity]

    @property
    def lock_count(self) -> int:
        return len(self._locks)

    def __contains__(self, identity: str) -> bool:
        return identity in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
