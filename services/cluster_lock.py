"""
Cluster Locks - per-cluster serialization for identity resolution

Two layers:
- in-process asyncio locks keyed by string, so concurrent requests in one
  worker that touch the same cluster or identifier run one at a time
- PostgreSQL transaction-scoped advisory locks on the same keys, so the
  guarantee also holds across workers and Lambda containers

Keys are always taken in sorted order to rule out lock-order deadlocks.
"""

import asyncio
import hashlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Iterable, List, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def cluster_key(primary_id: int) -> str:
    return f"contact:{primary_id}"


def email_key(email: str) -> str:
    return f"email:{email}"


def phone_key(phone: str) -> str:
    return f"phone:{phone}"


def advisory_lock_id(key: str) -> int:
    """Stable signed 64-bit id for a lock key, as pg_advisory_xact_lock expects"""
    digest = hashlib.blake2b(key.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, byteorder="big", signed=True)


class _LockEntry:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.holders = 0


class ClusterLockManager:
    """
    Registry of keyed locks

    Entries are created on demand and dropped once no task holds or waits on
    them, so the registry only grows with the number of in-flight keys.
    """

    def __init__(self, use_advisory_locks: bool = True):
        self.use_advisory_locks = use_advisory_locks
        self._entries: Dict[str, _LockEntry] = {}

    def active_keys(self) -> List[str]:
        return sorted(self._entries)

    @asynccontextmanager
    async def hold(self, keys: Iterable[str]) -> AsyncIterator[List[str]]:
        """Acquire every key in sorted order; release all on exit"""
        ordered = sorted(set(keys))
        acquired: List[_LockEntry] = []

        entries = []
        for key in ordered:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _LockEntry()
            entry.holders += 1
            entries.append((key, entry))

        try:
            for key, entry in entries:
                await entry.lock.acquire()
                acquired.append(entry)
            yield ordered
        finally:
            for entry in reversed(acquired):
                entry.lock.release()
            for key, entry in entries:
                entry.holders -= 1
                if entry.holders == 0 and self._entries.get(key) is entry:
                    del self._entries[key]

    async def acquire_advisory(self, session: AsyncSession, keys: Iterable[str]) -> None:
        """
        Take transaction-scoped advisory locks for `keys` on PostgreSQL
        Released automatically when the session's transaction ends
        """
        if not self.use_advisory_locks:
            return
        if session.get_bind().dialect.name != "postgresql":
            return

        for key in sorted(set(keys)):
            await session.execute(
                text("SELECT pg_advisory_xact_lock(:lock_id)"),
                {"lock_id": advisory_lock_id(key)}
            )
        logger.debug(f"Advisory locks held for keys: {sorted(set(keys))}")


def build_lock_keys(
    email: Optional[str],
    phone: Optional[str],
    primary_ids: Iterable[int]
) -> frozenset:
    """Lock keys for one resolve attempt: implicated clusters plus input identifiers"""
    keys = {cluster_key(primary_id) for primary_id in primary_ids}
    if email:
        keys.add(email_key(email))
    if phone:
        keys.add(phone_key(phone))
    return frozenset(keys)
