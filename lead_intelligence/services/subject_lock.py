"""
Subject Lock

Per-subject critical section around recomputation, so concurrent refreshes
of the same (org, subject) pair run one at a time.
"""

import asyncio
import datetime as dt
import uuid
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from lead_intelligence.config import get_settings
from lead_intelligence.errors import SubjectBusyError
from lead_intelligence.utils.metrics import metrics
from lead_intelligence.utils.observability import logger

LOCK_COLLECTION = "intelligence_locks"


class SubjectLock(ABC):
    """
    Abstract per-subject lock.

    Implementations:
    - InMemorySubjectLock: asyncio locks, single process
    - MongoSubjectLock: lease documents, shared by every worker on the database
    """

    def __init__(self, timeout_seconds: Optional[float] = None):
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None
            else get_settings().subject_lock_timeout_seconds
        )

    @abstractmethod
    async def acquire(self, key: str) -> str:
        """
        Block until the lock for `key` is held.

        Returns:
            Ownership token to pass to release()

        Raises:
            SubjectBusyError: If the lock was not obtained within the timeout
        """
        pass

    @abstractmethod
    async def release(self, key: str, token: str) -> None:
        pass

    @asynccontextmanager
    async def hold(self, org_id: str, subject_key: str) -> AsyncIterator[None]:
        """
        Async context manager holding the lock for one subject.

        Usage:
            async with lock.hold("org_1", "lead:abc"):
                ...
        """
        key = f"{org_id}:{subject_key}"
        token = await self.acquire(key)
        try:
            yield
        finally:
            await self.release(key, token)


class InMemorySubjectLock(SubjectLock):
    """
    asyncio.Lock per key. Suitable for tests and single-worker deployments.

    Entries are dropped once released with nobody waiting, so the table only
    holds subjects that are currently being analyzed.
    """

    def __init__(self, timeout_seconds: Optional[float] = None):
        super().__init__(timeout_seconds)
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiting: Dict[str, int] = {}

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def _prune(self, key: str) -> None:
        lock = self._locks.get(key)
        if lock is not None and not lock.locked() and not self._waiting.get(key):
            del self._locks[key]
            self._waiting.pop(key, None)

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    async def acquire(self, key: str) -> str:
        lock = self._lock_for(key)
        if lock.locked():
            metrics.lock_contention.inc(result="waited")

        self._waiting[key] = self._waiting.get(key, 0) + 1
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            metrics.lock_contention.inc(result="timeout")
            logger.warning(f"Timed out waiting for subject lock {key}")
            raise SubjectBusyError("Subject is being analyzed, retry shortly")
        finally:
            self._waiting[key] -= 1
            self._prune(key)

        return key

    async def release(self, key: str, token: str) -> None:
        lock = self._locks.get(key)
        if lock is not None and lock.locked():
            lock.release()
        self._prune(key)


class MongoSubjectLock(SubjectLock):
    """
    Lease documents in `intelligence_locks`.

    The unique `_id` makes acquisition atomic. Leases carry `expires_at`
    so a crashed worker's lock is taken over after the lease and later
    removed by the TTL index.
    """

    def __init__(
        self,
        database: AsyncIOMotorDatabase,
        lease_seconds: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        poll_seconds: Optional[float] = None
    ):
        super().__init__(timeout_seconds)
        settings = get_settings()
        self.collection = database[LOCK_COLLECTION]
        self.lease = dt.timedelta(seconds=lease_seconds or settings.subject_lock_lease_seconds)
        self.poll_seconds = poll_seconds or settings.subject_lock_poll_seconds

    async def _try_acquire(self, key: str, token: str) -> bool:
        now = dt.datetime.now(dt.UTC)
        lease = {"owner": token, "acquired_at": now, "expires_at": now + self.lease}

        try:
            await self.collection.insert_one({"_id": key, **lease})
            return True
        except DuplicateKeyError:
            pass

        # Take over an expired lease the TTL monitor has not removed yet
        taken = await self.collection.find_one_and_update(
            {"_id": key, "expires_at": {"$lte": now}},
            {"$set": lease}
        )
        return taken is not None

    async def acquire(self, key: str) -> str:
        token = uuid.uuid4().hex
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout_seconds
        waited = False

        while not await self._try_acquire(key, token):
            if not waited:
                metrics.lock_contention.inc(result="waited")
                waited = True

            if loop.time() >= deadline:
                metrics.lock_contention.inc(result="timeout")
                logger.warning(f"Timed out waiting for subject lease {key}")
                raise SubjectBusyError("Subject is being analyzed, retry shortly")

            await asyncio.sleep(self.poll_seconds)

        logger.bind(owner=token).debug(f"Acquired subject lease {key}")
        return token

    async def release(self, key: str, token: str) -> None:
        await self.collection.delete_one({"_id": key, "owner": token})


def get_subject_lock(database: Optional[AsyncIOMotorDatabase] = None) -> SubjectLock:
    """
    Build the configured lock backend.
    The Mongo backend needs a connected database; without one we fall back to memory.
    """
    if get_settings().subject_lock_backend == "mongo" and database is not None:
        return MongoSubjectLock(database)
    return InMemorySubjectLock()
