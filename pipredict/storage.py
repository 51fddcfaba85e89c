"""
In-memory record store with per-record locking.

Users and pools are plain dicts keyed by id, each guarded by its own re-entrant
lock. Multi-record changes go through a UnitOfWork:

    with storage.unit_of_work() as uow:
        pool = uow.lock_pool(pool_id)
        users = uow.lock_users([user_id])
        ...

Lock order is always pool before users, users in sorted id order. A unit works
on deep copies and publishes them, together with its journal lines, only when
the block exits cleanly; any exception discards every change.
"""

import copy
import logging
import threading
from typing import Iterable, Optional

logger = logging.getLogger(__name__)


class InMemoryStorage:
    def __init__(self):
        self.users: dict[str, dict] = {}
        self.pools: dict[str, dict] = {}
        self.ledger_entries: list[dict] = []
        self._locks: dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()
        self._journal_lock = threading.Lock()

    def lock_for(self, kind: str, record_id: str) -> threading.RLock:
        key = f"{kind}:{record_id}"
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    def unit_of_work(self) -> "UnitOfWork":
        return UnitOfWork(self)

    def read_user(self, user_id: str) -> Optional[dict]:
        if user_id not in self.users:
            return None
        with self.lock_for("user", user_id):
            data = self.users.get(user_id)
            return copy.deepcopy(data) if data is not None else None

    def read_pool(self, pool_id: str) -> Optional[dict]:
        if pool_id not in self.pools:
            return None
        with self.lock_for("pool", pool_id):
            data = self.pools.get(pool_id)
            return copy.deepcopy(data) if data is not None else None

    def list_users(self) -> list[dict]:
        users = (self.read_user(user_id) for user_id in list(self.users))
        return [u for u in users if u is not None]

    def list_pools(self) -> list[dict]:
        pools = (self.read_pool(pool_id) for pool_id in list(self.pools))
        return [p for p in pools if p is not None]

    def journal_for(self, user_id: str) -> list[dict]:
        with self._journal_lock:
            return [copy.deepcopy(e) for e in self.ledger_entries if e["user_id"] == user_id]

    def _publish(self, pools: dict, users: dict, journal: list[dict]) -> None:
        for pool_id, data in pools.items():
            if data is not None:
                self.pools[pool_id] = data
        for user_id, data in users.items():
            if data is not None:
                self.users[user_id] = data
        if journal:
            with self._journal_lock:
                self.ledger_entries.extend(journal)


class UnitOfWork:
    def __init__(self, storage: InMemoryStorage):
        self._storage = storage
        self._held: list[threading.RLock] = []
        self._pools: dict[str, Optional[dict]] = {}
        self._users: dict[str, Optional[dict]] = {}
        self._journal: list[dict] = []
        self._users_locked = False

    def __enter__(self) -> "UnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc_type is None:
                self._storage._publish(self._pools, self._users, self._journal)
            elif self._journal or self._pools or self._users:
                logger.warning("Rolled back unit of work (%s: %s)", exc_type.__name__, exc)
        finally:
            for lock in reversed(self._held):
                lock.release()
            self._held.clear()
        return False

    def lock_pool(self, pool_id: str) -> Optional[dict]:
        if self._users_locked:
            raise RuntimeError("Pool locks must be taken before user locks")
        if self._pools:
            raise RuntimeError("A unit of work covers a single pool")
        self._acquire(self._storage.lock_for("pool", pool_id))
        data = self._storage.pools.get(pool_id)
        self._pools[pool_id] = copy.deepcopy(data) if data is not None else None
        return self._pools[pool_id]

    def lock_users(self, user_ids: Iterable[str]) -> dict[str, Optional[dict]]:
        if self._users_locked:
            raise RuntimeError("User locks must be taken in a single call")
        self._users_locked = True
        for user_id in sorted(set(user_ids)):
            self._acquire(self._storage.lock_for("user", user_id))
            data = self._storage.users.get(user_id)
            self._users[user_id] = copy.deepcopy(data) if data is not None else None
        return dict(self._users)

    def pool(self, pool_id: str) -> Optional[dict]:
        if pool_id not in self._pools:
            raise RuntimeError(f"Pool {pool_id} is not locked by this unit of work")
        return self._pools[pool_id]

    def user(self, user_id: str) -> Optional[dict]:
        if user_id not in self._users:
            raise RuntimeError(f"User {user_id} is not locked by this unit of work")
        return self._users[user_id]

    def put_pool(self, pool_id: str, data: dict) -> None:
        self.pool(pool_id)
        self._pools[pool_id] = data

    def put_user(self, user_id: str, data: dict) -> None:
        self.user(user_id)
        self._users[user_id] = data

    def record(self, entry: dict) -> None:
        self._journal.append(entry)

    def _acquire(self, lock: threading.RLock) -> None:
        lock.acquire()
        self._held.append(lock)
