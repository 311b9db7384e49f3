"""Applies the personal allow list to the partitioned block list.

Allowing an entry removes it and all of its subdomains from the block list.
If a blocked ancestor of the entry exists, removal alone is not enough:
dnsmasq would still match the entry through the ancestor, so the entry is
also collected as an override and later written as an explicit
"use the default servers" directive.

Entries are processed concurrently.  Several entries may share a partition,
so every partition has its own reader/writer lock; unrelated partitions never
contend.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Set, Tuple

from domains import Domain
from partitions import PartitionMap

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """Many readers or one writer."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self):
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self):
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class LockRegistry:
    """One ``ReadWriteLock`` per top level key, created on first use.

    Lookups share the registry lock; creation takes it exclusively and checks
    again, so two threads racing on a new key end up with the same lock.
    """

    def __init__(self):
        self._guard = ReadWriteLock()
        self._locks: Dict[str, ReadWriteLock] = {}

    def get(self, key: str) -> ReadWriteLock:
        with self._guard.read():
            lock = self._locks.get(key)
        if lock is not None:
            return lock
        with self._guard.write():
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = ReadWriteLock()
        return lock

    def __contains__(self, key: str) -> bool:
        with self._guard.read():
            return key in self._locks

    def __len__(self) -> int:
        with self._guard.read():
            return len(self._locks)


@dataclass(frozen=True)
class EntryPlan:
    entry: Domain
    removals: Tuple[Domain, ...] = ()
    needs_override: bool = False


class AllowListReconciler:
    """Removes allow-listed domains and collects the needed overrides.

    ``reconcile`` runs in two joined rounds on the same worker pool size:
    first every entry inspects its partition under the read lock, then every
    entry applies its removals under the write lock.  Because nothing is
    removed before all entries have looked, the override decision for an
    entry depends only on the merged block list and not on which other entry
    happened to run first.
    """

    def __init__(self, partitions: PartitionMap, workers: Optional[int] = None,
                 locks: Optional[LockRegistry] = None):
        self.partitions = partitions
        self.workers = workers
        self.locks = locks if locks is not None else LockRegistry()
        self.overrides: Set[Domain] = set()
        self.removed = 0
        self._overrides_lock = threading.Lock()
        self._removed_lock = threading.Lock()

    def inspect(self, entry: Domain) -> EntryPlan:
        key = entry.top_level_key
        lock = self.locks.get(key)
        with lock.read():
            snapshot = self.partitions.snapshot(key)
        if not snapshot:
            logger.debug("No blocked domains below “%s”; nothing to allow", key)
            return EntryPlan(entry)
        removals = []
        needs_override = False
        for domain in snapshot:
            if entry.covers(domain):
                removals.append(domain)
            elif not needs_override and domain.is_ancestor_of(entry):
                needs_override = True
                logger.debug("Add domain to explicit allowing: %s (shadowed by %s)", entry, domain)
        return EntryPlan(entry, tuple(removals), needs_override)

    def apply(self, plan: EntryPlan) -> int:
        removed = 0
        if plan.removals:
            key = plan.entry.top_level_key
            lock = self.locks.get(key)
            for domain in plan.removals:
                with lock.write():
                    if self.partitions.discard(key, domain):
                        removed += 1
                logger.debug("Remove domain because of allowing %s: %s", plan.entry, domain)
            with self._removed_lock:
                self.removed += removed
        if plan.needs_override:
            with self._overrides_lock:
                self.overrides.add(plan.entry)
        return removed

    def reconcile(self, entries: Iterable[Domain]) -> frozenset:
        """Apply all ``entries`` and return the override set."""
        unique = list(dict.fromkeys(entries))
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            plans = list(executor.map(self.inspect, unique))
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            list(executor.map(self.apply, plans))
        logger.info("Applied %d allow list entries: %d domains removed, %d overrides",
                    len(unique), self.removed, len(self.overrides))
        return frozenset(self.overrides)
