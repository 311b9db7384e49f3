"""Domains sharded by top level key ("last two labels").

Shadowing needs one domain to be a dotted suffix of another, so both always
share their last two labels.  Partitions never have to be compared with each
other, which is what lets the later phases work on them independently.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, Optional, Set, Tuple

from domains import Domain

logger = logging.getLogger(__name__)


class PartitionMap:
    """Mapping from top level key to the set of domains below it.

    Not thread-safe on its own; concurrent writers have to hold the lock of
    the partition they touch (see ``allowlist.LockRegistry``).
    """

    def __init__(self):
        self._partitions: Dict[str, Set[Domain]] = {}

    @classmethod
    def from_domains(cls, domains: Iterable[Domain]) -> "PartitionMap":
        partitions = cls()
        for domain in domains:
            partitions.insert(domain)
        return partitions

    def insert(self, domain: Domain) -> bool:
        """Add ``domain``; returns False if it was already present."""
        key = domain.top_level_key
        members = self._partitions.get(key)
        if members is None:
            members = self._partitions[key] = set()
        if domain in members:
            return False
        members.add(domain)
        return True

    def discard(self, key: str, domain: Domain) -> bool:
        members = self._partitions.get(key)
        if members is None or domain not in members:
            return False
        members.remove(domain)
        return True

    def snapshot(self, key: str) -> Optional[frozenset]:
        """Copy of one partition, or None if the key was never seen."""
        members = self._partitions.get(key)
        if members is None:
            return None
        return frozenset(members)

    def items(self) -> Iterator[Tuple[str, Set[Domain]]]:
        return iter(self._partitions.items())

    def domain_count(self) -> int:
        return sum(len(members) for members in self._partitions.values())

    def freeze(self) -> Dict[str, Tuple[Domain, ...]]:
        """Sorted, immutable view for the shadow filter.

        Each partition becomes a tuple ordered by canonical length, so that a
        scan for ancestors can stop at the first longer candidate.  Empty
        partitions (everything allow-listed away) are dropped.
        """
        return {
            key: tuple(sorted(members, key=len))
            for key, members in self._partitions.items()
            if members
        }

    def __contains__(self, domain: Domain) -> bool:
        members = self._partitions.get(domain.top_level_key)
        return members is not None and domain in members

    def __len__(self) -> int:
        return len(self._partitions)


def merge_block_list(partitions: PartitionMap, entries: Iterable[Domain]) -> int:
    """Add the personal block list.  Returns the number of new domains."""
    added = 0
    for domain in entries:
        if partitions.insert(domain):
            added += 1
    logger.info("Merged personal block list: %d new domains", added)
    return added
