"""Removal of shadowed domains.

A domain is shadowed when one of its ancestors is blocked as well: dnsmasq
matches ``server=/example.com/`` for every name below example.com, so a
separate line for ``ads.example.com`` is redundant.

Partitions arrive frozen and sorted by canonical length (see
``PartitionMap.freeze``).  An ancestor is always shorter than its
descendants, so the scan for a domain stops at the first longer candidate.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, Iterable, Optional, Set, Tuple

from collector import ResultCollector
from domains import Domain
from partitions import PartitionMap

logger = logging.getLogger(__name__)

# Domains per work unit; large partitions are split so one busy key does not
# serialize the whole phase.
DEFAULT_CHUNK_SIZE = 5000


def is_shadowed(domain: Domain, ordered: Tuple[Domain, ...]) -> bool:
    length = len(domain)
    for candidate in ordered:
        if len(candidate) > length:
            return False
        if candidate.is_ancestor_of(domain):
            return True
    return False


class ShadowFilter:
    def __init__(self, workers: Optional[int] = None, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self.workers = workers
        self.chunk_size = chunk_size

    def _filter_slice(self, ordered, start, stop, collector: ResultCollector) -> int:
        kept = [d for d in ordered[start:stop] if not is_shadowed(d, ordered)]
        collector.put(kept)
        return (stop - start) - len(kept)

    def run(self, frozen: Dict[str, Tuple[Domain, ...]], collector: ResultCollector) -> int:
        """Send the minimal domains of every partition to ``collector``.

        Returns the number of shadowed domains.  Only returns once all work
        units are finished; the caller closes the collector afterwards.
        """
        shadowed = 0
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures = [
                executor.submit(self._filter_slice, ordered, start,
                                min(start + self.chunk_size, len(ordered)), collector)
                for ordered in frozen.values()
                for start in range(0, len(ordered), self.chunk_size)
            ]
            logger.info("Created %d shadow filter work units for %d partitions", len(futures), len(frozen))
            for future in as_completed(futures):
                shadowed += future.result()
        return shadowed


def minimal_set(domains: Iterable[Domain], workers: Optional[int] = None) -> Set[Domain]:
    """Shadow-free subset of ``domains``."""
    frozen = PartitionMap.from_domains(domains).freeze()
    with ResultCollector() as collector:
        ShadowFilter(workers).run(frozen, collector)
    return set(collector.kept)
