"""The phases of a run, in order and with a barrier after each one.

1. partition the block list
2. merge the personal block list
3. apply the personal allow list (all entries joined)
4. freeze and filter shadowed domains (all work units joined, collector drained)

The allow list must see the fully merged block list, and the shadow filter
must see the final partitions, so no phase overlaps with the next.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional

from allowlist import AllowListReconciler
from collector import ResultCollector
from domains import Domain
from partitions import PartitionMap, merge_block_list
from shadow import DEFAULT_CHUNK_SIZE, ShadowFilter

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 64


@dataclass
class RunStats:
    input_domains: int = 0
    unique_domains: int = 0
    partitions: int = 0
    merged: int = 0
    removed: int = 0
    shadowed: int = 0
    minimal: int = 0
    overrides: int = 0
    timings: Dict[str, float] = field(default_factory=dict)


@dataclass
class MinimizeResult:
    minimal: List[Domain]
    overrides: FrozenSet[Domain]
    partitions: Dict[str, tuple]
    stats: RunStats


def minimize(block_domains: Iterable[Domain], manual_block: Iterable[Domain] = (),
             allow: Iterable[Domain] = (), workers: Optional[int] = None,
             queue_size: int = DEFAULT_QUEUE_SIZE,
             chunk_size: int = DEFAULT_CHUNK_SIZE) -> MinimizeResult:
    if workers is not None and workers < 1:
        raise ValueError("workers must be at least 1")
    stats = RunStats()

    started = time.perf_counter()
    partitions = PartitionMap()
    for domain in block_domains:
        stats.input_domains += 1
        partitions.insert(domain)
    stats.unique_domains = partitions.domain_count()
    logger.info("Partitioned %d domains (%d unique) into %d partitions",
                stats.input_domains, stats.unique_domains, len(partitions))
    stats.timings["partition"] = time.perf_counter() - started

    started = time.perf_counter()
    stats.merged = merge_block_list(partitions, manual_block)
    stats.timings["merge"] = time.perf_counter() - started

    started = time.perf_counter()
    reconciler = AllowListReconciler(partitions, workers=workers)
    overrides = reconciler.reconcile(allow)
    stats.removed = reconciler.removed
    stats.overrides = len(overrides)
    stats.timings["allow"] = time.perf_counter() - started

    started = time.perf_counter()
    frozen = partitions.freeze()
    stats.partitions = len(frozen)
    with ResultCollector(maxsize=queue_size) as collector:
        stats.shadowed = ShadowFilter(workers, chunk_size).run(frozen, collector)
    minimal = collector.kept
    stats.minimal = len(minimal)
    stats.timings["shadow"] = time.perf_counter() - started
    logger.info("Minimal domains collected: %d (%d shadowed)", stats.minimal, stats.shadowed)

    return MinimizeResult(minimal=minimal, overrides=overrides, partitions=frozen, stats=stats)
