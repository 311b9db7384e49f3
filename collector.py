"""Fan-in of the shadow filter results and the dnsmasq servers file."""
from __future__ import annotations

import logging
import os
import queue
import tempfile
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, List, Optional

from domains import Domain, OutputError

logger = logging.getLogger(__name__)

_DONE = object()


class DirectiveKind(Enum):
    BLOCK = "block"
    OVERRIDE = "override"


@dataclass(frozen=True)
class Directive:
    kind: DirectiveKind
    domain: Domain


class ResultCollector:
    """Single consumer for batches of kept domains.

    Producers call ``put`` from any thread; with a bounded ``maxsize`` they
    block until the consumer catches up.  ``close`` must only be called once
    every producer is done: it queues the end marker and waits until the
    consumer has drained everything before it.
    """

    def __init__(self, maxsize: int = 0):
        self.queue: queue.Queue = queue.Queue(maxsize)
        self.kept: List[Domain] = []
        self._thread = threading.Thread(target=self._drain, name="result-collector", daemon=True)

    def start(self) -> "ResultCollector":
        self._thread.start()
        return self

    def put(self, batch: List[Domain]) -> None:
        if batch:
            self.queue.put(batch)

    def close(self) -> List[Domain]:
        self.queue.put(_DONE)
        self._thread.join()
        return self.kept

    def _drain(self):
        while True:
            batch = self.queue.get()
            if batch is _DONE:
                break
            self.kept.extend(batch)

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def build_directives(minimal: Iterable[Domain], overrides: Iterable[Domain]) -> List[Directive]:
    """Block directives first, then overrides, each sorted by name."""
    directives = [Directive(DirectiveKind.BLOCK, d) for d in sorted(minimal, key=str)]
    directives += [Directive(DirectiveKind.OVERRIDE, d) for d in sorted(overrides, key=str)]
    return directives


def format_directive(directive: Directive) -> str:
    if directive.kind is DirectiveKind.OVERRIDE:
        return f"server=/{directive.domain}/#"
    return f"server=/{directive.domain}/"


def write_servers_file(path: str, directives: List[Directive], header: Optional[List[str]] = None) -> int:
    """Atomically replace ``path`` with the rendered directives.

    The file is written next to its destination and renamed over it, so a
    failed run never leaves a truncated servers file behind.
    """
    directory = os.path.dirname(os.path.abspath(path))
    blocks = sum(1 for d in directives if d.kind is DirectiveKind.BLOCK)
    if header is None:
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
        header = [
            f"Blocked domains: {blocks}",
            f"Explicitly allowed domains: {len(directives) - blocks}",
            f"Last updated: {timestamp}",
        ]
    try:
        fd, tmp_path = tempfile.mkstemp(prefix=".servers-", dir=directory)
    except OSError as e:
        raise OutputError(f"Could not create temporary file in “{directory}”: {e}") from e
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            for line in header:
                f.write(f"# {line}\n")
            for directive in directives:
                f.write(format_directive(directive) + "\n")
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, path)
    except OSError as e:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        raise OutputError(f"Error writing to file “{path}”: {e}") from e
    logger.info("Wrote %d directives to %s", len(directives), path)
    return len(directives)
