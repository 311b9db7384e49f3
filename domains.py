"""Canonical domain values and the exceptions shared by all phases.

Every domain is compared through its canonical form, which carries a leading
"." as a label boundary.  That way "is B an ancestor of A" is a single
``endswith`` and can never match half a label (``evilexample.com`` is not
below ``example.com``).
"""
from __future__ import annotations

from dataclasses import dataclass, field


class ListError(Exception):
    """Base class for every expected failure of a run."""


class MalformedDomainError(ListError, ValueError):
    """A single raw value that is not a usable domain."""

    def __init__(self, raw: str, reason: str = "needs at least two labels"):
        self.raw = raw
        self.reason = reason
        super().__init__(f"Malformed domain “{raw}”: {reason}")


class MalformedInputError(ListError):
    """One or more lines of an input source could not be parsed.

    Only the first offending line is kept for the message; ``count`` says how
    many there were in total.
    """

    def __init__(self, source: str, line_number: int, line: str, reason: str, count: int = 1):
        self.source = source
        self.line_number = line_number
        self.line = line
        self.reason = reason
        self.count = count
        msg = f"Invalid line {line_number} in “{source}”: “{line}” ({reason})"
        if count > 1:
            msg += f"; {count} invalid lines in total"
        super().__init__(msg)


class SourceUnavailableError(ListError):
    pass


class OutputError(ListError):
    pass


@dataclass(frozen=True)
class Domain:
    labels: tuple
    canonical: str = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "canonical", "." + ".".join(self.labels))

    @classmethod
    def parse(cls, raw: str) -> "Domain":
        name = raw.strip().lower()
        labels = tuple(name.split("."))
        if len(labels) < 2:
            raise MalformedDomainError(raw)
        if any(not label for label in labels):
            raise MalformedDomainError(raw, "empty label")
        if any(label.split() != [label] for label in labels):
            raise MalformedDomainError(raw, "whitespace in domain")
        return cls(labels)

    @property
    def name(self) -> str:
        return self.canonical[1:]

    @property
    def top_level_key(self) -> str:
        return self.labels[-2] + "." + self.labels[-1]

    def is_ancestor_of(self, other: "Domain") -> bool:
        """True if ``other`` is this domain with one or more labels in front."""
        return len(other.canonical) > len(self.canonical) and other.canonical.endswith(self.canonical)

    def covers(self, other: "Domain") -> bool:
        return self == other or self.is_ancestor_of(other)

    def __len__(self) -> int:
        return len(self.canonical)

    def __str__(self) -> str:
        return self.name
