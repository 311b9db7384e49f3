"""Loading of the big block list and the personal block and allow lists."""
from __future__ import annotations

import ipaddress
import logging
import os
from typing import Iterable, Iterator, List, Tuple

import requests

from domains import (
    Domain,
    MalformedDomainError,
    MalformedInputError,
    SourceUnavailableError,
)

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 60


def is_url(location: str) -> bool:
    return location.startswith(("http://", "https://"))


def fetch_lines(url: str) -> List[str]:
    logger.info("Fetching: %s", url)
    try:
        r = requests.get(url, timeout=REQUEST_TIMEOUT)
        r.raise_for_status()
    except requests.RequestException as e:
        raise SourceUnavailableError(f"Could not fetch domains from “{url}”: {e}") from e
    return r.text.splitlines()


def read_lines(path: str) -> List[str]:
    try:
        with open(path, "rb") as f:
            raw_lines = f.read().splitlines()
    except OSError as e:
        raise SourceUnavailableError(f"Could not open list file “{path}”: {e}") from e
    lines = []
    first = None
    bad = 0
    for number, raw in enumerate(raw_lines, 1):
        try:
            lines.append(raw.decode("utf-8"))
        except UnicodeDecodeError:
            bad += 1
            if first is None:
                first = (number, raw.decode("utf-8", errors="replace"))
    if first is not None:
        raise MalformedInputError(path, first[0], first[1], "not valid UTF-8", count=bad)
    return lines


def clean_lines(lines: Iterable[str]) -> Iterator[Tuple[int, str]]:
    """Yield (line number, content) without comments and blank lines."""
    for number, raw in enumerate(lines, 1):
        line = raw.split("#", 1)[0].strip()
        if line:
            yield number, line


def parse_host_line(line: str) -> Domain:
    parts = line.split()
    if len(parts) != 2:
        raise MalformedDomainError(line, "expected an address and a domain")
    address, name = parts
    try:
        ipaddress.ip_address(address)
    except ValueError:
        raise MalformedDomainError(line, f"“{address}” is not an IP address") from None
    return Domain.parse(name)


def _parse_all(source: str, lines: Iterable[str], parse) -> List[Domain]:
    domains = []
    first = None
    bad = 0
    for number, line in clean_lines(lines):
        try:
            domains.append(parse(line))
        except MalformedDomainError as e:
            bad += 1
            if first is None:
                first = (number, line, e.reason)
    if first is not None:
        raise MalformedInputError(source, first[0], first[1], first[2], count=bad)
    return domains


def read_domains(location: str) -> List[Domain]:
    """Parse the main hosts-format block list from a file or URL."""
    logger.info("Reading domains from %s", location)
    lines = fetch_lines(location) if is_url(location) else read_lines(location)
    domains = _parse_all(location, lines, parse_host_line)
    logger.info("Finished reading domains: %d entries", len(domains))
    return domains


def read_list(path: str) -> List[Domain]:
    """Parse a personal block or allow list; a missing file counts as empty."""
    if not os.path.exists(path):
        logger.warning("Could not find file %s; assumed empty", path)
        return []
    domains = _parse_all(path, read_lines(path), Domain.parse)
    logger.info("Read %d entries from %s", len(domains), path)
    return domains
