import os
import threading

import pytest

from collector import (
    Directive,
    DirectiveKind,
    ResultCollector,
    build_directives,
    format_directive,
    write_servers_file,
)
from domains import Domain, OutputError


def d(name):
    return Domain.parse(name)


def test_collector_receives_every_batch_from_many_threads() -> None:
    with ResultCollector(maxsize=1) as collector:
        threads = [
            threading.Thread(target=collector.put, args=([d(f"h{i}-{j}.example.com") for j in range(10)],))
            for i in range(20)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        collector.put([])
    assert len(collector.kept) == 200
    assert len(set(collector.kept)) == 200


def test_build_directives_orders_blocks_before_overrides() -> None:
    directives = build_directives([d("b.com"), d("a.com")], [d("x.a.com")])
    assert [(x.kind, str(x.domain)) for x in directives] == [
        (DirectiveKind.BLOCK, "a.com"),
        (DirectiveKind.BLOCK, "b.com"),
        (DirectiveKind.OVERRIDE, "x.a.com"),
    ]


def test_format_directive() -> None:
    assert format_directive(Directive(DirectiveKind.BLOCK, d("example.com"))) == "server=/example.com/"
    assert format_directive(Directive(DirectiveKind.OVERRIDE, d("x.example.com"))) == "server=/x.example.com/#"


def test_write_servers_file_replaces_atomically(tmp_path) -> None:
    target = tmp_path / "servers-blacklist"
    target.write_text("old\n")
    directives = build_directives([d("example.com")], [d("x.example.com")])
    assert write_servers_file(str(target), directives) == 2
    lines = target.read_text().splitlines()
    assert lines[0] == "# Blocked domains: 1"
    assert lines[1] == "# Explicitly allowed domains: 1"
    assert lines[-2:] == ["server=/example.com/", "server=/x.example.com/#"]
    assert sorted(p.name for p in tmp_path.iterdir()) == ["servers-blacklist"]
    assert oct(os.stat(target).st_mode & 0o777) == oct(0o644)


def test_write_servers_file_custom_header(tmp_path) -> None:
    target = tmp_path / "out"
    write_servers_file(str(target), [], header=["hello"])
    assert target.read_text() == "# hello\n"


def test_write_failure_keeps_previous_output(tmp_path, monkeypatch) -> None:
    target = tmp_path / "servers-blacklist"
    target.write_text("old\n")

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", broken_replace)
    with pytest.raises(OutputError):
        write_servers_file(str(target), build_directives([d("example.com")], []))
    assert target.read_text() == "old\n"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["servers-blacklist"]


def test_write_into_missing_directory_fails(tmp_path) -> None:
    with pytest.raises(OutputError):
        write_servers_file(str(tmp_path / "nope" / "out"), [])
