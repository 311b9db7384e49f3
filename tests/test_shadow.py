import random

import pytest

from collector import ResultCollector
from domains import Domain
from partitions import PartitionMap
from shadow import ShadowFilter, is_shadowed, minimal_set


def d(name):
    return Domain.parse(name)


def names(domains):
    return {str(x) for x in domains}


def test_shadowed_subdomains_are_dropped() -> None:
    result = minimal_set([d("example.com"), d("x.example.com"), d("a.b.example.com"), d("b.org")])
    assert names(result) == {"example.com", "b.org"}


def test_lookalikes_are_both_kept() -> None:
    result = minimal_set([d("evil-example.com"), d("example.com"), d("evilexample.com")])
    assert names(result) == {"evil-example.com", "example.com", "evilexample.com"}


def test_deep_ancestor_without_middle_level() -> None:
    result = minimal_set([d("ads.example.com"), d("a.b.c.ads.example.com"), d("b.example.com")])
    assert names(result) == {"ads.example.com", "b.example.com"}


def test_same_length_candidates_do_not_stop_the_scan_early() -> None:
    ordered = tuple(sorted([d("aa.com"), d("bb.com"), d("x.bb.com"), d("y.aa.com")], key=len))
    assert is_shadowed(d("x.bb.com"), ordered)
    assert is_shadowed(d("y.aa.com"), ordered)
    assert not is_shadowed(d("bb.com"), ordered)


def test_scan_stops_at_longer_candidates() -> None:
    ordered = (d("x.y.example.com"),)
    assert not is_shadowed(d("example.com"), ordered)


def random_domains(seed, count=400):
    rng = random.Random(seed)
    labels = ["a", "b", "ads", "cdn", "t"]
    keys = ["example.com", "example.net", "co.uk", "xample.com"]
    out = set()
    for _ in range(count):
        depth = rng.randint(0, 3)
        prefix = [rng.choice(labels) for _ in range(depth)]
        out.add(d(".".join(prefix + [rng.choice(keys)])))
    return out


@pytest.mark.parametrize("seed", [1, 2, 3])
def test_minimal_set_is_idempotent(seed) -> None:
    once = minimal_set(random_domains(seed), workers=8)
    assert minimal_set(once, workers=8) == once


@pytest.mark.parametrize("seed", [1, 2, 3])
def test_minimal_set_keeps_coverage(seed) -> None:
    domains = random_domains(seed)
    result = minimal_set(domains, workers=8)
    assert result <= domains
    for domain in domains:
        assert any(kept.covers(domain) for kept in result)
    for kept in result:
        assert not any(other.is_ancestor_of(kept) for other in result)


def test_chunked_run_matches_single_chunk() -> None:
    domains = random_domains(5, count=1000)
    frozen = PartitionMap.from_domains(domains).freeze()
    with ResultCollector(maxsize=2) as small:
        shadowed_small = ShadowFilter(workers=8, chunk_size=7).run(frozen, small)
    with ResultCollector() as whole:
        shadowed_whole = ShadowFilter(workers=1, chunk_size=10 ** 6).run(frozen, whole)
    assert set(small.kept) == set(whole.kept)
    assert len(small.kept) == len(set(small.kept))
    assert shadowed_small == shadowed_whole == len(domains) - len(whole.kept)


def test_chunk_size_must_be_positive() -> None:
    with pytest.raises(ValueError):
        ShadowFilter(chunk_size=0)
