from domains import Domain
from partitions import PartitionMap, merge_block_list


def d(name):
    return Domain.parse(name)


def test_insert_groups_by_top_level_key() -> None:
    partitions = PartitionMap()
    assert partitions.insert(d("a.example.com")) is True
    assert partitions.insert(d("example.com")) is True
    assert partitions.insert(d("other.org")) is True
    assert len(partitions) == 2
    assert partitions.snapshot("example.com") == {d("a.example.com"), d("example.com")}
    assert partitions.snapshot("missing.net") is None


def test_insert_deduplicates() -> None:
    partitions = PartitionMap()
    partitions.insert(d("example.com"))
    assert partitions.insert(d("EXAMPLE.com")) is False
    assert partitions.domain_count() == 1
    assert d("example.com") in partitions
    assert d("sub.example.com") not in partitions


def test_discard_reports_removal() -> None:
    partitions = PartitionMap.from_domains([d("example.com")])
    assert partitions.discard("example.com", d("example.com")) is True
    assert partitions.discard("example.com", d("example.com")) is False
    assert partitions.discard("nothing.org", d("nothing.org")) is False


def test_freeze_sorts_by_length_and_drops_empty() -> None:
    partitions = PartitionMap.from_domains(
        [d("a.b.example.com"), d("example.com"), d("b.example.com"), d("gone.org")]
    )
    partitions.discard("gone.org", d("gone.org"))
    frozen = partitions.freeze()
    assert list(frozen) == ["example.com"]
    assert [len(x) for x in frozen["example.com"]] == sorted(len(x) for x in frozen["example.com"])
    assert frozen["example.com"][0] == d("example.com")


def test_merge_block_list_is_additive() -> None:
    partitions = PartitionMap.from_domains([d("example.com")])
    added = merge_block_list(partitions, [d("example.com"), d("ads.example.com"), d("tracker.net")])
    assert added == 2
    assert partitions.domain_count() == 3
    assert d("tracker.net") in partitions
