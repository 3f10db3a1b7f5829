"""Tests for input cleaning and batch partitioning."""
import pytest

from cartcheck.errors import ConfigurationError, NothingToProcessError
from cartcheck.jobs.partition import clean_identifiers, partition, read_identifiers


def test_clean_drops_blanks_and_header():
    """Blank lines and a UPC header in any case are removed, values trimmed."""
    raw = ["UPC", "  012345678912 ", "", "   ", None, "upc", "98765432"]
    assert clean_identifiers(raw) == ["012345678912", "98765432"]


def test_clean_dedupes_first_seen_order():
    """Duplicates keep their first position."""
    raw = ["222222222", "111111111", "222222222", "333333333", "111111111"]
    assert clean_identifiers(raw) == ["222222222", "111111111", "333333333"]


def test_clean_keeps_duplicates_when_disabled():
    raw = ["111111111", "111111111"]
    assert clean_identifiers(raw, deduplicate=False) == ["111111111", "111111111"]


def test_partition_sizes_and_numbers():
    """Contiguous batches, last one shorter, numbered from 1."""
    raw = [str(10000000 + i) for i in range(7)]
    batches = partition(raw, batch_size=3)
    assert [b.number for b in batches] == [1, 2, 3]
    assert [len(b) for b in batches] == [3, 3, 1]
    flat = [i for b in batches for i in b.identifiers]
    assert flat == raw


def test_partition_excludes_checkpointed():
    raw = ["11111111", "22222222", "33333333", "44444444"]
    batches = partition(raw, batch_size=2, processed={"22222222", "44444444"})
    assert len(batches) == 1
    assert batches[0].identifiers == ("11111111", "33333333")


def test_partition_is_deterministic():
    raw = ["11111111", "22222222", "11111111", "33333333", "UPC"]
    first = partition(raw, 2, {"33333333"})
    second = partition(list(raw), 2, {"33333333"})
    assert first == second


def test_partition_keeps_invalid_shapes_for_recording():
    """Malformed values still get a batch slot so they are recorded as invalid."""
    batches = partition(["12345", "ABCDEFGH"], batch_size=10)
    assert batches[0].identifiers == ("12345", "ABCDEFGH")


def test_partition_empty_input_raises():
    with pytest.raises(ConfigurationError):
        partition(["", "UPC", "  "], batch_size=5)


def test_partition_all_checkpointed_raises_nothing_to_process():
    with pytest.raises(NothingToProcessError):
        partition(["11111111"], batch_size=5, processed={"11111111"})


def test_partition_rejects_bad_batch_size():
    with pytest.raises(ConfigurationError):
        partition(["11111111"], batch_size=0)


def test_read_identifiers_from_file(tmp_path):
    """File input goes through the same cleaning."""
    path = tmp_path / "upcs.txt"
    path.write_text("UPC\n012345678912\n\n012345678912\n98765432\n", encoding="utf-8")
    assert read_identifiers(path) == ["012345678912", "98765432"]


def test_read_identifiers_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        read_identifiers(tmp_path / "missing.txt")
