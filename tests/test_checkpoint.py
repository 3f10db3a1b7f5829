"""Tests for the checkpoint log."""
import asyncio

from cartcheck.store.checkpoint import CheckpointStore


def test_missing_log_is_empty(tmp_path):
    """First run: no log, nothing processed."""
    store = CheckpointStore(tmp_path / "progress" / "checkpoint.txt")
    assert store.load_processed() == set()
    assert store.count() == 0


def test_mark_then_load(tmp_path):
    store = CheckpointStore(tmp_path / "progress" / "checkpoint.txt")

    async def mark():
        await store.mark_processed("012345678912")
        await store.mark_processed("98765432")

    asyncio.run(mark())
    assert store.load_processed() == {"012345678912", "98765432"}
    assert store.path.read_text(encoding="utf-8") == "012345678912\n98765432\n"


def test_blank_lines_ignored(tmp_path):
    path = tmp_path / "checkpoint.txt"
    path.write_text("11111111\n\n  \n22222222\n", encoding="utf-8")
    assert CheckpointStore(path).load_processed() == {"11111111", "22222222"}


def test_concurrent_marks_do_not_interleave(tmp_path):
    """Many concurrent appends still produce one whole identifier per line."""
    store = CheckpointStore(tmp_path / "checkpoint.txt")
    identifiers = [str(10000000 + i) for i in range(200)]

    async def mark_all():
        await asyncio.gather(*(store.mark_processed(i) for i in identifiers))

    asyncio.run(mark_all())
    lines = store.path.read_text(encoding="utf-8").splitlines()
    assert sorted(lines) == sorted(identifiers)


def test_append_failure_is_swallowed(tmp_path):
    """A checkpoint path that cannot be written is logged, not raised."""
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("x", encoding="utf-8")
    store = CheckpointStore(blocker / "checkpoint.txt")
    asyncio.run(store.mark_processed("11111111"))
    assert store.load_processed() == set()


def test_remove_requeues_identifiers(tmp_path):
    path = tmp_path / "checkpoint.txt"
    path.write_text("11111111\n22222222\n33333333\n22222222\n", encoding="utf-8")
    store = CheckpointStore(path)
    assert store.remove(["22222222", "99999999"]) == 2
    assert store.load_processed() == {"11111111", "33333333"}
    assert not path.with_suffix(".txt.tmp").exists()


def test_remove_on_missing_log(tmp_path):
    assert CheckpointStore(tmp_path / "checkpoint.txt").remove(["11111111"]) == 0
