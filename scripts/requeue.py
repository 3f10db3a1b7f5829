#!/usr/bin/env python3
"""Utility script to requeue identifiers by removing them from the checkpoint log."""
import csv
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from cartcheck.config import config
from cartcheck.store.checkpoint import CheckpointStore


def _stamp_and_batch(path: Path) -> tuple[str, int]:
    # results_batch_<n>_<yyyyMMdd>_<HHmmss>.csv
    parts = path.stem.split("_")
    try:
        return "_".join(parts[3:]), int(parts[2])
    except (IndexError, ValueError):
        return "", 0


def latest_statuses(output_dir: Path | str) -> dict[str, str]:
    """Last recorded status per identifier across every results CSV, oldest run first."""
    statuses: dict[str, str] = {}
    for path in sorted(Path(output_dir).glob("results_batch_*.csv"), key=_stamp_and_batch):
        with open(path, "r", encoding="utf-8", newline="") as f:
            for row in csv.DictReader(f):
                identifier = (row.get("UPC") or "").strip()
                if identifier:
                    statuses[identifier] = (row.get("Status") or "").strip()
    return statuses


def requeue_ids(identifiers: list[str]) -> None:
    """Remove explicit identifiers from the checkpoint."""
    store = CheckpointStore()
    removed = store.remove(identifiers)
    print(f"Requeued {removed} identifiers")
    print(f"Remaining checkpoint entries: {store.count()}")


def requeue_statuses(statuses: list[str]) -> None:
    """Remove every identifier whose latest status is one of ``statuses``."""
    wanted = {s.upper() for s in statuses}
    latest = latest_statuses(config.OUTPUT_DIR)
    identifiers = [i for i, status in latest.items() if status.upper() in wanted]
    if not identifiers:
        print(f"No identifiers with status in {sorted(wanted)}")
        return
    requeue_ids(identifiers)


def show_stats() -> None:
    """Show checkpoint size and latest status counts."""
    store = CheckpointStore()
    counts: dict[str, int] = {}
    for status in latest_statuses(config.OUTPUT_DIR).values():
        counts[status] = counts.get(status, 0) + 1

    print(f"Checkpoint: {store.path}")
    print(f"Checkpointed identifiers: {store.count()}")
    print(f"Latest status counts: {counts}")


def reset() -> None:
    """Delete the checkpoint log."""
    store = CheckpointStore()
    if not store.path.exists():
        print("Checkpoint is already empty")
        return
    count = store.count()
    store.path.unlink()
    print(f"Deleted checkpoint with {count} identifiers")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage:")
        print("  python scripts/requeue.py stats                     # Show statistics")
        print("  python scripts/requeue.py ids <upc> [<upc> ...]      # Requeue given identifiers")
        print("  python scripts/requeue.py status <STATUS> [...]      # Requeue by latest status, e.g. BLOCKED FAILED")
        print("  python scripts/requeue.py reset                     # Delete the checkpoint log")
        sys.exit(1)

    command = sys.argv[1]

    if command == "stats":
        show_stats()
    elif command == "ids":
        if len(sys.argv) < 3:
            print("Error: Please provide at least one identifier")
            sys.exit(1)
        requeue_ids(sys.argv[2:])
    elif command == "status":
        if len(sys.argv) < 3:
            print("Error: Please provide at least one status")
            sys.exit(1)
        requeue_statuses(sys.argv[2:])
    elif command == "reset":
        confirm = input("Are you sure you want to delete the checkpoint? (yes/no): ")
        if confirm.lower() == "yes":
            reset()
        else:
            print("Cancelled")
    else:
        print(f"Unknown command: {command}")
        sys.exit(1)
