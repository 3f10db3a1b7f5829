"""Split the identifier list into batches."""
import logging
from pathlib import Path
from typing import Iterable

from cartcheck.errors import ConfigurationError, NothingToProcessError
from cartcheck.models import Batch, normalize_identifier

logger = logging.getLogger(__name__)

HEADER_TOKEN = "upc"


def clean_identifiers(raw: Iterable[str | None], deduplicate: bool = True) -> list[str]:
    """Trim, drop blanks and a ``UPC`` header line, optionally dedupe keeping first-seen order."""
    cleaned = []
    seen = set()
    for value in raw:
        identifier = normalize_identifier(value)
        if not identifier or identifier.lower() == HEADER_TOKEN:
            continue
        if deduplicate:
            if identifier in seen:
                continue
            seen.add(identifier)
        cleaned.append(identifier)
    return cleaned


def read_identifiers(path: Path | str, deduplicate: bool = True) -> list[str]:
    """Read one identifier per line from ``path``."""
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8-sig") as f:
            lines = f.read().splitlines()
    except OSError as e:
        raise ConfigurationError(f"Cannot read input file {path}: {e}") from e

    identifiers = clean_identifiers(lines, deduplicate)
    logger.info(f"Loaded {len(identifiers)} identifiers from {path}")
    return identifiers


def partition(
    raw: Iterable[str | None],
    batch_size: int,
    processed: Iterable[str] = (),
    deduplicate: bool = True,
) -> list[Batch]:
    """
    Contiguous batches of at most ``batch_size`` identifiers, numbered from 1.

    Identifiers already in ``processed`` are skipped. Deterministic for the
    same input; raises ConfigurationError when nothing is left to do.
    """
    if batch_size < 1:
        raise ConfigurationError(f"batch_size must be >= 1, got {batch_size}")

    done = set(processed)
    identifiers = clean_identifiers(raw, deduplicate)
    skipped = sum(1 for i in identifiers if i in done)
    pending = [i for i in identifiers if i not in done]
    if skipped:
        logger.info(f"Skipping {skipped} identifiers already checkpointed")
    if not identifiers:
        raise ConfigurationError("No identifiers to process")
    if not pending:
        raise NothingToProcessError(f"All {len(identifiers)} identifiers are already checkpointed")

    return [
        Batch(number=n + 1, identifiers=tuple(pending[start:start + batch_size]))
        for n, start in enumerate(range(0, len(pending), batch_size))
    ]
