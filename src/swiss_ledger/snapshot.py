"""JSON snapshot files read and written by the CLI."""

import logging
from pathlib import Path

from pydantic import ValidationError

from .exceptions import SnapshotError
from .models import LedgerSnapshot

logger = logging.getLogger(__name__)


def load_snapshot(path: Path) -> LedgerSnapshot:
    """
    Read a ledger snapshot from ``path``.

    A missing file is an empty ledger.

    Raises:
        SnapshotError: If the file is unreadable or not a valid snapshot
    """
    if not path.exists():
        logger.info(f"No snapshot at {path}, starting empty")
        return LedgerSnapshot()

    try:
        snapshot = LedgerSnapshot.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as e:
        raise SnapshotError(f"Could not read snapshot {path}: {e}") from e

    logger.debug(
        f"Loaded {len(snapshot.transactions)} transactions, "
        f"{len(snapshot.settlements)} settlements from {path}"
    )
    return snapshot


def save_snapshot(snapshot: LedgerSnapshot, path: Path) -> None:
    """Write ``snapshot`` to ``path``, replacing the file atomically."""
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(snapshot.model_dump_json(indent=2), encoding="utf-8")
        tmp_path.replace(path)
    except OSError as e:
        raise SnapshotError(f"Could not write snapshot {path}: {e}") from e

    logger.info(f"Saved snapshot to {path}")
