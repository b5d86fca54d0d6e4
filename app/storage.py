"""Flat JSON file helpers used for metadata and analytics persistence."""

import json
import os
import shutil
from pathlib import Path
from typing import Any

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="storage")


def load_json(path: Path, default: Any) -> Any:
    """Read JSON from `path`, returning `default` when the file is missing.

    A corrupt file is copied aside to `<name>.backup` and `default` is returned.
    """
    path = Path(path)
    if not path.exists():
        logger.info(f"No existing file at {path}")
        return default

    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as exc:
        logger.error(f"Error parsing JSON in {path}: {exc}")
        backup_path = path.with_suffix(path.suffix + ".backup")
        try:
            shutil.copy2(path, backup_path)
            logger.warning(f"Corrupted file backed up to {backup_path}")
        except OSError as backup_err:
            logger.error(f"Failed to back up corrupted file: {backup_err}")
        return default


def write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON to a temp file next to `path`, then rename it into place."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_file = path.with_suffix(path.suffix + ".tmp")
    with open(temp_file, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, default=str)
        f.flush()
        os.fsync(f.fileno())
    os.replace(temp_file, path)
