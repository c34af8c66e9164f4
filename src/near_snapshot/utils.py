"""Filesystem helpers: JSON reads, backups and atomic writes."""

from __future__ import annotations

import json
import logging
import os
import shutil
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def read_json(path: Path) -> Any:
    """Read and parse a JSON file. Missing files and bad JSON propagate."""
    with path.open(encoding="utf-8") as f:
        return json.load(f)


def dumps_json(data: Any) -> str:
    return json.dumps(data, indent=2) + "\n"


def backup_file(path: Path, suffix: str) -> Path:
    """
    Copy `path` to `path + suffix` byte for byte.

    An existing backup is kept as is, so the first copy taken survives reruns.

    Returns:
        The backup path.
    """
    backup = path.with_name(path.name + suffix)
    if backup.exists():
        logger.info(f"keeping existing backup {backup}")
        return backup
    shutil.copy2(path, backup)
    logger.info(f"backed up {path} -> {backup}")
    return backup


def _atomic_write(path: Path, write_tmp) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + f".tmp.{os.getpid()}")
    try:
        write_tmp(tmp)
        tmp.replace(path)
    except (OSError, UnicodeEncodeError) as e:
        logger.error(f"Atomic write to {path} failed: {e}")
        if tmp.exists():
            try:
                tmp.unlink()
            except OSError:
                pass
        raise


def atomic_write_text(path: Path, content: str) -> None:
    """Write text via a temporary sibling file and rename."""
    _atomic_write(path, lambda tmp: tmp.write_text(content, encoding="utf-8"))


def atomic_write_bytes(path: Path, content: bytes) -> None:
    _atomic_write(path, lambda tmp: tmp.write_bytes(content))


def atomic_write_json(path: Path, data: Any) -> None:
    atomic_write_text(path, dumps_json(data))
