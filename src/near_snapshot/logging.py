from __future__ import annotations

import json
import os
import secrets
import time
from dataclasses import dataclass
from pathlib import Path


def _now_unix() -> int:
    return int(time.time())


def _safe_filename(s: str) -> str:
    return "".join(ch if ch.isalnum() or ch in ("-", "_", ".") else "_" for ch in s)[:120]


def default_run_id(*, prefix: str) -> str:
    """Run id from UTC timestamp, pid and a short random suffix."""
    ts = time.strftime("%Y%m%d_%H%M%S", time.gmtime())
    return f"{prefix}_{ts}_pid{os.getpid()}_{secrets.token_hex(3)}"


@dataclass(frozen=True)
class RunLogPaths:
    root: Path
    run_metadata: Path
    events: Path


class JsonlLogger:
    """
    Per-run event log:
    - run_metadata.json: arguments and outcome of the run
    - events.jsonl: one JSON object per pipeline step
    """

    def __init__(self, *, base_dir: Path, run_id: str) -> None:
        root = base_dir / _safe_filename(run_id)
        root.mkdir(parents=True, exist_ok=True)
        self.paths = RunLogPaths(
            root=root,
            run_metadata=root / "run_metadata.json",
            events=root / "events.jsonl",
        )

    def write_run_metadata(self, obj: dict) -> None:
        self.paths.run_metadata.write_text(json.dumps(obj, indent=2, sort_keys=True) + "\n")

    def event(self, name: str, **fields: object) -> None:
        """Append `{"t": <unix seconds>, "event": name, **fields}`."""
        row = {"t": _now_unix(), "event": name, **fields}
        with self.paths.events.open("a", encoding="utf-8") as f:
            f.write(json.dumps(row, sort_keys=True) + "\n")
