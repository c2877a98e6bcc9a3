"""
Run log — append-only, timestamped record of every Step invocation.

Each run writes NDJSON lines to <logs_dir>/run-<run_id>.ndjson. Entries
are never modified or deleted; together with RunState and the backups
this is everything needed for post-hoc diagnosis.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class RunLogEntry(BaseModel):
    """A single run log line."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    run_id: str = ""
    event: str = ""          # phase_started, step_ok, step_warning, mutation, ...
    phase: str | None = None
    step: str | None = None
    policy: str | None = None
    duration_ms: int | None = None
    message: str = ""

    # Extensible context
    context: dict[str, Any] = Field(default_factory=dict)


class RunLog:
    """Append-only NDJSON writer for one run."""

    def __init__(self, path: Path, run_id: str = ""):
        self._path = path
        self._run_id = run_id

    @classmethod
    def for_run(cls, logs_dir: Path | str, run_id: str) -> RunLog:
        return cls(Path(logs_dir) / f"run-{run_id}.ndjson", run_id=run_id)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def run_id(self) -> str:
        return self._run_id

    def append(self, event: str, message: str = "", **fields: Any) -> RunLogEntry:
        """Write one entry.

        Known fields (phase, step, policy, duration_ms) go to their own
        columns; anything else lands in ``context``.
        """
        known = {k: fields.pop(k) for k in ("phase", "step", "policy", "duration_ms") if k in fields}
        entry = RunLogEntry(run_id=self._run_id, event=event, message=message, context=fields, **known)
        self.write(entry)
        return entry

    def write(self, entry: RunLogEntry) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"
        try:
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            logger.error("Failed to write run log entry: %s", e)

    def read_all(self) -> list[RunLogEntry]:
        """Read all entries, oldest first. Corrupt lines are skipped."""
        if not self._path.is_file():
            return []

        entries = []
        with self._path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(RunLogEntry.model_validate(json.loads(line)))
                except Exception as e:
                    logger.warning("Skipping corrupt run log entry at line %d: %s", line_num, e)
        return entries

    def events(self, event: str) -> list[RunLogEntry]:
        return [e for e in self.read_all() if e.event == event]
