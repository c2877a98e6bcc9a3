"""
ConfigBlock and Backup models — what the ConfigMutator owns.

A ConfigBlock is a marker-delimited region of a text file. At most one
region per (file, begin, end) triple exists at any time. A Backup is an
append-only snapshot of a file taken right before it was rewritten.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class ConfigBlock(BaseModel):
    """A managed region inside a text configuration file."""

    path: str
    begin_marker: str
    end_marker: str
    content: str = ""
    owner: str = ""          # Phase that requested the mutation

    def render(self) -> str:
        """The region as it is written to disk, newline-terminated."""
        body = self.content
        if body and not body.endswith("\n"):
            body += "\n"
        return f"{self.begin_marker}\n{body}{self.end_marker}\n"


class Backup(BaseModel):
    """A pre-mutation snapshot of a managed file."""

    original: str
    path: str
    timestamp: str = Field(default_factory=_now_iso)
    size: int = 0


class MutationResult(BaseModel):
    """Outcome of a ConfigMutator operation."""

    path: str
    operation: Literal["upsert", "remove", "write"] = "upsert"
    changed: bool = False
    created: bool = False            # the file did not exist before
    backup: Backup | None = None
    owner: str = ""
