"""
Config mutator — idempotent, marker-delimited patching of text files.

    upsert_block(file, begin, end, content)

reads the file (an absent file starts from ``template``), excises every
region delimited by the begin/end marker lines, and appends one fresh
region. Applying the same call twice leaves the file byte-identical to
applying it once.

Every rewrite of an existing file is preceded by a timestamped backup.
The new content goes to a temp file in the same directory which is then
renamed over the original, so an interrupted write leaves either the old
or the new file, never a truncated one. There is no automatic rollback:
on failure the backup is what the operator recovers from.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from collections.abc import Callable
from pathlib import Path

from commandcenter.core.errors import ConfigMutationError
from commandcenter.core.models.config_block import Backup, ConfigBlock, MutationResult
from commandcenter.core.persistence.backups import BackupStore

logger = logging.getLogger(__name__)


def _find_regions(lines: list[str], begin: str, end: str) -> list[tuple[int, int]]:
    """Index pairs (begin_line, end_line) of every managed region.

    Raises:
        ValueError: If a begin marker has no matching end marker.
    """
    begin, end = begin.strip(), end.strip()
    regions = []
    start: int | None = None
    for i, line in enumerate(lines):
        text = line.strip()
        if start is None and text == begin:
            start = i
        elif start is not None and text == end:
            regions.append((start, i))
            start = None
    if start is not None:
        raise ValueError(f"unterminated region starting at line {start + 1}")
    return regions


def excise_regions(text: str, begin: str, end: str) -> str:
    """Remove every managed region from ``text``.

    The remainder keeps its own content; trailing blank lines are dropped
    so a re-appended region always lands in the same place.
    """
    lines = text.splitlines(keepends=True)
    regions = _find_regions(lines, begin, end)
    for start, stop in reversed(regions):
        del lines[start : stop + 1]
    return "".join(lines).rstrip()


def render_with_block(text: str, block: ConfigBlock) -> str:
    """The full file content after upserting ``block`` into ``text``."""
    remainder = excise_regions(text, block.begin_marker, block.end_marker)
    if remainder:
        return f"{remainder}\n\n{block.render()}"
    return block.render()


class ConfigMutator:
    """Owns every write to a managed configuration file.

    Args:
        backups: Backup store (default: timestamped files beside the target).
        on_mutation: Optional callback receiving every MutationResult that
            changed a file (the run log hooks in here).
        template: Initial content for files that do not exist yet.
    """

    def __init__(
        self,
        backups: BackupStore | None = None,
        on_mutation: Callable[[MutationResult], None] | None = None,
        template: str = "",
    ):
        self._backups = backups or BackupStore()
        self._on_mutation = on_mutation
        self._template = template

    # ── Managed regions ─────────────────────────────────────────

    def upsert_block(
        self,
        path: str | Path,
        begin_marker: str,
        end_marker: str,
        content: str,
        *,
        owner: str = "",
    ) -> MutationResult:
        """Replace (or add) the region delimited by the markers.

        Raises:
            ConfigMutationError: On I/O failure or an unterminated region.
        """
        target = Path(path)
        block = ConfigBlock(
            path=str(target),
            begin_marker=begin_marker,
            end_marker=end_marker,
            content=content,
            owner=owner,
        )
        _check_markers(begin_marker, end_marker)
        if any(line.strip() in (begin_marker.strip(), end_marker.strip()) for line in content.splitlines()):
            raise ConfigMutationError(f"Content for {target} contains a marker line", path=str(target))

        existed, current = self._read(target)
        try:
            new_text = render_with_block(current, block)
        except ValueError as e:
            raise ConfigMutationError(f"Cannot patch {target}: {e}", path=str(target)) from e

        return self._commit(target, existed, current, new_text, "upsert", owner)

    def remove_block(
        self,
        path: str | Path,
        begin_marker: str,
        end_marker: str,
        *,
        owner: str = "",
    ) -> MutationResult:
        """Excise the managed region. A missing file or region is a no-op."""
        target = Path(path)
        _check_markers(begin_marker, end_marker)
        existed, current = self._read(target)
        if not existed:
            return MutationResult(path=str(target), operation="remove", owner=owner)

        try:
            lines = current.splitlines(keepends=True)
            if not _find_regions(lines, begin_marker, end_marker):
                return MutationResult(path=str(target), operation="remove", owner=owner)
            remainder = excise_regions(current, begin_marker, end_marker)
        except ValueError as e:
            raise ConfigMutationError(f"Cannot patch {target}: {e}", path=str(target)) from e

        new_text = f"{remainder}\n" if remainder else ""
        return self._commit(target, existed, current, new_text, "remove", owner)

    def read_block(self, path: str | Path, begin_marker: str, end_marker: str) -> str | None:
        """Content of the managed region, or None if absent."""
        target = Path(path)
        if not target.is_file():
            return None
        lines = target.read_text(encoding="utf-8").splitlines(keepends=True)
        try:
            regions = _find_regions(lines, begin_marker, end_marker)
        except ValueError:
            return None
        if not regions:
            return None
        start, stop = regions[-1]
        return "".join(lines[start + 1 : stop])

    # ── Whole files ─────────────────────────────────────────────

    def write_file(
        self,
        path: str | Path,
        content: str,
        *,
        owner: str = "",
        mode: int | None = None,
    ) -> MutationResult:
        """Write a file the system owns entirely (drop-ins, udev rules, units).

        Identical content is a no-op: no backup, no rewrite.
        """
        target = Path(path)
        existed, current = self._read(target)
        if existed and current == content:
            return MutationResult(path=str(target), operation="write", owner=owner)
        return self._commit(target, existed, current, content, "write", owner, mode=mode)

    def list_backups(self, path: str | Path) -> list[Path]:
        return self._backups.list(Path(path))

    # ── Internals ───────────────────────────────────────────────

    def _read(self, target: Path) -> tuple[bool, str]:
        if not target.exists():
            return False, self._template
        try:
            return True, target.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigMutationError(f"Cannot read {target}: {e}", path=str(target)) from e

    def _commit(
        self,
        target: Path,
        existed: bool,
        current: str,
        new_text: str,
        operation: str,
        owner: str,
        mode: int | None = None,
    ) -> MutationResult:
        backup: Backup | None = None
        if existed:
            try:
                backup = self._backups.snapshot(target, current)
            except OSError as e:
                raise ConfigMutationError(
                    f"Cannot back up {target}: {e}", path=str(target)
                ) from e

        try:
            _atomic_write(target, new_text, mode=mode)
        except OSError as e:
            logger.error("Failed to write %s: %s (backup: %s)", target, e, backup.path if backup else "none")
            raise ConfigMutationError(
                f"Cannot write {target}: {e}",
                path=str(target),
                backup=backup.path if backup else None,
            ) from e

        result = MutationResult(
            path=str(target),
            operation=operation,
            changed=(not existed) or current != new_text,
            created=not existed,
            backup=backup,
            owner=owner,
        )
        logger.info("%s %s (owner=%s)", operation.capitalize(), target, owner or "-")
        if self._on_mutation is not None:
            self._on_mutation(result)
        return result


def _check_markers(begin_marker: str, end_marker: str) -> None:
    if not begin_marker.strip() or not end_marker.strip():
        raise ConfigMutationError("Markers must be non-empty")
    if begin_marker.strip() == end_marker.strip():
        raise ConfigMutationError("Begin and end markers must differ")
    if "\n" in begin_marker or "\n" in end_marker:
        raise ConfigMutationError("Markers must be single lines")


def _atomic_write(target: Path, content: str, mode: int | None = None) -> None:
    """Write via temp file + rename, preserving the original's mode."""
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    tmp = Path(tmp_path)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        if target.exists():
            shutil.copymode(target, tmp)
        elif mode is None:
            os.chmod(tmp, 0o644)
        if mode is not None:
            os.chmod(tmp, mode)
        tmp.replace(target)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
