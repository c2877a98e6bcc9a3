"""
State file persistence — atomic read/write for RunState.

State is stored as JSON in <state_dir>/runstate.json. Writes are atomic
(write to temp file, then rename) so a crash mid-write leaves the
previous state intact.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from commandcenter.core.models.state import RunState

logger = logging.getLogger(__name__)

DEFAULT_STATE_FILE = "runstate.json"


def default_state_path(state_dir: Path | str) -> Path:
    """Get the RunState path inside a state directory."""
    return Path(state_dir) / DEFAULT_STATE_FILE


def load_state(path: Path) -> RunState:
    """Load RunState from a JSON file.

    Returns:
        RunState model. If the file doesn't exist or is unreadable,
        returns a fresh state.
    """
    if not path.is_file():
        logger.info("No state file at %s, starting fresh", path)
        return RunState()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        state = RunState.model_validate(data)
        logger.debug("Loaded state from %s (updated_at=%s)", path, state.updated_at)
        return state
    except json.JSONDecodeError as e:
        logger.warning("Corrupt state file %s: %s, starting fresh", path, e)
        return RunState()
    except Exception as e:
        logger.warning("Cannot load state from %s: %s, starting fresh", path, e)
        return RunState()


def save_state(state: RunState, path: Path) -> None:
    """Save RunState to a JSON file (atomic write).

    Args:
        state: The state to save.
        path: Target path for the state file.
    """
    state.touch()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = state.model_dump(mode="json")
    content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".runstate_", suffix=".tmp")
    tmp = Path(tmp_path)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        tmp.replace(path)
        logger.debug("State saved to %s", path)
    except Exception as e:
        tmp.unlink(missing_ok=True)
        logger.error("Failed to save state to %s: %s", path, e)
        raise
