"""
Tests for persistence — state file, run log and backups.
"""

import json
from datetime import datetime
from pathlib import Path

from commandcenter.core.models.phase import PhaseStatus
from commandcenter.core.models.state import RunState
from commandcenter.core.persistence.backups import BackupStore
from commandcenter.core.persistence.run_log import RunLog
from commandcenter.core.persistence.state_file import default_state_path, load_state, save_state


class TestStateFile:
    """Tests for state file persistence."""

    def test_save_and_load(self, tmp_path: Path):
        """State roundtrips through save/load."""
        path = default_state_path(tmp_path / "state")
        state = RunState()
        state.record("dependencies", version="1", status=PhaseStatus.SUCCEEDED, warnings=["ffmpeg"])
        state.awaiting_reboot = True
        state.reboot_boot_id = "boot-1"
        state.reboot_requested_by = ["performance"]

        save_state(state, path)
        assert path.is_file()

        loaded = load_state(path)
        assert loaded.is_succeeded("dependencies", "1")
        assert loaded.phases["dependencies"].warnings == ["ffmpeg"]
        assert loaded.awaiting_reboot is True
        assert loaded.reboot_boot_id == "boot-1"
        assert loaded.reboot_requested_by == ["performance"]

    def test_load_missing_returns_fresh(self, tmp_path: Path):
        """Missing state file returns a fresh state."""
        state = load_state(tmp_path / "nonexistent.json")
        assert state.phases == {}
        assert state.awaiting_reboot is False

    def test_load_corrupt_returns_fresh(self, tmp_path: Path):
        """Corrupt JSON returns a fresh state."""
        path = tmp_path / "corrupt.json"
        path.write_text("not json at all {{{")
        assert load_state(path).phases == {}

    def test_save_is_valid_json(self, tmp_path: Path):
        """Saved file is valid, human-readable JSON."""
        path = tmp_path / "runstate.json"
        save_state(RunState(), path)

        data = json.loads(path.read_text())
        assert data["schema_version"] == 1
        assert data["phases"] == {}

    def test_save_atomic_no_partial(self, tmp_path: Path):
        """No temp files are left behind."""
        path = tmp_path / "runstate.json"
        save_state(RunState(), path)
        assert list(tmp_path.glob(".runstate_*.tmp")) == []

    def test_version_mismatch_is_not_succeeded(self):
        state = RunState()
        state.record("performance", version="1-conservative", status=PhaseStatus.SUCCEEDED)
        assert state.is_succeeded("performance")
        assert state.is_succeeded("performance", "1-conservative")
        assert not state.is_succeeded("performance", "1-aggressive")

    def test_failed_is_not_succeeded(self):
        state = RunState()
        state.record("services", status=PhaseStatus.FAILED, error="boom")
        assert not state.is_succeeded("services")
        assert state.succeeded_phases == []

    def test_record_updates_in_place(self):
        state = RunState()
        state.record("services", status=PhaseStatus.RUNNING, run_id="r1")
        state.record("services", status=PhaseStatus.SUCCEEDED)
        record = state.phases["services"]
        assert record.status == PhaseStatus.SUCCEEDED
        assert record.run_id == "r1"

    def test_clear(self):
        state = RunState()
        state.record("services", status=PhaseStatus.SUCCEEDED)
        assert state.clear("services") is True
        assert state.clear("services") is False


class TestRunLog:
    """Tests for the append-only run log."""

    def test_append_and_read(self, tmp_path: Path):
        log = RunLog.for_run(tmp_path, "20260101-000000-abcdef")
        log.append("phase_started", phase="services")
        log.append("step_ok", phase="services", step="enable-ssh", policy="fail_fast", duration_ms=12)

        entries = log.read_all()
        assert [e.event for e in entries] == ["phase_started", "step_ok"]
        assert entries[1].step == "enable-ssh"
        assert entries[1].duration_ms == 12
        assert entries[0].run_id == "20260101-000000-abcdef"
        assert log.path.name == "run-20260101-000000-abcdef.ndjson"

    def test_extra_fields_go_to_context(self, tmp_path: Path):
        log = RunLog.for_run(tmp_path, "r1")
        entry = log.append("step_failed", "boom", phase="p", exit_code=3)
        assert entry.context == {"exit_code": 3}
        assert entry.message == "boom"

    def test_append_only(self, tmp_path: Path):
        log = RunLog.for_run(tmp_path, "r1")
        log.append("a")
        first = log.path.read_text()
        log.append("b")
        assert log.path.read_text().startswith(first)

    def test_corrupt_lines_skipped(self, tmp_path: Path):
        log = RunLog.for_run(tmp_path, "r1")
        log.append("a")
        with log.path.open("a") as f:
            f.write("{not json\n")
        log.append("b")
        assert [e.event for e in log.read_all()] == ["a", "b"]

    def test_events_filter(self, tmp_path: Path):
        log = RunLog.for_run(tmp_path, "r1")
        log.append("mutation", path="/boot/config.txt")
        log.append("step_ok")
        assert len(log.events("mutation")) == 1

    def test_read_missing(self, tmp_path: Path):
        assert RunLog(tmp_path / "none.ndjson").read_all() == []


class TestBackupStore:
    """Tests for timestamped backups."""

    def test_snapshot_writes_content(self, tmp_path: Path):
        target = tmp_path / "config.txt"
        store = BackupStore(clock=lambda: datetime(2026, 1, 2, 3, 4, 5, 6))
        backup = store.snapshot(target, "original\n")

        assert Path(backup.path).name == "config.txt.backup-20260102_030405_000006"
        assert Path(backup.path).read_text() == "original\n"
        assert backup.original == str(target)
        assert backup.size == len("original\n")

    def test_same_instant_never_overwrites(self, tmp_path: Path):
        target = tmp_path / "config.txt"
        store = BackupStore(clock=lambda: datetime(2026, 1, 2))
        first = store.snapshot(target, "one")
        second = store.snapshot(target, "two")

        assert first.path != second.path
        assert Path(first.path).read_text() == "one"
        assert Path(second.path).read_text() == "two"
        assert store.list(target) == [Path(first.path), Path(second.path)]

    def test_list_ignores_other_files(self, tmp_path: Path):
        target = tmp_path / "config.txt"
        (tmp_path / "cmdline.txt.backup-20260101_000000_000000").write_text("x")
        assert BackupStore().list(target) == []

    def test_list_missing_directory(self, tmp_path: Path):
        assert BackupStore().list(tmp_path / "nope" / "config.txt") == []
