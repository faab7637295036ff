import csv
import logging
import pytest
from pathlib import Path

from backup_sync.decision.engine import DecisionEngine
from backup_sync.disposal import executor as executor_module
from backup_sync.disposal.executor import DisposalExecutor
from backup_sync.exceptions import CopyFailedError, DeleteFailedError
from backup_sync.models import Action
from backup_sync.reporting import ReportGenerator, log_summary


def read_rows(path: Path):
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))


def test_session_report_rows(make_session, engine, trash_dir, tmp_path):
    session = make_session({"a.jpg": b"a", "b.mov": b"b", "c.png": b"c", "d.jpg": b"d"})
    a, b, c, d = session.items
    engine.decide(session, a, Action.TRASH)
    engine.decide(session, b, Action.KEEP)
    engine.decide(session, c, Action.DEFER, "ask family")

    report = tmp_path / "report.csv"
    ReportGenerator().write_session_report(session, report)

    rows = read_rows(report)
    assert [r["Relative Path"] for r in rows] == ["a.jpg", "b.mov", "c.png", "d.jpg"]
    assert rows[0]["State"] == "trashed"
    assert rows[0]["Trash Path"] == str(trash_dir / "a.jpg")
    assert rows[1]["Kind"] == "video"
    assert rows[1]["State"] == "kept"
    assert rows[1]["Trash Path"] == ""
    assert rows[2]["State"] == "deferred"
    assert rows[2]["Notes"] == "deferred: ask family"
    assert rows[3]["State"] == "pending"


def test_session_report_notes_failures(make_session, engine, trash_dir, tmp_path, monkeypatch):
    session = make_session({"a.jpg": b"a", "b.jpg": b"b"})
    a, b = session.items

    real_unlink = Path.unlink

    def refuse(self, *args, **kwargs):
        if self == a.path:
            raise PermissionError("read-only")
        return real_unlink(self, *args, **kwargs)

    monkeypatch.setattr(Path, "unlink", refuse)
    with pytest.raises(DeleteFailedError):
        engine.decide(session, a, Action.TRASH)
    monkeypatch.undo()

    def broken(src, dst, *args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(executor_module.shutil, "copy2", broken)
    with pytest.raises(CopyFailedError):
        engine.decide(session, b, Action.TRASH)

    report = tmp_path / "report.csv"
    ReportGenerator().write_session_report(session, report)

    rows = read_rows(report)
    assert rows[0]["State"] == "failed"
    assert rows[0]["Trash Path"] == str(trash_dir / "a.jpg")
    assert rows[0]["Notes"].startswith("delete failed:")
    assert rows[1]["State"] == "pending"
    assert rows[1]["Notes"].startswith("copy failed:")


def test_log_summary(make_session, engine, caplog):
    session = make_session({"a.jpg": b"a", "b.jpg": b"b", "c.jpg": b"c"})
    engine.decide(session, session.items[0], Action.KEEP)
    engine.decide(session, session.items[1], Action.SKIP)

    with caplog.at_level(logging.INFO):
        log_summary(engine.summary(session))

    assert "1 files kept in backup" in caplog.text
    assert "1 files skipped" in caplog.text
    assert "1 files still pending" in caplog.text
    assert "0 files moved to trash" in caplog.text
    assert "not deleted" not in caplog.text


def test_dry_run_is_reported_as_planned(make_session, trash_dir, tmp_path, caplog):
    session = make_session({"a.jpg": b"a", "b.jpg": b"b"})
    engine = DecisionEngine(DisposalExecutor(trash_dir, dry_run=True), show_progress=False)
    engine.decide(session, session.items[0], Action.TRASH)
    engine.decide(session, session.items[1], Action.KEEP)

    report = tmp_path / "report.csv"
    ReportGenerator().write_session_report(session, report)
    with caplog.at_level(logging.INFO):
        log_summary(engine.summary(session))

    rows = read_rows(report)
    assert rows[0]["State"] == "planned trash"
    assert rows[0]["Notes"] == "dry run: nothing was moved"
    assert rows[1]["State"] == "kept"
    assert "1 files would be moved to trash" in caplog.text
    assert "files moved to trash" not in caplog.text
    assert not trash_dir.exists()
