import pytest
from pathlib import Path
from typing import Dict, Iterable

from backup_sync.decision.engine import DecisionEngine, ReviewSession
from backup_sync.diff import diff
from backup_sync.disposal.executor import DisposalExecutor
from backup_sync.models import RemoteEntry
from backup_sync.scanning.filesystem import InventoryScanner


def write_tree(root: Path, files: Dict[str, bytes]) -> Path:
    """Creates files (relative path -> content) under root."""
    for rel, data in files.items():
        p = root / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)
    return root


def remote_from_names(names: Iterable[str]):
    return [RemoteEntry.from_name(n) for n in names]


@pytest.fixture
def backup_root(tmp_path):
    root = tmp_path / "backup"
    root.mkdir()
    return root


@pytest.fixture
def trash_dir(tmp_path):
    return tmp_path / "trash"


@pytest.fixture
def scanner():
    return InventoryScanner(show_progress=False)


@pytest.fixture
def engine(trash_dir):
    return DecisionEngine(DisposalExecutor(trash_dir), show_progress=False)


@pytest.fixture
def make_session(backup_root, scanner):
    """Builds a session from {relative path: content} against a remote name list."""
    def _make(files: Dict[str, bytes], remote_names: Iterable[str] = ()) -> ReviewSession:
        write_tree(backup_root, files)
        result = scanner.scan(backup_root)
        return ReviewSession.start(diff(result.files, remote_from_names(remote_names)))
    return _make
