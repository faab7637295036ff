"""
Remote library listings.

Every adapter returns the complete listing or raises RemoteError. A partial
listing is never returned: a file missing from it would be offered for
deletion even though Immich has it.
"""
import logging
import subprocess
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .. import config
from ..exceptions import RemoteError, ScanError
from ..models import IdentityMode, MediaKind, RemoteEntry
from ..scanning.filesystem import InventoryScanner


class RemoteInventory:
    """Interface for remote listings."""

    def list(self) -> List[RemoteEntry]:
        raise NotImplementedError


def entries_from_names(names: Iterable[str], source: str) -> List[RemoteEntry]:
    """Parses one filename or path per line; blank lines and '#' comments are ignored."""
    entries = []
    for line in names:
        line = line.strip()
        if line and not line.startswith("#"):
            entries.append(RemoteEntry.from_name(line, source=source))
    return entries


class LibraryDirectoryAdapter(RemoteInventory):
    """Lists an Immich library directory on disk (its 'upload' folder when present)."""

    def __init__(self,
                 library_root: Path,
                 mode: IdentityMode = IdentityMode.NAME,
                 scanner: Optional[InventoryScanner] = None):
        self.library_root = Path(library_root)
        self.scanner = scanner or InventoryScanner(mode=mode)

    def scan_root(self) -> Path:
        upload_dir = self.library_root / config.LIBRARY_UPLOAD_SUBDIR
        return upload_dir if upload_dir.is_dir() else self.library_root

    def list(self) -> List[RemoteEntry]:
        root = self.scan_root()
        logging.info(f"Listing Immich library at {root}...")
        try:
            result = self.scanner.scan(root)
        except ScanError as e:
            raise RemoteError(f"Immich library unavailable: {e}") from e

        if result.errors:
            for issue in result.errors[:config.PREVIEW_LIMIT]:
                logging.error(f"  - {issue.path}: {issue.message}")
            raise RemoteError(
                f"Immich library listing incomplete: {len(result.errors)} entries could not be read"
            )

        entries = [
            RemoteEntry(identity_key=f.identity_key, name=f.name, source=f.relative_path)
            for f in result.files
            if f.kind is not MediaKind.OTHER
        ]
        logging.info(f"Found {len(entries)} media files in Immich library")
        return entries


class CommandAdapter(RemoteInventory):
    """
    Runs an external command that prints one filename per line, e.g. a script
    wrapping the Immich CLI. The command gets a hard timeout so an unresponsive
    tool can't block the session.
    """

    def __init__(self, argv: Sequence[str], timeout: float = config.DEFAULT_REMOTE_TIMEOUT):
        if not argv:
            raise ValueError("CommandAdapter needs a command to run")
        self.argv = list(argv)
        self.timeout = timeout

    def list(self) -> List[RemoteEntry]:
        logging.info(f"Running remote listing command: {' '.join(self.argv)}")
        try:
            proc = subprocess.run(
                self.argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise RemoteError(f"Remote listing timed out after {self.timeout}s") from e
        except OSError as e:
            raise RemoteError(f"Failed to run remote listing command: {e}") from e

        if proc.returncode != 0:
            stderr = (proc.stderr or "").strip()
            raise RemoteError(f"Remote listing command failed (exit {proc.returncode}): {stderr}")

        entries = entries_from_names(proc.stdout.splitlines(), source=self.argv[0])
        logging.info(f"Remote listing returned {len(entries)} entries")
        return entries


class ListFileAdapter(RemoteInventory):
    """Reads a previously exported listing, one filename per line."""

    def __init__(self, list_file: Path):
        self.list_file = Path(list_file)

    def list(self) -> List[RemoteEntry]:
        try:
            with self.list_file.open("r", encoding="utf-8") as f:
                entries = entries_from_names(f, source=str(self.list_file))
        except (OSError, UnicodeDecodeError) as e:
            raise RemoteError(f"Cannot read remote listing {self.list_file}: {e}") from e

        logging.info(f"Loaded {len(entries)} entries from {self.list_file}")
        return entries
