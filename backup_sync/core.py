import logging
from pathlib import Path
from typing import Optional

from . import config
from .decision.engine import ReviewSession
from .diff import DiffResult, diff
from .models import IdentityMode
from .remote.adapters import RemoteInventory
from .scanning.filesystem import InventoryScanner


class BackupSyncApp:
    def __init__(self,
                 remote: RemoteInventory,
                 mode: IdentityMode = IdentityMode.NAME,
                 include_other: bool = False,
                 scanner: Optional[InventoryScanner] = None):
        self.remote = remote
        self.include_other = include_other
        self.scanner = scanner or InventoryScanner(mode=mode)

    def find_missing(self, backup_root: Path) -> DiffResult:
        """
        Scan -> List remote -> Diff.

        ScanError and RemoteError propagate: nothing may be offered for
        deletion unless both inventories are complete.
        """
        # --- Step 1: Backup inventory ---
        logging.info(f"Scanning backup directory {backup_root}...")
        backup = self.scanner.scan(backup_root)
        media_count = len(backup.media())
        logging.info(f"Found {media_count} media files in backup directory")
        if backup.errors:
            logging.warning(f"{len(backup.errors)} backup entries could not be read and were skipped")

        # --- Step 2: Remote inventory ---
        remote_entries = self.remote.list()

        # --- Step 3: Diff ---
        missing = diff(backup.files, remote_entries, include_other=self.include_other)
        self._log_missing(missing)
        return missing

    def start_session(self, backup_root: Path) -> ReviewSession:
        return ReviewSession.start(self.find_missing(backup_root))

    def _log_missing(self, missing: DiffResult):
        if not missing:
            logging.info("All media files from backup are present in Immich library")
            return

        logging.warning(f"{len(missing)} media files from backup are not in Immich library:")
        for item in missing[:config.PREVIEW_LIMIT]:
            logging.warning(f"  - {item.relative_path}")
        if len(missing) > config.PREVIEW_LIMIT:
            logging.warning(f"  ... and {len(missing) - config.PREVIEW_LIMIT} more")
