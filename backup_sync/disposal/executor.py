import shutil
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Set

from .. import config
from ..exceptions import CopyFailedError, DeleteFailedError
from ..models import Action, Disposition, MediaFile


class DisposalExecutor:
    """
    Applies a disposition to a file on disk.

    Trash is copy -> verify -> delete, never the other way round, so an
    interruption leaves the original in place. Names inside the trash are
    resolved with a check-then-copy loop, which is only safe because the
    executor is never run concurrently against the same trash directory.
    """

    def __init__(self,
                 trash_dir: Path = config.DEFAULT_TRASH_DIR,
                 dry_run: bool = False,
                 clock: Callable[[], datetime] = datetime.now):
        self.trash_dir = Path(trash_dir)
        self.dry_run = dry_run
        self.clock = clock
        # Destinations handed out by a dry run, which never creates them
        self.planned: Set[Path] = set()

    def dispose(self, item: MediaFile, disposition: Disposition) -> Optional[Path]:
        """
        Returns the trash path for Trash, None for everything else.

        Raises CopyFailedError (original untouched, nothing left in the trash)
        or DeleteFailedError (copy kept in the trash, original still present).
        """
        if disposition.action is Action.TRASH:
            return self.trash(item.path)

        if disposition.action is Action.KEEP:
            logging.info(f"Keeping in backup: {item.relative_path}")
        elif disposition.action is Action.SKIP:
            logging.info(f"Skipping: {item.relative_path}")
        else:
            logging.info(f"Deferring {item.relative_path}: {disposition.reason}")
        return None

    def trash(self, src: Path) -> Path:
        if not self.dry_run:
            try:
                self.trash_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise CopyFailedError(f"Cannot create trash directory {self.trash_dir}: {e}", src) from e

        dest = self.resolve_destination(src.name)

        if self.dry_run:
            self.planned.add(dest)
            logging.info(f"[DRY RUN] Trash {src} -> {dest}")
            return dest

        logging.info(f"Moving to trash: {src}")

        # 1. Copy
        try:
            src_size = src.stat().st_size
            shutil.copy2(str(src), str(dest))
        except OSError as e:
            self._discard_partial(dest)
            logging.error(f"Failed to copy file to trash: {e}")
            raise CopyFailedError(f"Failed to copy {src} to trash: {e}", src, dest) from e

        # 2. Verify
        if not self._copy_complete(dest, src_size):
            self._discard_partial(dest)
            logging.error(f"Trash copy of {src} is incomplete")
            raise CopyFailedError(f"Trash copy of {src} is incomplete", src, dest)

        # 3. Delete original
        try:
            src.unlink()
        except OSError as e:
            logging.warning(f"File was copied to trash but could not be deleted from backup: {e}")
            raise DeleteFailedError(f"Copied {src} to {dest} but could not delete it: {e}", src, dest) from e

        logging.info(f"File successfully moved to trash: {dest.name}")
        return dest

    def resolve_destination(self, filename: str) -> Path:
        """First free name in the trash: the original, then '<stem>-<timestamp>-<n><ext>'."""
        candidate = self.trash_dir / filename
        if not self._taken(candidate):
            return candidate

        stem = Path(filename).stem
        ext = Path(filename).suffix
        timestamp = self.clock().strftime(config.TRASH_TIMESTAMP_FORMAT)
        counter = 1
        while self._taken(candidate):
            candidate = self.trash_dir / f"{stem}-{timestamp}-{counter}{ext}"
            counter += 1
        return candidate

    def _taken(self, candidate: Path) -> bool:
        return candidate.exists() or candidate.is_symlink() or candidate in self.planned

    def _copy_complete(self, dest: Path, expected_size: int) -> bool:
        try:
            return dest.is_file() and dest.stat().st_size == expected_size
        except OSError:
            return False

    def _discard_partial(self, dest: Path):
        """Removes whatever a failed copy left at dest (dest was free before the copy)."""
        try:
            if dest.exists():
                dest.unlink()
        except OSError as e:
            logging.warning(f"Could not remove partial trash copy {dest}: {e}")
