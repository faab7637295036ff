import os
import logging
from pathlib import Path
from typing import Iterator, List, Optional

from tqdm import tqdm

from ..exceptions import ScanError
from ..models import (
    IdentityMode, MediaFile, ScanIssue, ScanResult,
    classify, content_key, identity_key_for,
)
from .hasher import FileHasher


class InventoryScanner:
    def __init__(self,
                 mode: IdentityMode = IdentityMode.NAME,
                 hasher: Optional[FileHasher] = None,
                 show_progress: bool = True):
        self.mode = mode
        self.hasher = hasher or FileHasher()
        self.show_progress = show_progress

    def scan(self, root: Path) -> ScanResult:
        """
        Builds the inventory of every regular file under root.

        Raises ScanError when root itself is missing or unreadable. Files or
        subdirectories that fail are recorded in ScanResult.errors and skipped.
        """
        root = Path(root)
        self._check_root(root)

        result = ScanResult(root=root)
        for path in self._iter_files(root, result.errors):
            record = self._process_single_file(root, path, result.errors)
            if record:
                result.files.append(record)

        if self.mode is IdentityMode.CONTENT:
            result.files = self._apply_content_keys(result.files, result.errors)

        result.files.sort(key=lambda f: f.relative_path)
        logging.info(f"Scanned {root}: {len(result.files)} files, {len(result.errors)} errors")
        return result

    def _check_root(self, root: Path):
        if not root.exists():
            raise ScanError(f"Directory not found: {root}")
        if not root.is_dir():
            raise ScanError(f"Not a directory: {root}")
        if not os.access(root, os.R_OK | os.X_OK):
            raise ScanError(f"Directory exists but is not accessible: {root}")

    def _process_single_file(self,
                             root: Path,
                             path: Path,
                             errors: List[ScanIssue]) -> Optional[MediaFile]:
        """Stats a single file and returns a MediaFile, or None on error."""
        try:
            stat_result = path.stat()
        except OSError as e:
            logging.warning(f"Failed to stat {path}: {e}")
            errors.append(ScanIssue(path, str(e)))
            return None

        return MediaFile(
            relative_path=path.relative_to(root).as_posix(),
            path=path,
            kind=classify(path.name),
            identity_key=identity_key_for(path.name),
            size_bytes=stat_result.st_size,
            modified_time=stat_result.st_mtime,
        )

    def _apply_content_keys(self,
                            files: List[MediaFile],
                            errors: List[ScanIssue]) -> List[MediaFile]:
        """Replaces name keys with content hashes. Unhashable files are dropped."""
        hashed = []
        for record in tqdm(files, desc="Hashing", unit="file", disable=not self.show_progress):
            try:
                digest = self.hasher.compute_hash(record.path)
            except OSError as e:
                logging.warning(f"Failed to hash {record.path}: {e}")
                errors.append(ScanIssue(record.path, f"hash failed: {e}"))
                continue
            hashed.append(MediaFile(
                relative_path=record.relative_path,
                path=record.path,
                kind=record.kind,
                identity_key=content_key(digest),
                size_bytes=record.size_bytes,
                modified_time=record.modified_time,
            ))
        return hashed

    def _iter_files(self, root: Path, errors: List[ScanIssue]) -> Iterator[Path]:
        """Depth-first walker using os.scandir for speed."""
        stack = [root]
        while stack:
            current = stack.pop()

            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError as e:
                if current == root:
                    raise ScanError(f"Cannot read directory {root}: {e}") from e
                logging.warning(f"Permission denied: {current}")
                errors.append(ScanIssue(current, str(e)))
                continue

            # Sort for stable traversal order
            entries.sort(key=lambda e: e.name.lower())

            dirs = []
            files = []
            for e in entries:
                try:
                    if e.is_dir(follow_symlinks=False):
                        dirs.append(Path(e.path))
                    elif e.is_file(follow_symlinks=False):
                        files.append(Path(e.path))
                except OSError as err:
                    logging.warning(f"Failed to read entry {e.path}: {err}")
                    errors.append(ScanIssue(Path(e.path), str(err)))

            # Push dirs to stack (reversed so we process A before Z)
            for d in reversed(dirs):
                stack.append(d)

            for f in files:
                yield f
