import logging
from typing import Iterable, Tuple

from .models import MediaFile, MediaKind, RemoteEntry

DiffResult = Tuple[MediaFile, ...]


def diff(backup: Iterable[MediaFile],
         remote: Iterable[RemoteEntry],
         include_other: bool = False) -> DiffResult:
    """
    Returns the backup files whose identity key is absent from the remote
    listing, sorted by relative path.

    Backup files sharing a key are kept independently; 'other' files are left
    out unless include_other is set.
    """
    remote_keys = {entry.identity_key for entry in remote}

    missing = [
        f for f in backup
        if f.identity_key not in remote_keys
        and (include_other or f.kind is not MediaKind.OTHER)
    ]
    missing.sort(key=lambda f: f.relative_path)

    logging.debug(f"Diff: {len(missing)} files missing from {len(remote_keys)} remote keys")
    return tuple(missing)
