import hashlib
from pathlib import Path

from .. import config


class FileHasher:
    """Content fingerprints for the 'content' identity mode."""

    def __init__(self, chunk_size: int = config.HASH_CHUNK_SIZE):
        self.chunk_size = chunk_size

    def compute_hash(self, path: Path) -> str:
        """
        Full SHA-256 of the file. Reads the whole file, so this is the
        expensive part of a content-mode scan.

        Raises OSError if the file can't be read.
        """
        h = hashlib.sha256()
        with open(path, 'rb') as f:
            while chunk := f.read(self.chunk_size):
                h.update(chunk)
        return h.hexdigest()
