import unicodedata
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path, PurePath
from typing import List, Optional

from . import config


class MediaKind(str, Enum):
    PHOTO = 'photo'
    VIDEO = 'video'
    OTHER = 'other'


class IdentityMode(str, Enum):
    """How files are matched across the backup and the remote library."""
    NAME = 'name'        # normalized filename stem + extension group
    CONTENT = 'content'  # sha256 of the file bytes


def classify(name: str) -> MediaKind:
    """Classifies a filename by extension. AppleDouble '._' files are never media."""
    pure = PurePath(name)
    if pure.name.startswith("._"):
        return MediaKind.OTHER
    return MediaKind(config.EXT_TO_KIND.get(pure.suffix.lower(), 'other'))


def identity_key_for(name: str) -> str:
    """
    Name-based identity key: 'IMG_001.JPG' and 'img_001.jpeg' both map to
    'img_001:photo'. Unicode is NFC-normalized since macOS volumes hand back
    decomposed names.
    """
    pure = PurePath(name)
    stem = unicodedata.normalize("NFC", pure.stem).casefold()
    return f"{stem}:{classify(pure.name).value}"


def content_key(digest: str) -> str:
    return f"sha256:{digest}"


@dataclass(frozen=True)
class MediaFile:
    """
    Represents a file found during a scan.
    """
    relative_path: str      # POSIX path relative to the scan root
    path: Path
    kind: MediaKind
    identity_key: str
    size_bytes: int
    modified_time: float

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class RemoteEntry:
    """One entry of the remote library listing."""
    identity_key: str
    name: str
    source: Optional[str] = None

    @classmethod
    def from_name(cls, name: str, source: Optional[str] = None) -> "RemoteEntry":
        base = PurePath(name.strip()).name
        return cls(identity_key=identity_key_for(base), name=base, source=source)


@dataclass
class ScanIssue:
    path: Path
    message: str


@dataclass
class ScanResult:
    root: Path
    files: List[MediaFile] = field(default_factory=list)
    errors: List[ScanIssue] = field(default_factory=list)

    def media(self) -> List[MediaFile]:
        return [f for f in self.files if f.kind is not MediaKind.OTHER]


class Action(str, Enum):
    TRASH = 't'
    KEEP = 'k'
    SKIP = 'x'
    DEFER = 'l'


@dataclass(frozen=True)
class Disposition:
    """Outcome of a decision: Trash, Keep, Skip or Deferred(reason)."""
    action: Action
    reason: Optional[str] = None

    @classmethod
    def for_action(cls, action: Action, reason: Optional[str] = None) -> "Disposition":
        if action is Action.DEFER:
            return cls(action, reason or "deferred")
        return cls(action)

    @property
    def is_terminal(self) -> bool:
        return self.action is not Action.DEFER

    def __str__(self) -> str:
        if self.action is Action.DEFER:
            return f"Deferred({self.reason})"
        return self.action.name.capitalize()


class ItemState(str, Enum):
    PENDING = 'pending'
    DEFERRED = 'deferred'
    TRASHED = 'trashed'
    KEPT = 'kept'
    SKIPPED = 'skipped'
    FAILED = 'failed'    # copied to trash but original could not be deleted

    @property
    def is_terminal(self) -> bool:
        return self not in (ItemState.PENDING, ItemState.DEFERRED)


@dataclass
class FileInfo:
    """Read-only details shown to the operator before a decision."""
    path: Path
    relative_path: str
    kind: MediaKind
    size_bytes: int
    modified_time: datetime

    # Best effort metadata (None when the file carries none or can't be parsed)
    capture_datetime: Optional[datetime] = None
    camera_model: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    duration_sec: Optional[float] = None


@dataclass
class DisposalFailure:
    relative_path: str
    stage: str              # 'copy' or 'delete'
    message: str
    trash_path: Optional[Path] = None


@dataclass
class SessionSummary:
    trashed: int = 0
    kept: int = 0
    skipped: int = 0
    pending: int = 0
    failed: int = 0
    failures: List[DisposalFailure] = field(default_factory=list)
    dry_run: bool = False   # trashed counts are planned, nothing was moved

    @property
    def total(self) -> int:
        return self.trashed + self.kept + self.skipped + self.pending + self.failed

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)
