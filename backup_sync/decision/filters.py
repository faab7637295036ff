import fnmatch
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ..models import MediaFile, MediaKind

GLOB_CHARS = set("*?[")


@dataclass(frozen=True)
class Filter:
    """
    Predicate over MediaFile: kind (None = any) AND an optional pattern.

    Patterns containing glob characters are matched against the whole relative
    path; anything else is a substring test. Both are case-insensitive.
    """
    kind: Optional[MediaKind] = None
    pattern: Optional[str] = None

    def matches(self, item: MediaFile) -> bool:
        if self.kind is not None and item.kind is not self.kind:
            return False
        if not self.pattern:
            return True

        rel = item.relative_path.lower()
        pat = self.pattern.lower()
        if GLOB_CHARS & set(pat):
            # Patterns without a slash also match against the bare filename
            return fnmatch.fnmatchcase(rel, pat) or (
                "/" not in pat and fnmatch.fnmatchcase(item.name.lower(), pat)
            )
        return pat in rel

    def apply(self, items: Iterable[MediaFile]) -> List[MediaFile]:
        return [i for i in items if self.matches(i)]

    def describe(self) -> str:
        parts = [f"kind={self.kind.value if self.kind else 'any'}"]
        if self.pattern:
            parts.append(f"pattern='{self.pattern}'")
        return ", ".join(parts)


def parse_kind(value: Optional[str]) -> Optional[MediaKind]:
    """'photo' / 'video' / 'any' (or None) -> filter kind."""
    if value is None or value.lower() == "any":
        return None
    kind = MediaKind(value.lower())
    if kind is MediaKind.OTHER:
        raise ValueError("Filter kind must be photo, video or any")
    return kind
