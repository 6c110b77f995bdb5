"""Map raw request targets onto filesystem paths under the served root."""

from __future__ import annotations

import enum
import errno
import posixpath
import re
import stat
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote

_MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class ClientPathError(ValueError):
    """Raised when a request path cannot be decoded."""

    def __init__(self, message: str, *, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


class PathKind(enum.Enum):
    FILE = "file"
    DIRECTORY = "directory"
    MISSING = "missing"
    OUTSIDE_ROOT = "outside_root"


@dataclass(frozen=True, slots=True)
class ResolvedPath:
    kind: PathKind
    url_path: str
    decoded_path: str
    path: Path | None = None

    @property
    def listing_path(self) -> str:
        """URL path with a guaranteed trailing slash, used as the listing base."""
        if self.url_path.endswith("/"):
            return self.url_path
        return self.url_path + "/"


def split_target(raw_target: str) -> str:
    """Drop the query string and fragment, defaulting to ``/``."""
    url_path = raw_target.split("?", 1)[0].split("#", 1)[0]
    return url_path or "/"


def decode_path(url_path: str) -> str:
    if _MALFORMED_ESCAPE.search(url_path):
        raise ClientPathError("Malformed percent-encoding in request path")
    try:
        return unquote(url_path, errors="strict")
    except UnicodeDecodeError as exc:
        raise ClientPathError("Request path is not valid UTF-8") from exc


def sanitize(decoded_path: str) -> tuple[str, bool]:
    """Normalize ``decoded_path`` relative to the root.

    Returns the relative path with any leading ``..`` segments removed, and
    whether such segments were present.
    """
    relative = decoded_path.replace("\\", "/").lstrip("/")
    normalized = posixpath.normpath(relative) if relative else "."
    segments = normalized.split("/")
    leading_parents = 0
    while leading_parents < len(segments) and segments[leading_parents] == "..":
        leading_parents += 1
    remaining = segments[leading_parents:]
    return "/".join(remaining) or ".", leading_parents > 0


def resolve_request_path(raw_target: str, root: Path) -> ResolvedPath:
    """Resolve ``raw_target`` against ``root`` and classify the result.

    Raises ClientPathError for undecodable paths. Requests whose normalized
    form climbs above the root, or whose canonical location (after following
    symlinks) is not inside the root, are classified as OUTSIDE_ROOT. Other
    OSErrors from the existence check propagate to the caller.
    """
    url_path = split_target(raw_target)
    decoded_path = decode_path(url_path)
    relative, escaped = sanitize(decoded_path)

    if "\x00" in relative:
        return ResolvedPath(PathKind.MISSING, url_path, decoded_path)

    canonical_root = Path(root).resolve()
    candidate = (canonical_root / relative).resolve()
    if escaped or not candidate.is_relative_to(canonical_root):
        return ResolvedPath(PathKind.OUTSIDE_ROOT, url_path, decoded_path)

    return ResolvedPath(_classify(candidate), url_path, decoded_path, candidate)


def _classify(candidate: Path) -> PathKind:
    try:
        mode = candidate.stat().st_mode
    except (FileNotFoundError, NotADirectoryError):
        return PathKind.MISSING
    except OSError as exc:
        if exc.errno == errno.ENAMETOOLONG:
            return PathKind.MISSING
        raise

    if stat.S_ISDIR(mode):
        return PathKind.DIRECTORY
    if stat.S_ISREG(mode):
        return PathKind.FILE
    return PathKind.MISSING
