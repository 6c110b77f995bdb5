"""Configuration constants for the development file server."""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

DEFAULT_PORT: int = 3000


def port_from_env(environ: Mapping[str, str] = os.environ, default: int = DEFAULT_PORT) -> int:
    """Read the listening port from ``PORT``, falling back to ``default``."""
    raw_port = environ.get("PORT", "").strip()
    try:
        port = int(raw_port)
    except ValueError:
        return default
    if not 0 < port <= 65535:
        return default
    return port


HOST: str = "127.0.0.1"
PORT: int = port_from_env()
ROOT_DIR: Path = Path.cwd()
SERVER_NAME: str = "devserve/1.0"
BUFFER_SIZE: int = 4096
SOCKET_TIMEOUT_SECS: int = 5
MAX_HEADER_BYTES: int = 16_384
MAX_TARGET_LENGTH: int = 8_192
WORKER_COUNT: int = 8
REQUEST_QUEUE_SIZE: int = 64
LOG_FORMAT: str = "plain"

HTML_CONTENT_TYPE: str = "text/html; charset=utf-8"
TEXT_CONTENT_TYPE: str = "text/plain; charset=utf-8"
DEFAULT_CONTENT_TYPE: str = "application/octet-stream"

MIME_TYPES: Mapping[str, str] = MappingProxyType(
    {
        ".html": HTML_CONTENT_TYPE,
        ".js": "application/javascript; charset=utf-8",
        ".css": "text/css; charset=utf-8",
        ".json": "application/json; charset=utf-8",
        ".png": "image/png",
        ".jpg": "image/jpeg",
        ".jpeg": "image/jpeg",
        ".gif": "image/gif",
        ".svg": "image/svg+xml",
        ".ico": "image/x-icon",
        ".txt": TEXT_CONTENT_TYPE,
        ".md": "text/markdown; charset=utf-8",
        ".csv": "text/csv; charset=utf-8",
        ".pdf": "application/pdf",
    }
)


@dataclass(frozen=True, slots=True)
class ServerConfig:
    """Immutable per-server settings handed to the resolver and responder."""

    root: Path = ROOT_DIR
    mime_table: Mapping[str, str] = field(default_factory=lambda: MIME_TYPES)

    def __post_init__(self) -> None:
        object.__setattr__(self, "root", Path(self.root).resolve())

    def content_type_for(self, file_path: Path) -> str:
        return self.mime_table.get(file_path.suffix.lower(), DEFAULT_CONTENT_TYPE)
