"""HTTP request-head model and parser."""

from dataclasses import dataclass, field
from urllib.parse import urlsplit

from config import MAX_TARGET_LENGTH

ALLOWED_HTTP_VERSIONS = {"HTTP/1.1", "HTTP/1.0"}


class HTTPRequestParseError(ValueError):
    """Request parse error carrying an HTTP status code."""

    def __init__(self, message: str, *, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(slots=True)
class HTTPRequest:
    method: str
    raw_target: str
    http_version: str = "HTTP/1.1"
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def path(self) -> str:
        return self.raw_target.split("?", 1)[0] or "/"

    @classmethod
    def from_bytes(cls, raw: bytes) -> "HTTPRequest":
        """Parse a raw request head. Any body bytes after the head are ignored."""
        header_bytes = raw.split(b"\r\n\r\n", 1)[0]
        lines = header_bytes.decode("iso-8859-1").split("\r\n")
        if not lines or not lines[0]:
            raise HTTPRequestParseError("Missing request line")

        first_line_parts = lines[0].split(" ")
        if len(first_line_parts) != 3:
            raise HTTPRequestParseError("Invalid request line")

        method, target, http_version = first_line_parts
        if not method or not target or not http_version:
            raise HTTPRequestParseError("Request line contains empty tokens")

        if http_version not in ALLOWED_HTTP_VERSIONS:
            raise HTTPRequestParseError("Unsupported HTTP version", status_code=505)

        if len(target) > MAX_TARGET_LENGTH:
            raise HTTPRequestParseError("Request target too long", status_code=414)

        headers: dict[str, str] = {}
        for line in lines[1:]:
            if not line:
                continue
            if ":" not in line:
                raise HTTPRequestParseError("Malformed header line")
            name, value = line.split(":", 1)
            header_name = name.strip().lower()
            if not header_name:
                raise HTTPRequestParseError("Header name cannot be empty")
            headers[header_name] = value.strip()

        return cls(
            method=method.upper(),
            raw_target=_origin_form(target),
            http_version=http_version,
            headers=headers,
        )


def _origin_form(target: str) -> str:
    # "//etc/passwd" is a path, not a network location.
    if target.startswith("/"):
        return target
    parsed = urlsplit(target)
    if not parsed.scheme:
        raise HTTPRequestParseError("Request target must be origin or absolute form")
    origin = parsed.path or "/"
    if parsed.query:
        origin = f"{origin}?{parsed.query}"
    return origin
