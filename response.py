"""HTTP response model and serializer."""

from dataclasses import dataclass, field
from email.utils import formatdate

from config import SERVER_NAME, TEXT_CONTENT_TYPE

REASON_PHRASES: dict[int, str] = {
    200: "OK",
    400: "Bad Request",
    403: "Forbidden",
    404: "Not Found",
    408: "Request Timeout",
    414: "URI Too Long",
    431: "Request Header Fields Too Large",
    500: "Internal Server Error",
    503: "Service Unavailable",
    505: "HTTP Version Not Supported",
}


@dataclass(slots=True)
class HTTPResponse:
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | str = b""
    reason_phrase: str | None = None

    def __post_init__(self) -> None:
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")

    @classmethod
    def plain(cls, status_code: int, text: str | None = None, **headers: str) -> "HTTPResponse":
        """Build a plain-text response, defaulting the body to the reason phrase."""
        body = text if text is not None else REASON_PHRASES.get(status_code, "Unknown")
        return cls(
            status_code=status_code,
            headers={"Content-Type": TEXT_CONTENT_TYPE, **headers},
            body=body,
        )

    def to_bytes(self) -> bytes:
        """Serialize the response into HTTP/1.1 wire format bytes."""
        return prepare_head(self) + self.body


def prepare_head(response: HTTPResponse) -> bytes:
    reason = response.reason_phrase or REASON_PHRASES.get(response.status_code, "Unknown")
    normalized_headers = dict(response.headers)
    normalized_headers.setdefault(
        "Date",
        formatdate(timeval=None, localtime=False, usegmt=True),
    )
    normalized_headers.setdefault("Server", SERVER_NAME)
    normalized_headers.setdefault("Content-Type", TEXT_CONTENT_TYPE)
    normalized_headers["Content-Length"] = str(len(response.body))
    normalized_headers["Connection"] = "close"

    header_lines = [f"HTTP/1.1 {response.status_code} {reason}"]
    header_lines.extend(f"{key}: {value}" for key, value in normalized_headers.items())
    return "\r\n".join(header_lines).encode("iso-8859-1") + b"\r\n\r\n"
