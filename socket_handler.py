"""Low-level socket read/write utilities."""

from __future__ import annotations

import socket

from config import BUFFER_SIZE, MAX_HEADER_BYTES
from response import HTTPResponse


class HTTPReadError(Exception):
    """Raised when a client request cannot be safely read from the socket."""


class MalformedRequestError(HTTPReadError):
    """Raised when socket bytes do not form a complete HTTP request head."""


class HeaderTooLargeError(HTTPReadError):
    """Raised when HTTP headers exceed configured maximum size."""


class SocketTimeoutError(HTTPReadError):
    """Raised when a client times out while sending request bytes."""


def read_http_request_head(
    client_socket: socket.socket,
    *,
    max_header_bytes: int = MAX_HEADER_BYTES,
) -> bytes:
    """Read bytes until the end of the request head.

    Returns ``b""`` when the client closes the connection without sending
    anything. Body bytes are never waited for.
    """
    buffer = bytearray()
    while True:
        header_end = buffer.find(b"\r\n\r\n")
        if header_end != -1:
            if header_end > max_header_bytes:
                raise HeaderTooLargeError("Request head exceeded MAX_HEADER_BYTES")
            return bytes(buffer[: header_end + 4])

        if len(buffer) > max_header_bytes:
            raise HeaderTooLargeError("Request head exceeded MAX_HEADER_BYTES")

        try:
            chunk = client_socket.recv(BUFFER_SIZE)
        except socket.timeout as exc:
            raise SocketTimeoutError("Timed out waiting for request bytes") from exc

        if not chunk:
            if not buffer:
                return b""
            raise MalformedRequestError("Connection closed before request head completed")

        buffer.extend(chunk)


def write_http_response_message(client_socket: socket.socket, response: HTTPResponse) -> int:
    """Write a fully buffered HTTPResponse and return the number of bytes sent."""
    payload = response.to_bytes()
    client_socket.sendall(payload)
    return len(payload)
