"""Socket-level integration tests for the development file server."""

import json
import logging
import socket
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from server import HTTPServer


def _start_server(root: Path, **kwargs: object) -> tuple[HTTPServer, threading.Thread]:
    server = HTTPServer(port=0, root=root, **kwargs)
    thread = threading.Thread(target=server.start, daemon=True)
    thread.start()

    deadline = time.time() + 3
    while server.port == 0 and time.time() < deadline:
        time.sleep(0.01)

    if server.port == 0:
        raise RuntimeError("Server did not bind to a port")

    return server, thread


def _stop_server(server: HTTPServer, thread: threading.Thread) -> None:
    server.stop()
    thread.join(timeout=2.0)


def _send_raw(host: str, port: int, payload: bytes) -> bytes:
    with socket.create_connection((host, port), timeout=2.0) as client:
        client.sendall(payload)
        chunks = []
        while True:
            chunk = client.recv(8192)
            if not chunk:
                break
            chunks.append(chunk)
        return b"".join(chunks)


def _split(raw_response: bytes) -> tuple[int, dict[str, str], bytes]:
    head, body = raw_response.split(b"\r\n\r\n", 1)
    lines = head.decode("iso-8859-1").split("\r\n")
    status = int(lines[0].split(" ")[1])
    headers = {}
    for line in lines[1:]:
        key, value = line.split(":", 1)
        headers[key.strip().lower()] = value.strip()
    return status, headers, body


def _get(server: HTTPServer, target: str, method: str = "GET") -> tuple[int, dict[str, str], bytes]:
    payload = f"{method} {target} HTTP/1.1\r\nHost: localhost\r\n\r\n".encode("ascii")
    return _split(_send_raw(server.host, server.port, payload))


@pytest.fixture
def site(tmp_path: Path):
    root = tmp_path / "site"
    root.mkdir()
    (root / "a.txt").write_text("hello", encoding="utf-8")
    (root / "sub").mkdir()
    (tmp_path / "secret").write_text("top secret", encoding="utf-8")
    server, thread = _start_server(root)
    yield server
    _stop_server(server, thread)


def test_root_listing(site: HTTPServer) -> None:
    status, headers, body = _get(site, "/")

    assert status == 200
    assert headers["content-type"] == "text/html; charset=utf-8"
    assert headers["cache-control"] == "no-store"
    assert b'<a href="/a.txt">a.txt</a>' in body
    assert b'<a href="/sub/">sub/</a>' in body


def test_file_download(site: HTTPServer) -> None:
    status, headers, body = _get(site, "/a.txt")

    assert status == 200
    assert body == b"hello"
    assert headers["content-type"] == "text/plain; charset=utf-8"
    assert headers["cache-control"] == "no-store"
    assert headers["connection"] == "close"


def test_empty_subdirectory_listing(site: HTTPServer) -> None:
    status, _headers, body = _get(site, "/sub/")

    assert status == 200
    assert b"<ul></ul>" in body


@pytest.mark.parametrize("target", ["/sub/../../secret", "/../../etc/passwd", "/%2e%2e/secret"])
def test_traversal_is_forbidden(site: HTTPServer, target: str) -> None:
    status, headers, body = _get(site, target)

    assert status == 403
    assert body == b"Forbidden"
    assert b"top secret" not in body
    assert headers["cache-control"] == "no-store"


def test_missing_path_is_not_found(site: HTTPServer) -> None:
    status, headers, _body = _get(site, "/does/not/exist")

    assert status == 404
    assert headers["cache-control"] == "no-store"


def test_post_is_served_like_get(site: HTTPServer) -> None:
    status, _headers, body = _get(site, "/a.txt", method="POST")

    assert status == 200
    assert body == b"hello"


def test_malformed_escape_returns_400(site: HTTPServer) -> None:
    status, _headers, _body = _get(site, "/bad%zz")

    assert status == 400


def test_malformed_request_returns_400(site: HTTPServer) -> None:
    raw = _send_raw(site.host, site.port, b"BROKEN-LINE\r\n\r\n")

    assert raw.startswith(b"HTTP/1.1 400 Bad Request")


def test_unsupported_version_returns_505(site: HTTPServer) -> None:
    raw = _send_raw(site.host, site.port, b"GET / HTTP/3.0\r\n\r\n")

    assert raw.startswith(b"HTTP/1.1 505 HTTP Version Not Supported")


def test_concurrent_requests(site: HTTPServer) -> None:
    payload = b"GET /a.txt HTTP/1.1\r\nHost: localhost\r\n\r\n"

    with ThreadPoolExecutor(max_workers=20) as executor:
        futures = [
            executor.submit(_send_raw, site.host, site.port, payload)
            for _ in range(20)
        ]
        responses = [future.result() for future in futures]

    assert len(responses) == 20
    assert all(response.startswith(b"HTTP/1.1 200 OK") for response in responses)
    assert all(response.endswith(b"\r\n\r\nhello") for response in responses)


def test_json_access_log(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    (tmp_path / "a.txt").write_text("hello", encoding="utf-8")
    server, thread = _start_server(tmp_path, log_format="json")
    try:
        with caplog.at_level(logging.INFO, logger="server"):
            _get(server, "/a.txt?v=2")
            deadline = time.time() + 2
            while not any('"status"' in r.getMessage() for r in caplog.records):
                if time.time() > deadline:
                    break
                time.sleep(0.01)
    finally:
        _stop_server(server, thread)

    events = [
        json.loads(record.getMessage())
        for record in caplog.records
        if record.getMessage().startswith("{")
    ]
    assert events
    assert events[0]["method"] == "GET"
    assert events[0]["path"] == "/a.txt"
    assert events[0]["status"] == 200
