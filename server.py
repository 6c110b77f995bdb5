"""Development file server entry point and connection lifecycle."""

from __future__ import annotations

import argparse
import json
import locale
import logging
import socket
import time
import traceback
from pathlib import Path

from config import (
    HOST,
    LOG_FORMAT,
    PORT,
    REQUEST_QUEUE_SIZE,
    ROOT_DIR,
    SOCKET_TIMEOUT_SECS,
    WORKER_COUNT,
    ServerConfig,
)
from handlers.file_server import NO_STORE_HEADERS, respond
from path_resolver import ClientPathError, resolve_request_path
from request import HTTPRequest, HTTPRequestParseError
from response import HTTPResponse
from socket_handler import (
    HeaderTooLargeError,
    MalformedRequestError,
    SocketTimeoutError,
    read_http_request_head,
    write_http_response_message,
)
from thread_pool import ThreadPool

logger = logging.getLogger(__name__)


class HTTPServer:
    def __init__(
        self,
        host: str = HOST,
        port: int = PORT,
        root: str | Path = ROOT_DIR,
        worker_count: int = WORKER_COUNT,
        request_queue_size: int = REQUEST_QUEUE_SIZE,
        *,
        log_format: str = LOG_FORMAT,
    ) -> None:
        self.host = host
        self.port = port
        self.config = ServerConfig(root=Path(root))
        self.worker_count = worker_count
        self.request_queue_size = request_queue_size
        self.log_format = log_format

        self._server_socket: socket.socket | None = None
        self._pool: ThreadPool | None = None
        self._running = False

    def start(self) -> None:
        """Bind, announce the address and serve until stop() is called."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server_socket:
            self._server_socket = server_socket
            server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server_socket.bind((self.host, self.port))
            server_socket.listen(128)
            server_socket.settimeout(0.2)
            self.port = server_socket.getsockname()[1]
            self._pool = ThreadPool(
                worker_count=self.worker_count,
                queue_size=self.request_queue_size,
                handler=self._handle_client,
            )
            self._pool.start()

            logger.info("Dev server running at http://localhost:%s", self.port)
            logger.info("Serving files from %s", self.config.root)

            self._running = True
            try:
                while self._running:
                    try:
                        client_socket, address = server_socket.accept()
                    except socket.timeout:
                        continue
                    except OSError:
                        break

                    pool = self._pool
                    if pool is None or not pool.submit(client_socket, address):
                        self._send_queue_full_response(client_socket, address)
            finally:
                pool, self._pool = self._pool, None
                if pool is not None:
                    pool.shutdown()

    def stop(self) -> None:
        self._running = False
        if self._server_socket is not None:
            self._server_socket.close()
            self._server_socket = None
        pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown()

    def _send_queue_full_response(
        self,
        client_socket: socket.socket,
        address: tuple[str, int],
    ) -> None:
        with client_socket:
            started_at = time.perf_counter()
            response = HTTPResponse.plain(503, **NO_STORE_HEADERS)
            try:
                bytes_sent = write_http_response_message(client_socket, response)
            except OSError:
                return
            self._record_and_log(address, "-", "-", response, bytes_sent, started_at)

    def _handle_client(self, client_socket: socket.socket, address: tuple[str, int]) -> None:
        with client_socket:
            client_socket.settimeout(SOCKET_TIMEOUT_SECS)
            started_at = time.perf_counter()
            method = "-"
            path = "-"
            try:
                raw_request = read_http_request_head(client_socket)
            except HeaderTooLargeError:
                response = HTTPResponse.plain(431, **NO_STORE_HEADERS)
            except SocketTimeoutError:
                response = HTTPResponse.plain(408, **NO_STORE_HEADERS)
            except MalformedRequestError:
                response = HTTPResponse.plain(400, **NO_STORE_HEADERS)
            except OSError:
                return
            else:
                if not raw_request:
                    return
                try:
                    request = HTTPRequest.from_bytes(raw_request)
                except HTTPRequestParseError as exc:
                    response = HTTPResponse.plain(exc.status_code, **NO_STORE_HEADERS)
                else:
                    method = request.method
                    path = request.path
                    response = self._dispatch(request)

            try:
                bytes_sent = write_http_response_message(client_socket, response)
            except OSError:
                logger.debug("Client %s disconnected before the response was sent", address[0])
                return
            self._record_and_log(address, method, path, response, bytes_sent, started_at)

    def _dispatch(self, request: HTTPRequest) -> HTTPResponse:
        """Handle one request; never raises.

        Unexpected errors become a 500 whose body carries the traceback.
        That is useful on a developer's machine and must not be exposed
        publicly.
        """
        try:
            resolved = resolve_request_path(request.raw_target, self.config.root)
            return respond(resolved, self.config)
        except ClientPathError as exc:
            return HTTPResponse.plain(exc.status_code, **NO_STORE_HEADERS)
        except Exception:
            logger.exception("Unhandled error while serving %s", request.path)
            return HTTPResponse.plain(
                500,
                f"Internal Server Error\n\n{traceback.format_exc()}",
                **NO_STORE_HEADERS,
            )

    def _record_and_log(
        self,
        address: tuple[str, int],
        method: str,
        path: str,
        response: HTTPResponse,
        bytes_sent: int,
        started_at: float,
    ) -> None:
        duration_ms = (time.perf_counter() - started_at) * 1000
        event = {
            "client": address[0],
            "method": method,
            "path": path,
            "status": response.status_code,
            "bytes_out": bytes_sent,
            "latency_ms": round(duration_ms, 3),
        }
        if self.log_format == "json":
            logger.info(json.dumps(event, sort_keys=True))
            return

        logger.info(
            "client=%s method=%s path=%s status=%s bytes_out=%s duration_ms=%.2f",
            event["client"],
            event["method"],
            event["path"],
            event["status"],
            event["bytes_out"],
            duration_ms,
        )


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve a directory over HTTP for local development")
    parser.add_argument("--host", default=HOST)
    parser.add_argument("--port", type=int, default=PORT)
    parser.add_argument("--root", type=Path, default=ROOT_DIR)
    parser.add_argument("--workers", type=int, default=WORKER_COUNT)
    parser.add_argument("--log-format", choices=["plain", "json"], default=LOG_FORMAT)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error:
        logger.warning("Could not load the system collation locale; listings use code-point order")
    server = HTTPServer(
        host=args.host,
        port=args.port,
        root=args.root,
        worker_count=args.workers,
        log_format=args.log_format,
    )
    try:
        server.start()
    except KeyboardInterrupt:
        server.stop()


if __name__ == "__main__":
    main()
