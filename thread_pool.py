"""Bounded worker pool for accepted client sockets."""

from __future__ import annotations

import logging
import queue
import socket
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)

ClientAddress = tuple[str, int]
ClientJob = tuple[object, ClientAddress]
ClientHandler = Callable[[object, ClientAddress], None]


class ThreadPool:
    """Fixed set of worker threads fed from a bounded queue.

    Each accepted connection is handled start to finish by one worker, so a
    slow file read only holds up its own client.
    """

    def __init__(self, worker_count: int, queue_size: int, handler: ClientHandler) -> None:
        if worker_count <= 0:
            raise ValueError("worker_count must be positive")
        if queue_size <= 0:
            raise ValueError("queue_size must be positive")

        self._handler = handler
        self._jobs: queue.Queue[ClientJob | None] = queue.Queue(maxsize=queue_size)
        self._stopping = threading.Event()
        self._workers: list[threading.Thread] = []
        self._worker_count = worker_count
        self._shutdown_lock = threading.Lock()

    @property
    def worker_count(self) -> int:
        return self._worker_count

    @property
    def threads(self) -> tuple[threading.Thread, ...]:
        return tuple(self._workers)

    def start(self) -> None:
        for index in range(self._worker_count):
            worker = threading.Thread(
                target=self._run_worker,
                name=f"devserve-worker-{index}",
                daemon=True,
            )
            self._workers.append(worker)
            worker.start()

    def submit(self, client_socket: object, address: ClientAddress) -> bool:
        """Queue a connection; returns False when stopping or the queue is full."""
        if self._stopping.is_set():
            return False
        try:
            self._jobs.put_nowait((client_socket, address))
        except queue.Full:
            return False
        return True

    def shutdown(self) -> None:
        with self._shutdown_lock:
            if self._stopping.is_set():
                return
            self._stopping.set()

        for _ in self._workers:
            try:
                self._jobs.put_nowait(None)
            except queue.Full:
                break

        for worker in self._workers:
            worker.join(timeout=1.0)

        self._close_pending()

    def _close_pending(self) -> None:
        """Close connections that were queued but never picked up by a worker."""
        while True:
            try:
                job = self._jobs.get_nowait()
            except queue.Empty:
                return
            if job is None:
                continue
            client_socket, address = job
            if isinstance(client_socket, socket.socket):
                logger.debug("Closing unserved connection from %s", address[0])
                client_socket.close()

    def _run_worker(self) -> None:
        while not self._stopping.is_set():
            try:
                job = self._jobs.get(timeout=0.2)
            except queue.Empty:
                continue
            if job is None:
                return
            client_socket, address = job
            try:
                self._handler(client_socket, address)
            except Exception:
                logger.exception("Unhandled error while serving %s", address[0])
