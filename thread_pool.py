"""Bounded worker pool that runs accepted client connections."""

from __future__ import annotations

import logging
import queue
import socket
import threading
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

ClientAddress = tuple[str, int]
ConnectionHandler = Callable[[socket.socket, ClientAddress], None]


@dataclass(slots=True, frozen=True)
class ConnectionJob:
    client_socket: socket.socket
    address: ClientAddress


class ThreadPool:
    """Fixed-size set of worker threads fed from a bounded queue.

    ``submit`` never blocks: when the queue is full the caller gets ``False``
    and keeps ownership of the socket.
    """

    def __init__(
        self,
        worker_count: int,
        queue_size: int,
        handler: ConnectionHandler,
        *,
        name_prefix: str = "http-worker",
    ) -> None:
        if worker_count <= 0:
            raise ValueError("worker_count must be positive")
        if queue_size <= 0:
            raise ValueError("queue_size must be positive")

        self._handler = handler
        self._name_prefix = name_prefix
        self._worker_count = worker_count
        self._queue: queue.Queue[ConnectionJob | None] = queue.Queue(maxsize=queue_size)
        self._threads: list[threading.Thread] = []
        self._stopping = threading.Event()
        self._active_lock = threading.Lock()
        self._active_jobs = 0

    @property
    def worker_count(self) -> int:
        return self._worker_count

    @property
    def threads(self) -> tuple[threading.Thread, ...]:
        return tuple(self._threads)

    @property
    def active_jobs(self) -> int:
        with self._active_lock:
            return self._active_jobs

    def start(self) -> None:
        if self._threads:
            raise RuntimeError("thread pool already started")
        for index in range(self._worker_count):
            worker = threading.Thread(
                target=self._worker_loop,
                name=f"{self._name_prefix}-{index}",
                daemon=True,
            )
            self._threads.append(worker)
            worker.start()

    def submit(self, client_socket: socket.socket, address: ClientAddress) -> bool:
        if self._stopping.is_set():
            return False
        try:
            self._queue.put_nowait(ConnectionJob(client_socket, address))
        except queue.Full:
            return False
        return True

    def shutdown(self, timeout: float = 1.0) -> None:
        """Stop the workers; connections still waiting in the queue are closed."""
        if self._stopping.is_set():
            return
        self._stopping.set()

        self._discard_pending()
        for _ in self._threads:
            try:
                self._queue.put(None, timeout=timeout)
            except queue.Full:
                logger.warning("could not queue stop signal; workers are saturated")
                break
        for thread in self._threads:
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("worker %s still busy after %.1fs", thread.name, timeout)

    def _discard_pending(self) -> None:
        while True:
            try:
                job = self._queue.get_nowait()
            except queue.Empty:
                return
            if job is not None:
                job.client_socket.close()
            self._queue.task_done()

    def _worker_loop(self) -> None:
        while True:
            job = self._queue.get()
            try:
                if job is None:
                    return
                with self._active_lock:
                    self._active_jobs += 1
                try:
                    self._handler(job.client_socket, job.address)
                except Exception:
                    logger.exception("Unhandled error serving connection from %s", job.address[0])
                finally:
                    with self._active_lock:
                        self._active_jobs -= 1
            finally:
                self._queue.task_done()
