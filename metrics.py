"""Thread-safe in-memory counters kept by the test listener."""

from __future__ import annotations

import threading
from collections import Counter


class MetricsRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total_exchanges = 0
        self._open_connections = 0
        self._status_counts: Counter[int] = Counter()
        self._exchanges_by_context: Counter[str] = Counter()
        self._bytes_sent_total = 0
        self._bytes_received_total = 0
        self._read_errors_by_type: Counter[str] = Counter()
        self._handler_errors = 0
        self._unanswered_exchanges = 0

    def connection_opened(self) -> None:
        with self._lock:
            self._open_connections += 1

    def connection_closed(self) -> None:
        with self._lock:
            self._open_connections = max(0, self._open_connections - 1)

    def record_exchange(
        self,
        status_code: int,
        *,
        bytes_in: int,
        bytes_out: int,
        context_path: str | None = None,
    ) -> None:
        with self._lock:
            self._total_exchanges += 1
            self._status_counts[status_code] += 1
            self._bytes_received_total += bytes_in
            self._bytes_sent_total += bytes_out
            if context_path is not None:
                self._exchanges_by_context[context_path] += 1

    def record_read_error(self, error_type: str) -> None:
        with self._lock:
            self._read_errors_by_type[error_type] += 1

    def record_handler_error(self) -> None:
        with self._lock:
            self._handler_errors += 1

    def record_unanswered_exchange(self) -> None:
        with self._lock:
            self._unanswered_exchanges += 1

    def snapshot(self) -> dict[str, object]:
        with self._lock:
            return {
                "total_exchanges": self._total_exchanges,
                "open_connections": self._open_connections,
                "status_counts": dict(self._status_counts),
                "exchanges_by_context": dict(self._exchanges_by_context),
                "bytes_sent_total": self._bytes_sent_total,
                "bytes_received_total": self._bytes_received_total,
                "read_errors_by_type": dict(self._read_errors_by_type),
                "handler_errors": self._handler_errors,
                "unanswered_exchanges": self._unanswered_exchanges,
            }
