"""Path-prefix registration table for exchange handlers."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from exchange import HTTPExchange

ExchangeHandler = Callable[["HTTPExchange"], None]


@dataclass(slots=True, frozen=True)
class HTTPContext:
    path: str
    handler: ExchangeHandler


class ContextRegistry:
    """Maps path prefixes to handlers; the longest matching prefix wins.

    Writers replace the whole table, so a concurrent ``resolve`` always sees
    either the old or the new mapping.
    """

    def __init__(self) -> None:
        self._contexts: dict[str, HTTPContext] = {}

    def add_context(self, path: str, handler: ExchangeHandler) -> HTTPContext:
        if not path.startswith("/"):
            raise ValueError("path must start with '/'")
        if not callable(handler):
            raise TypeError("handler must be callable")
        context = HTTPContext(path=path, handler=handler)
        updated = dict(self._contexts)
        updated[path] = context
        self._contexts = updated
        return context

    def remove_context(self, path: str) -> None:
        if path not in self._contexts:
            raise KeyError(path)
        updated = dict(self._contexts)
        del updated[path]
        self._contexts = updated

    def resolve(self, request_path: str) -> HTTPContext | None:
        contexts = self._contexts
        best: HTTPContext | None = None
        for path, context in contexts.items():
            if request_path.startswith(path) and (best is None or len(path) > len(best.path)):
                best = context
        return best

    def paths(self) -> list[str]:
        return list(self._contexts)

    def __len__(self) -> int:
        return len(self._contexts)
