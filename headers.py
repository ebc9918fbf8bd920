"""Case-insensitive, ordered, multi-valued HTTP header map."""

from __future__ import annotations

from collections.abc import Iterable, Iterator


class Headers:
    """Header names compare case-insensitively; each name keeps its values in order.

    Names are iterated in first-insertion order. A read-only instance rejects
    every mutation with ``TypeError``.
    """

    def __init__(
        self,
        pairs: Iterable[tuple[str, str]] = (),
        *,
        read_only: bool = False,
    ) -> None:
        self._entries: dict[str, tuple[str, list[str]]] = {}
        for name, value in pairs:
            self._append(name, value)
        self._read_only = read_only

    @property
    def read_only(self) -> bool:
        return self._read_only

    def add(self, name: str, value: str) -> None:
        self._check_writable()
        self._append(name, value)

    def set(self, name: str, value: str) -> None:
        self._check_writable()
        key = _normalize_name(name)
        self._entries[key] = (self._entries.get(key, (name, []))[0], [str(value)])

    def remove(self, name: str) -> None:
        self._check_writable()
        self._entries.pop(_normalize_name(name), None)

    def setdefault(self, name: str, value: str) -> str:
        existing = self.get(name)
        if existing is not None:
            return existing
        self.add(name, value)
        return value

    def get(self, name: str, default: str | None = None) -> str | None:
        entry = self._entries.get(_normalize_name(name))
        if entry is None or not entry[1]:
            return default
        return entry[1][0]

    def get_all(self, name: str) -> list[str]:
        entry = self._entries.get(_normalize_name(name))
        if entry is None:
            return []
        return list(entry[1])

    def items(self) -> Iterator[tuple[str, str]]:
        """Yield ``(name, value)`` once per value, in insertion order."""
        for display_name, values in self._entries.values():
            for value in values:
                yield display_name, value

    def copy(self, *, read_only: bool = False) -> "Headers":
        return Headers(self.items(), read_only=read_only)

    def __getitem__(self, name: str) -> list[str]:
        entry = self._entries.get(_normalize_name(name))
        if entry is None:
            raise KeyError(name)
        return list(entry[1])

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and _normalize_name(name) in self._entries

    def __iter__(self) -> Iterator[str]:
        return (display_name for display_name, _values in self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"Headers({list(self.items())!r})"

    def _append(self, name: str, value: str) -> None:
        if not name or not name.strip():
            raise ValueError("header name cannot be empty")
        key = _normalize_name(name)
        entry = self._entries.get(key)
        if entry is None:
            self._entries[key] = (name.strip(), [str(value)])
        else:
            entry[1].append(str(value))

    def _check_writable(self) -> None:
        if self._read_only:
            raise TypeError("headers are read-only")


def _normalize_name(name: str) -> str:
    return name.strip().lower()
