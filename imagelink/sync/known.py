"""Process-lifetime record of images already materialized on the host."""

from __future__ import annotations


class KnownImageSet:
    """
    Names of images this process has already created objects for.

    Only used to choose create vs refresh; the host tree stays the source of
    truth and is consulted by name whenever it matters.
    """

    def __init__(self, names: list[str] | None = None):
        self._names: set[str] = set(names or [])

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __len__(self) -> int:
        return len(self._names)

    def add(self, name: str) -> None:
        self._names.add(name)

    def discard(self, name: str) -> None:
        self._names.discard(name)
