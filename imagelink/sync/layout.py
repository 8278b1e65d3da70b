"""Placement of newly spawned image objects."""

from __future__ import annotations

from imagelink.link.protocol import Vector3


class SpawnGrid:
    """Row-major grid in the XY plane; each call to `next_position` takes the next cell."""

    def __init__(self, columns: int = 5, spacing: float = 0.5, origin: Vector3 | None = None):
        self.columns = max(1, columns)
        self.spacing = spacing
        self.origin = origin or Vector3(0.0, 1.5, 1.5)
        self._index = 0

    @property
    def used(self) -> int:
        return self._index

    def position_at(self, index: int) -> Vector3:
        column = index % self.columns
        row = index // self.columns
        return Vector3(
            x=self.origin.x + column * self.spacing,
            y=self.origin.y + row * self.spacing,
            z=self.origin.z,
        )

    def next_position(self) -> Vector3:
        position = self.position_at(self._index)
        self._index += 1
        return position
