"""File change events delivered to the router."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp")


class FileEventKind(str, Enum):
    CREATED = "created"
    MODIFIED = "modified"


@dataclass(frozen=True)
class FileEvent:
    kind: FileEventKind
    path: Path

    @property
    def name(self) -> str:
        return self.path.name


def is_image_file(path: str | Path, extensions: Iterable[str] = IMAGE_EXTENSIONS) -> bool:
    suffix = Path(path).suffix.lower()
    return suffix in {ext.lower() for ext in extensions}
