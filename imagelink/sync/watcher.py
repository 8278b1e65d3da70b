"""Watch an image directory and yield stable file events."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import AsyncIterator, Iterable

from loguru import logger
from watchfiles import Change, awatch

from imagelink.sync.events import IMAGE_EXTENSIONS, FileEvent, FileEventKind, is_image_file


def _mtime(path: Path) -> float | None:
    try:
        return path.stat().st_mtime
    except OSError:
        return None


def changes_to_events(
    changes: Iterable[tuple[Change, str]],
    seen: dict[Path, float],
    extensions: Iterable[str] = IMAGE_EXTENSIONS,
) -> list[FileEvent]:
    """
    Collapse one watchfiles batch into at most one event per path.

    A path not seen before is reported as created even if the batch only says
    modified; a path whose mtime has not moved since it was last reported is
    dropped. `seen` is updated in place.
    """
    kinds: dict[Path, set[Change]] = {}
    for change, raw_path in changes:
        kinds.setdefault(Path(raw_path), set()).add(change)

    events = []
    for path in sorted(kinds):
        if not is_image_file(path, extensions):
            continue
        mtime = _mtime(path)
        if mtime is None or not path.is_file():
            seen.pop(path, None)
            continue
        if seen.get(path) == mtime:
            continue
        created = Change.added in kinds[path] or path not in seen
        seen[path] = mtime
        events.append(FileEvent(FileEventKind.CREATED if created else FileEventKind.MODIFIED, path))
    return events


def scan_existing(directory: Path, seen: dict[Path, float], extensions: Iterable[str] = IMAGE_EXTENSIONS) -> list[FileEvent]:
    """Created events for image files already present, in path order."""
    existing = [(Change.added, str(p)) for p in directory.rglob("*") if p.is_file()]
    return changes_to_events(existing, seen, extensions)


async def watch_images(
    directory: str | Path,
    *,
    extensions: Iterable[str] = IMAGE_EXTENSIONS,
    stability_ms: int = 500,
    poll_ms: int = 100,
    initial_scan: bool = True,
    stop_event: asyncio.Event | None = None,
) -> AsyncIterator[FileEvent]:
    """
    Yield created/modified events for image files under `directory`.

    Changes are only reported after `stability_ms` without further writes, so a
    file still being copied in is not picked up half written.
    """
    directory = Path(directory).resolve()
    extensions = tuple(extensions)
    seen: dict[Path, float] = {}

    if initial_scan:
        for event in await asyncio.to_thread(scan_existing, directory, seen, extensions):
            yield event

    logger.debug(f"Image watcher started for {directory}")
    async for changes in awatch(
        directory,
        debounce=max(1600, stability_ms * 4),
        step=stability_ms,
        poll_delay_ms=poll_ms,
        stop_event=stop_event,
    ):
        for event in changes_to_events(changes, seen, extensions):
            yield event
    logger.debug(f"Image watcher stopped for {directory}")
