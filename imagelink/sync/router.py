"""Turn file events into create/refresh runs on the host."""

from __future__ import annotations

import asyncio
from typing import Iterable

from loguru import logger

from imagelink.link.client import LinkClient
from imagelink.scene.builder import ImageSlotBuilder, RefreshOutcome
from imagelink.sync.events import IMAGE_EXTENSIONS, FileEvent, FileEventKind, is_image_file
from imagelink.sync.known import KnownImageSet
from imagelink.sync.layout import SpawnGrid
from imagelink.utils.exceptions import describe_exception


class ImageSyncRouter:
    """
    Uploads each changed image and decides whether to build or refresh its object.

    Runs for the same file name are serialized; runs for different names may
    interleave freely on the link. Failures are logged per event and never stop
    the caller's event loop.
    """

    def __init__(
        self,
        client: LinkClient,
        builder: ImageSlotBuilder,
        *,
        known: KnownImageSet | None = None,
        layout: SpawnGrid | None = None,
        extensions: Iterable[str] = IMAGE_EXTENSIONS,
    ):
        self.client = client
        self.builder = builder
        self.known = known if known is not None else KnownImageSet()
        self.layout = layout or SpawnGrid()
        self.extensions = tuple(ext.lower() for ext in extensions)
        self._locks: dict[str, asyncio.Lock] = {}

    async def handle(self, event: FileEvent) -> RefreshOutcome | None:
        """Process one event; returns what happened on the host, or None when skipped or failed."""
        if not is_image_file(event.path, self.extensions):
            return None
        name = event.name
        lock = self._locks.setdefault(name, asyncio.Lock())
        try:
            async with lock:
                return await self._process(event)
        except Exception as e:
            logger.error(f"Error processing {name}: {describe_exception(e)}")
            return None

    async def _process(self, event: FileEvent) -> RefreshOutcome | None:
        name = event.name
        path = event.path.resolve()
        logger.info(f"File {event.kind.value}: {name}")

        reply = await self.client.import_texture(path)
        if not reply.success or not reply.asset_url:
            logger.error(f"Failed to import texture {name}: {reply.error_info}")
            return None
        asset_url = reply.asset_url
        logger.info(f"Texture uploaded: {asset_url}")

        if event.kind is FileEventKind.CREATED:
            return await self._on_created(name, asset_url)
        return await self._on_modified(name, asset_url)

    async def _on_created(self, name: str, asset_url: str) -> RefreshOutcome:
        if name not in self.known:
            self.known.add(name)
            try:
                await self.builder.construct(name, asset_url, self.layout.next_position())
            except Exception:
                self.known.discard(name)
                raise
            return RefreshOutcome.CONSTRUCTED

        outcome = await self.builder.refresh_or_construct(name, asset_url, self.layout.next_position)
        if outcome is RefreshOutcome.NOT_UPDATABLE:
            logger.info(f"Rebuilding {name}: existing slot cannot be updated")
            await self.builder.construct(name, asset_url, self.layout.next_position())
            return RefreshOutcome.CONSTRUCTED
        return outcome

    async def _on_modified(self, name: str, asset_url: str) -> RefreshOutcome:
        outcome = await self.builder.refresh_or_construct(name, asset_url, self.layout.next_position)
        if outcome is RefreshOutcome.CONSTRUCTED:
            self.known.add(name)
        elif outcome is RefreshOutcome.NOT_UPDATABLE:
            logger.warning(f"Slot for {name} exists but has no texture; leaving it unchanged")
        return outcome
