"""Wires config into a client, builder and router, and runs the watch loop."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from imagelink.config.schema import Config
from imagelink.link.client import LinkClient
from imagelink.link.protocol import Vector3
from imagelink.scene.builder import ImageSlotBuilder
from imagelink.sync.known import KnownImageSet
from imagelink.sync.layout import SpawnGrid
from imagelink.sync.router import ImageSyncRouter
from imagelink.sync.watcher import watch_images


@dataclass
class SyncRuntime:
    config: Config
    client: LinkClient
    builder: ImageSlotBuilder
    router: ImageSyncRouter

    @classmethod
    def from_config(cls, config: Config, *, url: str | None = None) -> SyncRuntime:
        client = LinkClient(
            url or config.link.url,
            request_timeout_ms=config.link.request_timeout_ms,
            open_timeout=config.link.open_timeout,
        )
        b = config.builder
        builder = ImageSlotBuilder(
            client,
            root_id=b.root_id,
            lookup_depth=b.lookup_depth,
            refresh_depth=b.refresh_depth,
            lookup_attempts=b.lookup_attempts,
            settle_delay=b.settle_delay,
        )
        origin = config.spawn.origin
        layout = SpawnGrid(
            columns=config.spawn.columns,
            spacing=config.spawn.spacing,
            origin=Vector3(origin.x, origin.y, origin.z),
        )
        router = ImageSyncRouter(
            client,
            builder,
            known=KnownImageSet(),
            layout=layout,
            extensions=config.watch.extensions,
        )
        return cls(config=config, client=client, builder=builder, router=router)

    async def watch(self, directory: Path, stop_event: asyncio.Event) -> None:
        """Route watcher events until `stop_event` is set, one task per event."""
        tasks: set[asyncio.Task] = set()
        w = self.config.watch
        try:
            async for event in watch_images(
                directory,
                extensions=w.extensions,
                stability_ms=w.stability_ms,
                poll_ms=w.poll_ms,
                initial_scan=w.initial_scan,
                stop_event=stop_event,
            ):
                if stop_event.is_set():
                    break
                task = asyncio.create_task(self.router.handle(event))
                tasks.add(task)
                task.add_done_callback(tasks.discard)
        finally:
            if tasks:
                logger.info(f"Cancelling {len(tasks)} in-flight event(s)")
                for task in list(tasks):
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Watcher stopped; {len(self.router.known)} image(s) known this session")
