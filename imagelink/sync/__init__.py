"""File-to-host synchronization: events, known-image tracking, placement, routing and watching."""

from imagelink.sync.events import IMAGE_EXTENSIONS, FileEvent, FileEventKind, is_image_file
from imagelink.sync.known import KnownImageSet
from imagelink.sync.layout import SpawnGrid
from imagelink.sync.router import ImageSyncRouter
from imagelink.sync.watcher import watch_images

__all__ = [
    "FileEvent",
    "FileEventKind",
    "IMAGE_EXTENSIONS",
    "ImageSyncRouter",
    "KnownImageSet",
    "SpawnGrid",
    "is_image_file",
    "watch_images",
]
