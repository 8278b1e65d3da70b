"""Configuration schema using Pydantic.

Single data model and defaults for imagelink, persisted to ~/.imagelink/config.json.
"""

from pydantic import BaseModel, Field, ConfigDict
from pydantic_settings import BaseSettings

DEFAULT_IMAGE_EXTENSIONS = [".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp"]


class LinkConfig(BaseModel):
    """Connection to the host's link endpoint."""
    url: str = "ws://localhost:22345"
    request_timeout_ms: int = 30000  # Per-call reply deadline
    open_timeout: float = 10.0  # Seconds allowed for the websocket handshake


class WatchConfig(BaseModel):
    """Image directory watching."""
    directory: str = "images"  # Relative paths resolve against the working directory
    extensions: list[str] = Field(default_factory=lambda: list(DEFAULT_IMAGE_EXTENSIONS))
    stability_ms: int = 500  # Quiet period before a change is reported
    poll_ms: int = 100
    initial_scan: bool = True  # Report files already present at startup as created


class Vector3Config(BaseModel):
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


class SpawnConfig(BaseModel):
    """Grid used to place newly created image objects."""
    columns: int = 5
    spacing: float = 0.5
    origin: Vector3Config = Field(default_factory=lambda: Vector3Config(x=0.0, y=1.5, z=1.5))


class BuilderConfig(BaseModel):
    """Remote object construction."""
    root_id: str = "Root"
    lookup_depth: int = 5  # Depth searched when rediscovering a just-created container
    refresh_depth: int = 10  # Depth searched when looking for an existing container
    lookup_attempts: int = 3
    settle_delay: float = 0.1  # Seconds to let freshly attached components initialize


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: bool = True  # Add a rotating file sink under ~/.imagelink/logs


class Config(BaseSettings):
    """Root configuration for imagelink."""
    link: LinkConfig = Field(default_factory=LinkConfig)
    watch: WatchConfig = Field(default_factory=WatchConfig)
    spawn: SpawnConfig = Field(default_factory=SpawnConfig)
    builder: BuilderConfig = Field(default_factory=BuilderConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(
        env_prefix="IMAGELINK_",
        env_nested_delimiter="__"
    )
