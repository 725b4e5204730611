import os
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, Field


def _ms_env(name: str, default_ms: int) -> float:
    """Reads a millisecond valued variable and returns seconds."""
    return int(os.getenv(name, str(default_ms))) / 1000.0


class PoolConfig(BaseModel):
    """
    Instance pool settings loaded from environment variables.

    Durations are given in milliseconds in the environment and kept in seconds here.
    """
    max_instances: int = Field(
        default_factory=lambda: int(os.getenv("MAX_INSTANCES", "3")),
        description="Maximum number of live GeoGebra instances",
        ge=1,
        examples=[1, 3, 5]
    )
    max_idle_time: float = Field(
        default_factory=lambda: _ms_env("MAX_IDLE_TIME", 600000),
        description="Seconds an inactive instance may stay idle before eviction",
        gt=0,
        examples=[600.0]
    )
    instance_timeout: float = Field(
        default_factory=lambda: _ms_env("INSTANCE_TIMEOUT", 300000),
        description="Maximum lifetime in seconds of an inactive pooled instance",
        gt=0,
        examples=[300.0]
    )
    cleanup_interval: float = Field(
        default_factory=lambda: _ms_env("CLEANUP_INTERVAL", 60000),
        description="Seconds between idle sweeps",
        gt=0,
        examples=[60.0]
    )
    headless: bool = Field(
        default_factory=lambda: os.getenv("HEADLESS", "true").lower() == "true",
        description="Run the browser without a window",
        examples=[True, False]
    )
    default_app_name: str = Field(
        default_factory=lambda: os.getenv("GEOGEBRA_APP", "graphing"),
        description="App variant used for the default instance",
        examples=["graphing", "classic", "geometry"]
    )
    memory_per_instance: int = Field(
        default=75,
        description="Estimated memory footprint of one browser instance in MB"
    )


class SessionTimeouts(BaseModel):
    ready_timeout: float = Field(
        default_factory=lambda: _ms_env("READY_TIMEOUT", 30000),
        description="Seconds to wait for the applet to report readiness",
        gt=0
    )
    pdf_timeout: float = Field(
        default_factory=lambda: _ms_env("PDF_TIMEOUT", 30000),
        description="Seconds before a PDF rendering is abandoned",
        gt=0
    )
    svg_grace: float = Field(
        default_factory=lambda: _ms_env("SVG_GRACE", 3000),
        description="Seconds to wait for the callback style SVG export",
        gt=0
    )
    retry_attempts: int = Field(
        default_factory=lambda: int(os.getenv("RETRY_ATTEMPTS", "3")),
        description="Attempts made for idempotent reads and exports",
        ge=1
    )
    retry_delay: float = Field(
        default_factory=lambda: _ms_env("RETRY_DELAY", 500),
        description="Fixed delay in seconds between attempts",
        ge=0
    )


class GeoGebraServerConfig(BaseModel):
    """
    Configuration for both the MCP and the HTTP server, loaded from environment variables.
    """
    host: str = Field(
        default_factory=lambda: os.getenv("HOST", "0.0.0.0"),
        description="Host address to bind the HTTP server",
        examples=["0.0.0.0", "127.0.0.1"]
    )
    port: int = Field(
        default_factory=lambda: int(os.getenv("PORT", "3000")),
        description="Port number for the HTTP server",
        ge=1,
        le=65535,
        examples=[3000, 8080]
    )
    export_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("EXPORT_DIR", "exports")),
        description="Directory where exported files are written",
        examples=["exports", "/app/exports"]
    )
    log_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("LOG_DIR", "logs")),
        description="Path to log directory",
        examples=["logs", "/app/logs"]
    )
    log_level: str = Field(
        default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper(),
        description="Minimum level written to the logs",
        examples=["DEBUG", "INFO", "WARNING"]
    )
    cors_origin: str = Field(
        default_factory=lambda: os.getenv("CORS_ORIGIN", "*"),
        description="Allowed CORS origin for the HTTP server",
        examples=["*", "http://localhost:5173"]
    )
    ffmpeg_path: str = Field(
        default_factory=lambda: os.getenv("FFMPEG_PATH", "ffmpeg"),
        description="ffmpeg executable used for GIF and MP4 encoding"
    )
    pool: PoolConfig = Field(default_factory=PoolConfig)
    timeouts: SessionTimeouts = Field(default_factory=SessionTimeouts)

    @classmethod
    def from_env(cls, env_file: Optional[Union[Path, str]] = None) -> "GeoGebraServerConfig":
        """Loads a .env file (if any) before reading the environment."""
        if env_file is not None:
            load_dotenv(env_file, override=True)
        else:
            load_dotenv(override=True)
        return cls()
