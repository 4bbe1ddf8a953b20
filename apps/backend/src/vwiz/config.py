"""Configuration management for the render server."""

from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 3001
    debug: bool = False
    log_level: str = "INFO"

    # Result locators are built as {public_url}{files_path}/{job_id}.mp4
    public_url: str = ""
    files_path: str = "/files"

    # Directories
    renders_dir: Path = Path("./renders")
    bundle_dir: Path = Path("./build/bundle")

    # Remotion engine
    remotion_serve_url: str | None = None
    remotion_entry_point: Path = Path("../../packages/remotion-compositions/src/index.ts")
    npx_bin: str = "npx"
    codec: str = "h264"
    ensure_browser: bool = True

    # Queue
    render_timeout_seconds: float | None = None
    job_retention_seconds: float | None = None
    retention_sweep_interval_seconds: float = 60.0

    # Render client (upstream orchestrator)
    render_server_url: str = "http://localhost:3001"
    poll_interval_seconds: float = 2.0
    max_poll_attempts: int = 60

    @model_validator(mode="after")
    def _default_public_url(self) -> "Settings":
        if not self.public_url:
            self.public_url = f"http://localhost:{self.port}"
        self.public_url = self.public_url.rstrip("/")
        return self

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        self.renders_dir.mkdir(parents=True, exist_ok=True)


# Global settings instance
settings = Settings()
