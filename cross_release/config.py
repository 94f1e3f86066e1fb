"""Configuration settings for cross_release.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Pinned cross revision used by the release workflow
DEFAULT_CROSS_GIT = "https://github.com/cross-rs/cross"
DEFAULT_CROSS_REV = "66845c1"


def _default_cache_dir() -> Path:
    """Return the default cache directory."""
    return Path.home() / ".cache" / "cross-release"


def _default_dist_dir() -> Path:
    """Return the default directory for packaged binaries."""
    return Path.cwd() / "dist"


def _default_log_dir() -> Path:
    """Return the default build log directory."""
    return Path.home() / ".local" / "share" / "cross-release" / "logs"


def _default_db_url() -> str:
    """Return the default database URL (SQLite)."""
    db_path = Path.home() / ".local" / "share" / "cross-release" / "db.sqlite"
    return f"sqlite:///{db_path}"


def _default_cargo_home() -> Path:
    """Return the default CARGO_HOME."""
    return Path.home() / ".cargo"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the XREL_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="XREL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    cache_dir: Path = Field(
        default_factory=_default_cache_dir,
        description="Root directory for dependency cache archives and locks",
    )
    dist_dir: Path = Field(
        default_factory=_default_dist_dir,
        description="Directory receiving packaged <tool>-<triple> binaries",
    )
    log_dir: Path = Field(
        default_factory=_default_log_dir,
        description="Directory for per-target build logs",
    )
    db_url: str = Field(
        default_factory=_default_db_url,
        description="Database connection URL",
    )
    target_dir: Path | None = Field(
        default=None,
        description="Cargo target directory (defaults to <manifest dir>/target)",
    )
    cargo_home: Path = Field(
        default_factory=_default_cargo_home,
        description="CARGO_HOME holding registry and git dependency state",
    )
    cache_paths: list[str] = Field(
        default_factory=lambda: ["registry/index", "registry/cache", "git/db"],
        description="Paths under cargo_home archived into the dependency cache",
    )

    # Build
    tool_name: str = Field(
        default="xortool",
        min_length=1,
        description="Binary name produced by the build; artifact name prefix",
    )
    builder: Literal["auto", "cargo", "cross"] = Field(
        default="auto",
        description="Build command: cargo, cross, or auto-select per target",
    )
    host_os: Literal["linux", "macos", "windows"] | None = Field(
        default=None,
        description="Override the detected host OS family",
    )
    update_toolchain: bool = Field(
        default=False,
        description="Run `rustup update stable` before provisioning targets",
    )
    cross_git: str = Field(
        default=DEFAULT_CROSS_GIT,
        description="Git repository cross is installed from",
    )
    cross_rev: str = Field(
        default=DEFAULT_CROSS_REV,
        description="Git revision cross is installed at",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Concurrency
    max_parallel_jobs: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Maximum number of target jobs running at once",
    )

    # Timeouts (in seconds)
    job_timeout: int | None = Field(
        default=None,
        ge=1,
        description="Wall-clock limit for one build invocation (unset = no limit)",
    )
    provision_timeout: int = Field(
        default=1800,
        ge=10,
        description="Timeout for each toolchain provisioning command",
    )

    diagnostic_tail_lines: int = Field(
        default=40,
        ge=1,
        description="Lines of compiler output kept in failure diagnostics",
    )


def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = [
    "DEFAULT_CROSS_GIT",
    "DEFAULT_CROSS_REV",
    "Settings",
    "get_settings",
    "print_settings_json",
]
