"""Configuration handling for quickff."""

import logging
import os
import tomllib
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.toml"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Name used when nothing else configures the executable
FALLBACK_EXECUTABLE = "ffmpeg"

# Process-wide default, read by every invocation that has no override
_default_executable_path: str = FALLBACK_EXECUTABLE


def get_default_executable_path() -> str:
    """Get the process-wide default executable path."""
    return _default_executable_path


def set_default_executable_path(path: Optional[str]) -> None:
    """Set the process-wide default executable path.

    Intended for one-time configuration at startup. Passing None or an empty
    string restores the fallback name.

    Args:
        path: Path to the executable, or a name resolved through PATH.
    """
    global _default_executable_path
    _default_executable_path = str(path) if path else FALLBACK_EXECUTABLE


def get_default_config_path() -> Path:
    """Return $XDG_CONFIG_HOME/quickff/config.toml (~/.config when unset)."""
    config_home = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(config_home) / "quickff" / CONFIG_FILE_NAME


class InvokerConfig(BaseModel):
    """Subprocess invocation configuration."""

    executable_path: Optional[str] = Field(
        default=None,
        description="Path to the ffmpeg executable (empty to use the process default).",
    )
    chunk_size: int = Field(
        default=64 * 1024, gt=0, description="Read size for stdio pipes (bytes)."
    )

    @field_validator("executable_path")
    @classmethod
    def empty_path_is_unset(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class LogConfig(BaseModel):
    """Logging configuration."""

    log_level: str = Field(
        default="INFO",
        description="Console logging level, one of LOG_LEVELS.",
    )
    log_file: Optional[Path] = Field(
        default=None, description="Optional log file path."
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(
                f"Invalid log level {v!r}. Choose from {', '.join(LOG_LEVELS)}"
            )
        return level


class AppConfig(BaseModel):
    """Root configuration, one table per section of config.toml."""

    invoker: InvokerConfig = Field(default_factory=InvokerConfig)
    log: LogConfig = Field(default_factory=LogConfig)


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load quickff settings from a TOML file.

    A file that does not exist is not an error: every setting has a default.

    Args:
        path: Config file, defaults to get_default_config_path().

    Raises:
        ValueError: If the file is not valid TOML or holds invalid settings.
        OSError: If the file exists but can't be read.
    """
    config_path = path or get_default_config_path()
    if not config_path.is_file():
        logger.debug(f"No config file at {config_path}, using defaults.")
        return AppConfig()

    try:
        raw = config_path.read_bytes()
    except OSError as e:
        raise OSError(f"Error reading file: {config_path}\n{e}") from e

    try:
        settings = tomllib.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, tomllib.TOMLDecodeError) as e:
        raise ValueError(f"Error decoding TOML file: {config_path}\n{e}") from e

    try:
        return AppConfig.model_validate(settings)
    except ValidationError as e:
        raise ValueError(f"Configuration validation failed: {e}") from e
