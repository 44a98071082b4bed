"""Configuration management for undebug.

Loads environment variables (and a project `.env`, if present) and provides
centralized config access for the command line.
"""
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

__version__ = "1.0.0"

DEFAULT_TARGET_MODULE = "debug"
DEFAULT_BACKUP_PATH = ".undebug_backup"


class Config:
    """Configuration loader with environment variable support."""

    def __init__(self, target_module: Optional[str] = None, env_file: Optional[str | Path] = None):
        """Initialize config by loading the .env file.

        Args:
            target_module: Explicit target module; overrides the environment
            env_file: .env file to load (default: .env in the working directory)

        Raises:
            ValueError: If the resulting target module is empty
        """
        load_dotenv(Path(env_file) if env_file else Path.cwd() / ".env")
        self._target_module = target_module

        self._validate()

    def _validate(self):
        """Validate the configured values.

        Raises:
            ValueError: If the target module is empty or whitespace
        """
        if not self.target_module.strip():
            raise ValueError(
                "Target module is empty. "
                "Pass --target or set UNDEBUG_TARGET_MODULE."
            )

    @property
    def target_module(self) -> str:
        """Module whose imports, requires and uses are eliminated.

        Priority:
        1. Explicit constructor argument
        2. UNDEBUG_TARGET_MODULE environment variable
        3. "debug"
        """
        if self._target_module is not None:
            return self._target_module
        return os.getenv("UNDEBUG_TARGET_MODULE", DEFAULT_TARGET_MODULE)

    @property
    def backup_path(self) -> str:
        """Directory holding originals of rewritten files."""
        return os.getenv("UNDEBUG_BACKUP_PATH", DEFAULT_BACKUP_PATH)


# Singleton instance
_config = None


def get_config() -> Config:
    """Get or create singleton Config instance.

    Returns:
        Config instance
    """
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config():
    """Forget the singleton so the next get_config() re-reads the environment."""
    global _config
    _config = None
