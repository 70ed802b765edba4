"""Configuration management for shaken.

Loads YAML settings (settings.yaml) and environment variables (.env)
into a Config object. Property getters provide access with defaults for
the connection, the modules to load, dispatch mode, the user directory
and logging.

Key classes:
    Config: Central configuration manager.

Key functions:
    get_config: Singleton accessor for the global Config instance.
"""

import os
from pathlib import Path
from typing import List, Optional

import structlog
import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError

logger = structlog.get_logger("shaken.bot")

DISPATCH_MODES = ("sync", "workers")

DEFAULT_MODULES = ["shaken.modules.builtin:Builtin"]


class Config:
    """Central configuration manager for shaken.

    Loads settings.yaml and .env from the config directory. Environment
    variables take precedence over settings for credentials and paths.

    Args:
        config_dir: Path to the config directory. Defaults to
            ``<repo_root>/config/``.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        if config_dir is None:
            config_dir = Path(__file__).parent.parent / "config"
        self.config_dir = Path(config_dir)

        env_file = self.config_dir / ".env"
        if env_file.exists():
            load_dotenv(env_file)

        self.settings = self._load_yaml("settings.yaml")

    def _load_yaml(self, filename: str) -> dict:
        """Load a YAML configuration file."""
        filepath = self.config_dir / filename
        if filepath.exists():
            with open(filepath, "r") as f:
                return yaml.safe_load(f) or {}
        return {}

    def validate(self):
        """Validate critical settings at startup.

        Raises:
            ConfigurationError: Credentials are missing or a setting has
                an unusable value.
        """
        if not self.twitch_password:
            raise ConfigurationError(
                "SHAKEN_TWITCH_PASSWORD is not set", setting_name="twitch.password"
            )
        if not self.twitch_nick:
            raise ConfigurationError(
                "SHAKEN_TWITCH_NICK is not set", setting_name="twitch.nick"
            )
        if self.dispatch_mode not in DISPATCH_MODES:
            raise ConfigurationError(
                f"dispatch.mode must be one of {', '.join(DISPATCH_MODES)}",
                setting_name="dispatch.mode",
                value=self.dispatch_mode,
            )
        if not self.channels:
            logger.warning("no_channels_configured", msg="Bot will not join any channel")
        if self.dispatch_queue_size < 1:
            raise ConfigurationError(
                "dispatch.queue_size must be at least 1",
                setting_name="dispatch.queue_size",
                value=self.dispatch_queue_size,
            )

    # --- Twitch connection ---

    @property
    def twitch_password(self) -> str:
        """OAuth token (``oauth:...``). Env var SHAKEN_TWITCH_PASSWORD only."""
        return os.environ.get("SHAKEN_TWITCH_PASSWORD", "")

    @property
    def twitch_nick(self) -> str:
        """Bot nickname. Env var SHAKEN_TWITCH_NICK takes precedence."""
        twitch = self.settings.get("twitch", {})
        return os.environ.get("SHAKEN_TWITCH_NICK") or twitch.get("nick", "")

    @property
    def twitch_host(self) -> str:
        return self.settings.get("twitch", {}).get("host", "irc.chat.twitch.tv")

    @property
    def twitch_port(self) -> int:
        return self.settings.get("twitch", {}).get("port", 6667)

    @property
    def channels(self) -> List[str]:
        """Channels to join after registering."""
        channels = self.settings.get("twitch", {}).get("channels", [])
        if not isinstance(channels, list):
            logger.error("channels_invalid_type", type=type(channels).__name__)
            return []
        return [c if c.startswith("#") else f"#{c}" for c in channels]

    # --- Modules and dispatch ---

    @property
    def modules(self) -> List[str]:
        """Module targets to load, as ``package.module:ClassName``."""
        modules = self.settings.get("modules", DEFAULT_MODULES)
        if not isinstance(modules, list):
            logger.error("modules_invalid_type", type=type(modules).__name__)
            return list(DEFAULT_MODULES)
        return modules

    @property
    def module_settings(self) -> dict:
        """Per-module settings, keyed by module namespace."""
        return self.settings.get("module_settings", {})

    @property
    def dispatch_mode(self) -> str:
        """``sync`` (one thread, modules called in order) or ``workers``."""
        return self.settings.get("dispatch", {}).get("mode", "sync")

    @property
    def dispatch_queue_size(self) -> int:
        """Capacity of each module inbox in workers mode (default 64)."""
        return self.settings.get("dispatch", {}).get("queue_size", 64)

    @property
    def tick_interval(self) -> float:
        """Seconds between ticks in workers mode (default 1.0, 0 disables)."""
        return float(self.settings.get("dispatch", {}).get("tick_interval", 1.0))

    # --- User directory ---

    @property
    def database_path(self) -> str:
        """SQLite path for the user directory. Env var SHAKEN_DATABASE wins."""
        configured = os.environ.get("SHAKEN_DATABASE") or self.settings.get("database")
        if configured:
            if configured == ":memory:":
                return configured
            return str(Path(configured).expanduser())
        return str(Path(__file__).parent.parent / "data" / "shaken.db")

    # --- Logging ---

    @property
    def log_dir(self) -> Path:
        """Get log directory path."""
        configured = self.settings.get("log_dir")
        if configured:
            return Path(configured).expanduser()
        return Path(__file__).parent.parent / "logs"

    @property
    def logging_level(self) -> str:
        """Global log level (default INFO). Controls console and combined file."""
        log_config = self.settings.get("logging", {})
        return log_config.get("level", "INFO")

    @property
    def logging_subsystem_levels(self) -> dict:
        """Per-subsystem log level overrides. E.g. {"irc": "DEBUG"}."""
        log_config = self.settings.get("logging", {})
        return log_config.get("subsystem_levels", {})

    @property
    def logging_max_file_size_mb(self) -> int:
        """Max size per log file in MB before rotation (default 10)."""
        log_config = self.settings.get("logging", {})
        return log_config.get("max_file_size_mb", 10)

    @property
    def logging_backup_count(self) -> int:
        """Number of rotated log files to keep (default 5)."""
        log_config = self.settings.get("logging", {})
        return log_config.get("backup_count", 5)


_config: Optional[Config] = None


def get_config(config_dir: Optional[Path] = None) -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config(config_dir)
    return _config
