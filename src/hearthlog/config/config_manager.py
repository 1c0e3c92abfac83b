#!/usr/bin/env python3
"""
Tracker configuration.

Persists the settings the pipeline needs between runs:
- Hearthstone installation directory (filled in by process discovery)
- Name of the logs directory inside the installation
- Process names used for discovery
- Poll intervals and stop timeout
- Log level

Environment variables (a .env file is loaded by the CLI) override the file:
    HEARTHLOG_GAME_DIR    installation directory
    HEARTHLOG_LOG_LEVEL   logging level name
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".hearthlog"
CONFIG_FILE = CONFIG_DIR / "config.json"

ENV_GAME_DIR = "HEARTHLOG_GAME_DIR"
ENV_LOG_LEVEL = "HEARTHLOG_LOG_LEVEL"


@dataclass
class TrackerConfig:
    """Settings for the log pipeline."""

    # Installation
    game_directory: str = ""
    logs_directory_name: str = "Logs"
    process_names: List[str] = field(default_factory=lambda: ["Hearthstone.exe", "Hearthstone"])

    # Timing (seconds)
    discovery_poll_interval: float = 0.5
    window_poll_interval: float = 0.1
    tail_poll_interval: float = 0.1
    stop_timeout: float = 5.0

    log_level: str = "INFO"

    # Where this config is saved; not persisted itself
    config_path: Optional[str] = field(default=None, repr=False, compare=False)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "TrackerConfig":
        """Load config from file (defaults if missing or unreadable), then apply env overrides."""
        path = Path(path) if path else CONFIG_FILE
        config = cls()
        if path.exists():
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                known = {f.name for f in fields(cls)} - {"config_path"}
                unknown = set(data) - known
                if unknown:
                    logger.warning(f"Ignoring unknown config keys: {sorted(unknown)}")
                config = cls(**{key: value for key, value in data.items() if key in known})
                logger.debug(f"Loaded config from {path}")
            except (OSError, ValueError, TypeError) as e:
                logger.warning(f"Failed to load config: {e}. Using defaults.")
                config = cls()
        else:
            logger.info("No config file found. Using defaults.")

        config.config_path = str(path)
        config.apply_env_overrides()
        return config

    def apply_env_overrides(self):
        game_dir = os.getenv(ENV_GAME_DIR)
        if game_dir:
            self.game_directory = game_dir
        log_level = os.getenv(ENV_LOG_LEVEL)
        if log_level:
            self.log_level = log_level.upper()

    def save(self):
        """Save config to its file."""
        path = Path(self.config_path) if self.config_path else CONFIG_FILE
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            data = asdict(self)
            data.pop("config_path")
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
            logger.debug(f"Saved config to {path}")
        except OSError as e:
            logger.error(f"Failed to save config: {e}")

    def set_game_directory(self, directory: Path):
        """Remember a resolved installation directory and persist it."""
        self.game_directory = str(directory)
        self.save()

    @property
    def game_directory_exists(self) -> bool:
        return bool(self.game_directory) and Path(self.game_directory).is_dir()

    @property
    def log_directory(self) -> Path:
        return Path(self.game_directory) / self.logs_directory_name
