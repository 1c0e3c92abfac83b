from .config_manager import TrackerConfig, CONFIG_FILE

__all__ = ["TrackerConfig", "CONFIG_FILE"]
