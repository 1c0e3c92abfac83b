"""
Hearthlog - live game state reconstruction from Hearthstone's Unity logs.

The package tails the per-channel log files Hearthstone writes (Power.log,
LoadingScreen.log, ...), classifies every line into a channel, and replays
the lines in order into a GameSession aggregate that downstream consumers
can read between batches.

Basic Usage:
    >>> from hearthlog.config.config_manager import TrackerConfig
    >>> from hearthlog.core.lifecycle import PipelineController
    >>> controller = PipelineController(TrackerConfig.load())
    >>> await controller.start()
"""

__version__ = "0.1.0"
