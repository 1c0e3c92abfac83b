# Core pipeline components

from .channels import ChannelClassifier, ChannelFilter, DEFAULT_REGISTRY
from .choice_buffer import ChoiceBuffer
from .dispatch import LogDispatcher
from .events import Event, EventBus, EventType, get_event_bus
from .formatters import SessionFormatter
from .lifecycle import LifecycleState, PipelineController
from .log_watcher import LogWatcher

# Export performance monitoring system
from .monitoring import PerformanceMonitor, get_monitor

__all__ = [
    'ChannelClassifier',
    'ChannelFilter',
    'DEFAULT_REGISTRY',
    'ChoiceBuffer',
    'LogDispatcher',
    'Event',
    'EventBus',
    'EventType',
    'get_event_bus',
    'SessionFormatter',
    'LifecycleState',
    'PipelineController',
    'LogWatcher',
    'PerformanceMonitor',
    'get_monitor',
]
