"""Shared fixtures for the pipeline tests."""

import datetime
from typing import List, Optional

import pytest

from hearthlog.core.domain.log_lines import RawLogLine
from hearthlog.core.events import Event, EventBus, EventType
from hearthlog.core.monitoring import PerformanceMonitor

BASE_TIME = datetime.datetime(2024, 3, 1, 21, 45, 0)


def make_raw(content: str, second: int = 0, source: Optional[str] = None) -> RawLogLine:
    """A prefixed raw line `second` seconds after BASE_TIME."""
    time = BASE_TIME + datetime.timedelta(seconds=second)
    line = f"D {time.strftime('%H:%M:%S')}.0000000 {content}"
    return RawLogLine(time=time, content=content, line=line, source=source)


class EventRecorder:
    """Collects every event emitted on a bus."""

    def __init__(self, bus: EventBus):
        self.events: List[Event] = []
        for event_type in EventType:
            bus.subscribe(event_type, self.events.append)

    def of_type(self, event_type: EventType) -> List[Event]:
        return [event for event in self.events if event.event_type is event_type]


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def recorder(event_bus):
    return EventRecorder(event_bus)


@pytest.fixture
def monitor():
    return PerformanceMonitor()
