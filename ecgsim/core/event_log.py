import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from .constants import EVENT_LOG_HISTORY
from .enums import EventType


@dataclass(frozen=True)
class EventRecord:
    """
    One significant event.

    `channel` is 1-based; 0 marks engine-wide records.
    """
    timestamp: str
    relative_time: float
    channel: int
    event_type: EventType
    data: Dict[str, Any] = field(default_factory=dict)
    session_id: int = 0


class EventLog:
    """
    Bounded in-memory record of abnormal and control events.

    Only significant events are kept (alerts, ST abnormalities, abnormal
    rhythm cycles, drift edges, user actions, system actions). Exporters
    read `records` / `summary()`; nothing here writes files.
    """
    def __init__(self, maxlen: int = EVENT_LOG_HISTORY, clock=time.time):
        self._clock = clock
        self._records = deque(maxlen=maxlen)
        self.session_start = clock()
        self.session_id = int(self.session_start * 1000)

    def __len__(self) -> int:
        return len(self._records)

    def log(self, channel_id: Optional[int], event_type: EventType, **data) -> EventRecord:
        """Append a record; channel_id is 0-based, None for engine-wide."""
        now = self._clock()
        record = EventRecord(
            timestamp=datetime.fromtimestamp(now, tz=timezone.utc).isoformat(),
            relative_time=round(now - self.session_start, 3),
            channel=0 if channel_id is None else channel_id + 1,
            event_type=event_type,
            data=data,
            session_id=self.session_id,
        )
        self._records.append(record)
        return record

    @property
    def records(self) -> Tuple[EventRecord, ...]:
        return tuple(self._records)

    def of_type(self, event_type: EventType) -> List[EventRecord]:
        return [r for r in self._records if r.event_type == event_type]

    def for_channel(self, channel_id: int) -> List[EventRecord]:
        return [r for r in self._records if r.channel == channel_id + 1]

    def summary(self) -> Dict[str, Any]:
        records = self._records
        return {
            "session_id": self.session_id,
            "total_events": len(records),
            "event_types": sorted({r.event_type.value for r in records}),
            "channels_active": sorted({r.channel for r in records}),
            "drift_event_count": sum(1 for r in records if r.event_type == EventType.DRIFT_EVENT),
            "first_event": records[0].timestamp if records else None,
            "last_event": records[-1].timestamp if records else None,
        }

    def clear(self):
        self._records.clear()
