import logging
from collections import deque
from typing import Dict, List, Optional, Tuple

from ecgsim.core.constants import CHANNEL_ALERT_HISTORY, SHARED_ALERT_HISTORY
from ecgsim.core.enums import Severity
from ecgsim.core.state import Alert

logger = logging.getLogger(__name__)


def format_alert(channel_id: int, sim_time: float, message: str) -> str:
    """Human-readable alert line, e.g. "[ECG 2] [12.4s] Bradycardia ..."."""
    return f"[ECG {channel_id + 1}] [{sim_time:.1f}s] {message}"


class AlertSink:
    """
    Bounded alert history shared by all channels.

    Each channel keeps its own short FIFO; a longer combined FIFO holds
    alerts from every channel in arrival order. Raising an alert never
    feeds back into detection.
    """
    def __init__(self, channel_history: int = CHANNEL_ALERT_HISTORY,
                 shared_history: int = SHARED_ALERT_HISTORY):
        self.channel_history = channel_history
        self._channels: Dict[int, deque] = {}
        self._shared = deque(maxlen=shared_history)
        self._listeners = []

    def subscribe(self, callback):
        """Register callback(alert) for every raised alert."""
        self._listeners.append(callback)

    def raise_alert(self, channel_id: int, message: str, severity: Severity, sim_time: float) -> Alert:
        alert = Alert(format_alert(channel_id, sim_time, message), Severity(severity), channel_id, sim_time)
        self._channel_deque(channel_id).append(alert)
        self._shared.append(alert)
        logger.warning("%s (%s)", alert.message, alert.severity.label)
        for callback in self._listeners:
            callback(alert)
        return alert

    def _channel_deque(self, channel_id: int) -> deque:
        buf = self._channels.get(channel_id)
        if buf is None:
            buf = self._channels[channel_id] = deque(maxlen=self.channel_history)
        return buf

    def channel_alerts(self, channel_id: int) -> Tuple[Alert, ...]:
        return tuple(self._channels.get(channel_id, ()))

    @property
    def alerts(self) -> Tuple[Alert, ...]:
        return tuple(self._shared)

    def latest(self, channel_id: Optional[int] = None) -> Optional[Alert]:
        source = self._shared if channel_id is None else self._channels.get(channel_id)
        if not source:
            return None
        return source[-1]

    def clear_channel(self, channel_id: int):
        """Forget a channel's own history (the shared history is kept)."""
        self._channels.pop(channel_id, None)

    def clear(self):
        self._channels.clear()
        self._shared.clear()

    def messages(self, channel_id: Optional[int] = None) -> List[str]:
        source = self.alerts if channel_id is None else self.channel_alerts(channel_id)
        return [a.message for a in source]
