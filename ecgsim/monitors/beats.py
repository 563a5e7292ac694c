import logging
from collections import deque
from typing import List, Tuple

from ecgsim.core.buffers import SampleBuffer
from ecgsim.core.constants import (
    SAMPLE_RATE_HZ,
    R_PEAK_HISTORY,
    RR_HISTORY,
    ST_EVENT_HISTORY,
    ST_BASELINE_OFFSET_SEC,
    ST_MEASURE_OFFSET_SEC,
)
from ecgsim.core.enums import STKind
from ecgsim.core.state import MonitorSettings, STEvent

logger = logging.getLogger(__name__)


class BeatAnalyzer:
    """
    Beat detector and ST evaluator for one channel.

    R peaks arrive from the generator as absolute sample indices. Each beat
    is measured once its ST reference sample has been buffered: the
    deviation between the sample 80 ms after the peak and the baseline
    200 ms before it classifies the ST segment.
    """
    def __init__(self, sample_rate: int = SAMPLE_RATE_HZ):
        self.sample_rate = sample_rate
        self.baseline_offset = int(ST_BASELINE_OFFSET_SEC * sample_rate)
        self.st_offset = int(ST_MEASURE_OFFSET_SEC * sample_rate)

        self.r_peaks = deque(maxlen=R_PEAK_HISTORY)
        self.rr_intervals = deque(maxlen=RR_HISTORY)
        self.st_events = deque(maxlen=ST_EVENT_HISTORY)

        # Beats waiting for their ST reference sample.
        self._pending = deque()

    def reset(self):
        self.r_peaks.clear()
        self.rr_intervals.clear()
        self.st_events.clear()
        self._pending.clear()

    @property
    def pending(self) -> Tuple[int, ...]:
        return tuple(self._pending)

    def on_r_peak(self, index: int):
        """Record an R peak and queue it for ST evaluation."""
        if self.r_peaks:
            self.rr_intervals.append((index - self.r_peaks[-1]) / self.sample_rate)
        self.r_peaks.append(index)
        self._pending.append(index)

    def discard_pending(self):
        """Drop beats that can no longer be measured (e.g. lead off)."""
        self._pending.clear()

    def evaluate_pending(self, buffer: SampleBuffer, settings: MonitorSettings) -> List[STEvent]:
        """
        Measure every queued beat whose ST reference sample is buffered.

        Beats whose baseline sample has already been evicted are dropped
        without an event.
        """
        events = []
        while self._pending and self._pending[0] + self.st_offset < buffer.end_index:
            r_idx = self._pending.popleft()
            baseline = buffer.get(r_idx - self.baseline_offset)
            st_value = buffer.get(r_idx + self.st_offset)
            if baseline is None or st_value is None:
                continue

            deviation = (st_value - baseline) * settings.amp
            logger.debug("Beat %d ST deviation %.3f", r_idx, deviation)
            if deviation > settings.st_threshold:
                kind = STKind.ELEVATION
            elif deviation < -settings.st_threshold:
                kind = STKind.DEPRESSION
            else:
                continue

            event = STEvent(r_idx, kind, deviation)
            self.st_events.append(event)
            events.append(event)
        return events
