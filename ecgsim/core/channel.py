import logging
from collections import deque
from typing import Iterator, Optional, Tuple

import numpy as np

from .buffers import SampleBuffer
from .constants import (
    SAMPLE_RATE_HZ,
    MAX_BUFFER_SEC,
    QUALITY_WINDOW_SEC,
    USER_MARK_HISTORY,
    MIN_WINDOW_SAMPLES,
    DriftTuning,
    NoiseTuning,
)
from .enums import AlertPolicy, DriftState, EventType, Severity, STKind
from .event_log import EventLog
from .state import Alert, MonitorSettings, RhythmReport, STEvent
from ecgsim.monitors.alarms import AlertSink
from ecgsim.monitors.beats import BeatAnalyzer
from ecgsim.monitors.ecg import ECGGenerator, GeneratedSample
from ecgsim.monitors.rhythm import RhythmEvaluator

logger = logging.getLogger(__name__)


class ECGChannel:
    """
    One independent generation-and-analysis unit.

    Owns its oscillator, sample buffer and rolling histories exclusively;
    shared settings arrive as an immutable snapshot on every call.

    Invariant: buffer_start_index + len(buffer) == sample_index.
    """
    def __init__(
        self,
        channel_id: int = 0,
        sample_rate: int = SAMPLE_RATE_HZ,
        rng: Optional[np.random.Generator] = None,
        alerts: Optional[AlertSink] = None,
        event_log: Optional[EventLog] = None,
        alert_policy: AlertPolicy = AlertPolicy.REPEAT,
        drift: DriftTuning = DriftTuning(),
        noise: NoiseTuning = NoiseTuning(),
    ):
        self.channel_id = channel_id
        self.sample_rate = sample_rate
        self.dt = 1.0 / sample_rate

        self.alert_sink = alerts if alerts is not None else AlertSink()
        self.event_log = event_log

        self.generator = ECGGenerator(rng=rng, drift=drift, noise=noise)
        self.buffer = SampleBuffer(MAX_BUFFER_SEC * sample_rate)
        self.beats = BeatAnalyzer(sample_rate)
        self.rhythm = RhythmEvaluator(sample_rate, policy=alert_policy)

        self._sample_index = 0
        self._user_marks = deque(maxlen=USER_MARK_HISTORY)
        self.severity = Severity.NORMAL
        self.last_report: Optional[RhythmReport] = None

    # State views

    @property
    def name(self) -> str:
        return f"ECG {self.channel_id + 1}"

    @property
    def sample_index(self) -> int:
        return self._sample_index

    @property
    def buffer_start_index(self) -> int:
        return self.buffer.start_index

    @property
    def time(self) -> float:
        return self.generator.time

    @property
    def phase(self) -> float:
        return self.generator.phase

    @property
    def hrv_state(self) -> float:
        return self.generator.hrv_state

    @property
    def drift_state(self) -> DriftState:
        return self.generator.drift_state

    @property
    def drifting(self) -> bool:
        return self.generator.drift_state == DriftState.DRIFTING

    @property
    def r_peaks(self) -> Tuple[int, ...]:
        return tuple(self.beats.r_peaks)

    @property
    def rr_intervals(self) -> Tuple[float, ...]:
        return tuple(self.beats.rr_intervals)

    @property
    def st_events(self) -> Tuple[STEvent, ...]:
        return tuple(self.beats.st_events)

    @property
    def user_marks(self) -> Tuple[int, ...]:
        return tuple(self._user_marks)

    @property
    def alerts(self) -> Tuple[Alert, ...]:
        return self.alert_sink.channel_alerts(self.channel_id)

    def sample_at(self, index: int) -> Optional[float]:
        """Buffered amplitude at an absolute index, None when unavailable."""
        return self.buffer.get(index)

    def samples(self, start: Optional[int] = None) -> Iterator[Tuple[int, float]]:
        """(absolute_index, amplitude) pairs still buffered, oldest first."""
        if start is None:
            return iter(self.buffer)
        first, values = self.buffer.since(start)
        return ((first + i, float(v)) for i, v in enumerate(values))

    def visible_window(self, settings: MonitorSettings) -> Tuple[int, np.ndarray]:
        """(start_index, samples) covering the display window."""
        count = max(MIN_WINDOW_SAMPLES, int(settings.window_sec * self.sample_rate))
        return self.buffer.since(self._sample_index - count)

    # Generation

    def step(self, settings: MonitorSettings) -> GeneratedSample:
        """Generate, buffer and analyse one sample."""
        sample = self.generator.step(settings, self.dt)
        self.buffer.append(sample.value)
        self._sample_index += 1

        if sample.drift_edge is not None:
            self._log_drift(sample, settings)

        if sample.lead_off:
            self.beats.discard_pending()
            return sample

        if sample.r_wave:
            self.beats.on_r_peak(self._sample_index - 1)
        for event in self.beats.evaluate_pending(self.buffer, settings):
            self._report_st(event)
        return sample

    def generate(self, count: int, settings: MonitorSettings) -> int:
        """Generate a batch of samples; returns the new sample index."""
        for _ in range(count):
            self.step(settings)
        return self._sample_index

    def _report_st(self, event: STEvent):
        if event.kind == STKind.ELEVATION:
            label, kind = "ST Elevation", "ST_ELEVATION"
        else:
            label, kind = "ST Depression", "ST_DEPRESSION"
        self._raise(f"{label} detected (Δ≈{event.deviation:.2f})", Severity.DANGER)
        self._log(EventType.ST_ABNORMAL, type=kind, sampleIndex=event.index,
                  simulationTime=self.time, stValue=event.deviation)

    def _log_drift(self, sample: GeneratedSample, settings: MonitorSettings):
        logger.info("%s drift %s (shift %.3f)", self.name, sample.drift_edge.lower(), sample.phase_shift)
        self._log(EventType.DRIFT_EVENT, phaseShift=sample.phase_shift, simulationTime=self.time,
                  driftEnabled=settings.drift_enabled, currentPhase=self.phase,
                  driftState=sample.drift_edge)

    # Evaluation

    def evaluate_rhythm(self, settings: MonitorSettings) -> RhythmReport:
        """Recompute severity from the current rolling windows."""
        recent = self.buffer.tail(QUALITY_WINDOW_SEC * self.sample_rate)
        report, alerts = self.rhythm.evaluate(
            self._sample_index,
            self.beats.r_peaks,
            self.beats.st_events,
            recent,
            settings,
            time=self.time,
        )
        for message, severity in alerts:
            self._raise(message, severity)

        self.severity = report.severity
        self.last_report = report

        if report.is_abnormal:
            self._log(
                EventType.RHYTHM_ABNORMAL,
                heartRate=report.avg_hr,
                hrVariability=report.cv,
                signalQuality=report.quality.quality.value,
                signalScore=report.quality.score,
                stState=report.st_state.value,
                bradycardia=report.bradycardia,
                tachycardia=report.tachycardia,
                irregularRhythm=report.irregular,
                severityLevel=int(report.severity),
                simulationTime=self.time,
            )
        return report

    # Lifecycle

    def reset(self):
        """Return to the freshly created state, keeping identity."""
        self.generator.reset()
        self.buffer.clear()
        self.beats.reset()
        self.rhythm.reset()
        self._sample_index = 0
        self._user_marks.clear()
        self.alert_sink.clear_channel(self.channel_id)
        self.severity = Severity.NORMAL
        self.last_report = None
        self._log(EventType.SYSTEM, action="RESET", simulationTime=self.time)

    def mark(self) -> int:
        """Annotate the current sample index; does not affect detection."""
        index = self._sample_index
        self._user_marks.append(index)
        self._log(EventType.USER_ACTION, action="MARK_EVENT", sampleIndex=index, simulationTime=self.time)
        return index

    # Side channels

    def _raise(self, message: str, severity: Severity):
        alert = self.alert_sink.raise_alert(self.channel_id, message, severity, self.time)
        self._log(EventType.ALERT, message=message, severity=alert.severity.label,
                  simulationTime=self.time)

    def _log(self, event_type: EventType, **data):
        if self.event_log is not None:
            self.event_log.log(self.channel_id, event_type, **data)
