from typing import Iterable, List, Sequence, Tuple

import numpy as np

from ecgsim.core.constants import (
    SAMPLE_RATE_HZ,
    RHYTHM_WINDOW_SEC,
    MIN_RR_FOR_CV,
    MIN_RR_FOR_IRREGULAR,
    QUALITY_MIN_SAMPLES,
    QUALITY_SMOOTHING_WIDTH,
    QUALITY_SCORE_MAX,
    QUALITY_POOR_FACTOR,
    QUALITY_EPSILON,
)
from ecgsim.core.enums import AlertPolicy, Severity, STKind, STState, SignalQuality
from ecgsim.core.state import MonitorSettings, QualityEstimate, RhythmReport, STEvent
from ecgsim.core.utils import clamp, mean, std


def estimate_signal_quality(samples: Sequence[float], sensitivity: float,
                            width: int = QUALITY_SMOOTHING_WIDTH) -> QualityEstimate:
    """
    Grade recent signal noise.

    The residual after a centered moving average (edges averaged over the
    samples available) is compared to the raw spread:
    score = clamp(std(residual) / (std(raw) + eps), 0, 2).
    """
    seg = np.asarray(samples, dtype=float)
    n = seg.size
    if n < QUALITY_MIN_SAMPLES:
        return QualityEstimate(SignalQuality.UNKNOWN, 0.0)

    kernel = np.ones(width)
    smooth = np.convolve(seg, kernel, mode="same") / np.convolve(np.ones(n), kernel, mode="same")
    resid = seg - smooth
    score = clamp(float(np.std(resid)) / (float(np.std(seg)) + QUALITY_EPSILON), 0.0, QUALITY_SCORE_MAX)

    if score > sensitivity * QUALITY_POOR_FACTOR:
        quality = SignalQuality.POOR
    elif score > sensitivity:
        quality = SignalQuality.FAIR
    else:
        quality = SignalQuality.GOOD
    return QualityEstimate(quality, score)


def rr_deltas(peaks: Iterable[int], sample_rate: int) -> List[float]:
    """Consecutive R-R intervals (s) from ordered peak indices."""
    peaks = list(peaks)
    return [(b - a) / sample_rate for a, b in zip(peaks, peaks[1:])]


def st_state_of(events: Iterable[STEvent]) -> STState:
    kinds = {e.kind for e in events}
    if STKind.ELEVATION in kinds:
        return STState.ELEVATION
    if STKind.DEPRESSION in kinds:
        return STState.DEPRESSION
    return STState.NORMAL


class RhythmEvaluator:
    """
    Periodic rate / regularity / ST / quality classifier for one channel.

    Variability is measured as the coefficient of variation of the R-R
    intervals in the lookback window.
    """
    def __init__(self, sample_rate: int = SAMPLE_RATE_HZ,
                 window_sec: float = RHYTHM_WINDOW_SEC,
                 policy: AlertPolicy = AlertPolicy.REPEAT):
        self.sample_rate = sample_rate
        self.window_samples = int(window_sec * sample_rate)
        self.policy = policy
        self._active = {"brady": False, "tachy": False, "irregular": False}

    def reset(self):
        for key in self._active:
            self._active[key] = False

    def evaluate(
        self,
        sample_index: int,
        r_peaks: Iterable[int],
        st_events: Iterable[STEvent],
        recent_samples: Sequence[float],
        settings: MonitorSettings,
        time: float = 0.0,
    ) -> Tuple[RhythmReport, List[Tuple[str, Severity]]]:
        """
        Classify the lookback window ending at sample_index.

        Returns the report and the alerts (message, severity) it raises.
        """
        min_idx = sample_index - self.window_samples
        recent_rr = rr_deltas((idx for idx in r_peaks if idx >= min_idx), self.sample_rate)

        mean_rr = mean(recent_rr)
        avg_hr = 60.0 / mean_rr if mean_rr > 0 else 0.0
        cv = std(recent_rr) / mean_rr if (mean_rr > 0 and len(recent_rr) >= MIN_RR_FOR_CV) else 0.0

        brady = 0 < avg_hr < settings.brady
        tachy = avg_hr > 0 and avg_hr > settings.tachy
        irregular = cv > settings.cv_threshold and len(recent_rr) >= MIN_RR_FOR_IRREGULAR

        st_state = st_state_of(e for e in st_events if e.index >= min_idx)
        quality = estimate_signal_quality(recent_samples, settings.noise_sensitivity)

        severity = Severity.NORMAL
        if st_state != STState.NORMAL or irregular:
            severity = Severity.DANGER
        elif brady or tachy:
            severity = Severity.WARNING
        if settings.lead_off:
            severity = max(severity, Severity.DANGER)

        alerts = []
        if self._should_alert("brady", brady):
            alerts.append((f"Bradycardia (avg ~{avg_hr:.0f} bpm)", Severity.WARNING))
        if self._should_alert("tachy", tachy):
            alerts.append((f"Tachycardia (avg ~{avg_hr:.0f} bpm)", Severity.WARNING))
        if self._should_alert("irregular", irregular):
            alerts.append((f"Irregular rhythm (AFib-suspect: CV {cv:.2f})", Severity.DANGER))

        report = RhythmReport(
            time=time,
            avg_hr=avg_hr,
            cv=cv,
            rr_count=len(recent_rr),
            bradycardia=brady,
            tachycardia=tachy,
            irregular=irregular,
            st_state=st_state,
            quality=quality,
            lead_off=settings.lead_off,
            severity=severity,
        )
        return report, alerts

    def _should_alert(self, key: str, condition: bool) -> bool:
        was_active = self._active[key]
        self._active[key] = condition
        if not condition:
            return False
        if self.policy == AlertPolicy.EDGE:
            return not was_active
        return True
