from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Mapping, Optional

from .constants import SAMPLE_RATE_HZ, FRAME_RATE_HZ, EVALUATIONS_PER_SEC
from .enums import AlertPolicy, Severity, STKind, STState, SignalQuality


@dataclass(frozen=True)
class MonitorSettings:
    """
    Immutable snapshot of the runtime controls shared by every channel.

    A new snapshot replaces the old one between ticks; channels never see
    a half-applied change.
    """
    hr: float = 70.0              # Target heart rate (bpm)
    hrv: float = 0.05             # Variability gain
    noise: float = 0.01           # Noise gain
    amp: float = 1.0              # Amplitude / display gain
    window_sec: float = 6.0       # Display window length (s)

    # Alarm thresholds
    brady: float = 50.0           # bpm
    tachy: float = 120.0          # bpm
    cv_threshold: float = 0.12    # R-R coefficient of variation
    st_threshold: float = 0.12    # mV (after amplitude gain)
    noise_sensitivity: float = 0.60

    # Global flags
    running: bool = False
    drift_enabled: bool = False
    lead_off: bool = False


SETTING_NAMES = tuple(f.name for f in fields(MonitorSettings))


def settings_from_mapping(data: Mapping[str, Any], base: Optional[MonitorSettings] = None) -> MonitorSettings:
    """Build settings from a JSON-style mapping. Unknown keys are ignored."""
    base = base or MonitorSettings()
    known = {k: v for k, v in data.items() if k in SETTING_NAMES}
    return replace(base, **known)


class SettingsHolder:
    """
    Process-wide holder for the current MonitorSettings.

    Control surfaces stage changes with update(); the engine commits them
    at the start of a tick so a batch always runs against one snapshot.
    """
    def __init__(self, settings: Optional[MonitorSettings] = None):
        self._current = settings or MonitorSettings()
        self._pending: Dict[str, Any] = {}

    @property
    def current(self) -> MonitorSettings:
        return self._current

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    def update(self, **changes) -> None:
        unknown = [name for name in changes if name not in SETTING_NAMES]
        if unknown:
            raise ValueError(f"Unknown setting(s): {', '.join(sorted(unknown))}")
        self._pending.update(changes)

    def commit(self) -> MonitorSettings:
        """Apply staged changes and return the snapshot now in force."""
        if self._pending:
            self._current = replace(self._current, **self._pending)
            self._pending = {}
        return self._current


@dataclass
class SimulationConfig:
    """Construction-time configuration for the simulation engine."""
    sample_rate: int = SAMPLE_RATE_HZ
    frame_rate: int = FRAME_RATE_HZ
    evaluations_per_sec: int = EVALUATIONS_PER_SEC
    channels: int = 4
    rng_seed: Optional[int] = None
    alert_policy: AlertPolicy = AlertPolicy.REPEAT

    @property
    def samples_per_frame(self) -> int:
        return max(1, round(self.sample_rate / self.frame_rate))

    @property
    def frames_per_evaluation(self) -> int:
        return max(1, self.frame_rate // self.evaluations_per_sec)


@dataclass(frozen=True)
class STEvent:
    """ST deviation found at an R peak (absolute sample index)."""
    index: int
    kind: STKind
    deviation: float = 0.0


@dataclass(frozen=True)
class Alert:
    message: str
    severity: Severity
    channel_id: int
    time: float


@dataclass(frozen=True)
class QualityEstimate:
    quality: SignalQuality = SignalQuality.UNKNOWN
    score: float = 0.0


@dataclass(frozen=True)
class RhythmReport:
    """Result of one rhythm evaluation cycle."""
    time: float = 0.0
    avg_hr: float = 0.0
    cv: float = 0.0
    rr_count: int = 0
    bradycardia: bool = False
    tachycardia: bool = False
    irregular: bool = False
    st_state: STState = STState.NORMAL
    quality: QualityEstimate = field(default_factory=QualityEstimate)
    lead_off: bool = False
    severity: Severity = Severity.NORMAL

    @property
    def is_abnormal(self) -> bool:
        return (
            self.bradycardia
            or self.tachycardia
            or self.irregular
            or self.st_state != STState.NORMAL
            or self.quality.quality == SignalQuality.POOR
        )
