from enum import Enum, IntEnum


class Severity(IntEnum):
    """Channel classification, ordered by urgency."""
    NORMAL = 0
    WARNING = 1
    DANGER = 2

    @property
    def label(self) -> str:
        return self.name


class STKind(Enum):
    ELEVATION = "elevation"
    DEPRESSION = "depression"


class STState(Enum):
    NORMAL = "Normal"
    ELEVATION = "Elevation"
    DEPRESSION = "Depression"


class SignalQuality(Enum):
    """Noise-quality grade of the recent signal."""
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"
    UNKNOWN = "—"


class DriftState(Enum):
    IDLE = "Idle"
    DRIFTING = "Drifting"


class AlertPolicy(Enum):
    """REPEAT re-alerts every evaluation; EDGE only when a condition starts."""
    REPEAT = "repeat"
    EDGE = "edge"


class EventType(Enum):
    SYSTEM = "SYSTEM"
    ALERT = "ALERT"
    ST_ABNORMAL = "ST_ABNORMAL"
    RHYTHM_ABNORMAL = "RHYTHM_ABNORMAL"
    DRIFT_EVENT = "DRIFT_EVENT"
    USER_ACTION = "USER_ACTION"
