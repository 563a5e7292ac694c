import logging
import math
from dataclasses import asdict
from typing import List, Optional, Tuple

import numpy as np

from .channel import ECGChannel
from .enums import EventType, Severity
from .event_log import EventLog
from .state import Alert, MonitorSettings, SettingsHolder, SimulationConfig
from ecgsim.monitors.alarms import AlertSink

logger = logging.getLogger(__name__)


class SimulationEngine:
    """
    Multi-channel orchestrator.

    One call to tick() is one display frame: pending setting changes are
    committed, every channel generates samples_per_frame samples (when
    running), and every frames_per_evaluation frames each channel's rhythm
    is re-evaluated. Evaluation continues while paused.

    State management:
    - `self.settings` holds the shared snapshot; update_settings() stages
      changes that take effect on the next tick.
    - Each channel owns its buffer and histories; only `alerts` and
      `event_log` are shared.
    """
    def __init__(self, config: Optional[SimulationConfig] = None,
                 settings: Optional[MonitorSettings] = None):
        self.config = config or SimulationConfig()
        self.settings = SettingsHolder(settings)
        self.alerts = AlertSink()
        self.event_log = EventLog()
        self.frame_count = 0

        seeds = np.random.SeedSequence(self.config.rng_seed).spawn(self.config.channels)
        self.channels: List[ECGChannel] = [
            ECGChannel(
                channel_id=i,
                sample_rate=self.config.sample_rate,
                rng=np.random.default_rng(seed),
                alerts=self.alerts,
                event_log=self.event_log,
                alert_policy=self.config.alert_policy,
            )
            for i, seed in enumerate(seeds)
        ]

        self.event_log.log(None, EventType.SYSTEM, action="SESSION_START",
                           configuration=asdict(self.settings.current))

    # Control surface

    @property
    def running(self) -> bool:
        return self.settings.current.running

    def get_channel(self, index: int) -> ECGChannel:
        if not 0 <= index < len(self.channels):
            raise IndexError(f"No channel {index} (have {len(self.channels)})")
        return self.channels[index]

    def update_settings(self, **changes):
        """Stage setting changes; applied at the start of the next tick."""
        self.settings.update(**changes)

    def start(self):
        """Start sample generation."""
        self._set_flags(running=True)

    def stop(self):
        """Pause sample generation without tearing down state."""
        self._set_flags(running=False)

    def toggle_running(self):
        self.settings.commit()
        self._set_flags(running=not self.running)

    def set_drift(self, enabled: bool):
        self._set_flags(drift_enabled=bool(enabled))

    def set_lead_off(self, enabled: bool):
        self._set_flags(lead_off=bool(enabled))

    def _set_flags(self, **flags):
        self.settings.update(**flags)
        current = self.settings.commit()
        action = "START" if current.running else "PAUSE"
        logger.info("Simulation %s (drift=%s, lead_off=%s)", action.lower(),
                    current.drift_enabled, current.lead_off)
        self.event_log.log(None, EventType.SYSTEM, action=action,
                           driftMode=current.drift_enabled, leadOffMode=current.lead_off,
                           configuration=asdict(current))

    # Frame loop

    def tick(self) -> MonitorSettings:
        """Advance one display frame."""
        settings = self.settings.commit()
        if settings.running:
            batch = self.config.samples_per_frame
            for channel in self.channels:
                channel.generate(batch, settings)

        self.frame_count += 1
        if self.frame_count % self.config.frames_per_evaluation == 0:
            self.evaluate(settings)
        return settings

    def evaluate(self, settings: Optional[MonitorSettings] = None):
        """Re-evaluate every channel's rhythm now."""
        settings = settings or self.settings.current
        return [channel.evaluate_rhythm(settings) for channel in self.channels]

    def run_for(self, seconds: float) -> int:
        """Tick enough frames to generate `seconds` of signal (when running)."""
        frames = math.ceil(seconds * self.config.sample_rate / self.config.samples_per_frame)
        for _ in range(frames):
            self.tick()
        return frames

    # Lifecycle

    def reset(self):
        """Reset every channel and clear the shared alert history."""
        self.settings.commit()
        for channel in self.channels:
            channel.reset()
        self.alerts.clear()
        self.frame_count = 0
        logger.info("Simulation reset")
        self.event_log.log(None, EventType.SYSTEM, action="RESET",
                           configuration=asdict(self.settings.current))

    def mark(self) -> List[int]:
        """Mark the current sample on every channel."""
        return [channel.mark() for channel in self.channels]

    # Read-only summaries

    @property
    def severities(self) -> Tuple[Severity, ...]:
        return tuple(channel.severity for channel in self.channels)

    @property
    def worst_severity(self) -> Severity:
        return max(self.severities, default=Severity.NORMAL)

    @property
    def combined_alerts(self) -> Tuple[Alert, ...]:
        return self.alerts.alerts
