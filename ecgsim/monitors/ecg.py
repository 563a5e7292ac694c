import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from ecgsim.core.constants import R_WAVE_PHASE, DriftTuning, NoiseTuning
from ecgsim.core.enums import DriftState
from ecgsim.core.state import MonitorSettings
from ecgsim.core.utils import clamp

# Waves: (center_phase, width, amplitude)
# R sits at R_WAVE_PHASE so the beat detector can anchor on it.
ECG_WAVES = (
    (0.18, 0.025, 0.10),          # P wave
    (0.38, 0.010, -0.15),         # Q wave
    (R_WAVE_PHASE, 0.015, 1.10),  # R wave
    (0.43, 0.012, -0.25),         # S wave
    (0.68, 0.050, 0.30),          # T wave
)


def ecg_template(phase):
    """
    Instantaneous PQRST amplitude at a cardiac-cycle phase in [0, 1).

    Sum of Gaussian bumps; accepts a float or a numpy array.
    """
    phase_arr = np.asarray(phase, dtype=float)
    value = np.zeros_like(phase_arr)
    for center, width, amplitude in ECG_WAVES:
        value = value + amplitude * np.exp(-0.5 * ((phase_arr - center) / width) ** 2)
    if np.ndim(phase) == 0:
        return float(value)
    return value


def baseline_wander(t: float, tuning: NoiseTuning = NoiseTuning()) -> float:
    """Slow respiratory-like baseline sinusoid at elapsed time t (s)."""
    return tuning.wander_amplitude * math.sin(2.0 * math.pi * tuning.wander_freq_hz * t)


@dataclass(frozen=True)
class GeneratedSample:
    value: float
    r_wave: bool = False
    lead_off: bool = False
    drift_edge: Optional[str] = None  # "STARTED" / "ENDED"
    phase_shift: float = 0.0


class ECGGenerator:
    """
    Phase-oscillator ECG source.

    Advances a wrapping cardiac phase at a rate set by the target heart
    rate, modulated by a bounded random-walk variability term and an
    intermittent drift perturbation. Flags the sample on which the phase
    crosses the R-wave anchor.
    """
    def __init__(
        self,
        rng: Optional[np.random.Generator] = None,
        drift: DriftTuning = DriftTuning(),
        noise: NoiseTuning = NoiseTuning(),
    ):
        self.rng = rng if rng is not None else np.random.default_rng()
        self.drift = drift
        self.noise = noise
        self.reset()

    def reset(self):
        self.phase = 0.0
        self.time = 0.0
        self.hrv_state = 0.0
        self.drift_state = DriftState.IDLE

    def _update_hrv(self) -> float:
        self.hrv_state = clamp(
            self.hrv_state + self.noise.hrv_step * self.rng.standard_normal(), -1.0, 1.0
        )
        return self.hrv_state

    def frequency(self, settings: MonitorSettings) -> float:
        """Instantaneous beat frequency (Hz); also steps the variability walk."""
        base_f = max(0.0, settings.hr) / 60.0
        factor = 1.0 + settings.hrv * self._update_hrv() * self.noise.hrv_modulation
        return max(0.0, base_f * factor)

    def _step_drift(self, settings: MonitorSettings) -> Tuple[Optional[str], float]:
        """
        Apply an intermittent negative phase jump.
        Returns (edge, shift); edge is "STARTED"/"ENDED" only when the
        drift state flips.
        """
        if settings.drift_enabled and self.rng.random() < self.drift.start_probability:
            span = self.drift.jump_max - self.drift.jump_min
            shift = -(self.drift.jump_min + self.rng.random() * span)
            self.phase = (self.phase + shift) % 1.0
            if self.drift_state == DriftState.IDLE:
                self.drift_state = DriftState.DRIFTING
                return "STARTED", shift
            return None, shift
        if self.drift_state == DriftState.DRIFTING and self.rng.random() < self.drift.end_probability:
            self.drift_state = DriftState.IDLE
            return "ENDED", 0.0
        return None, 0.0

    def step(self, settings: MonitorSettings, dt: float) -> GeneratedSample:
        """Produce the next sample and advance time by dt."""
        # Lead off: flat line with a little noise, no beats
        if settings.lead_off:
            value = settings.noise * self.rng.standard_normal() * self.noise.lead_off_noise_scale
            self.time += dt
            return GeneratedSample(value, lead_off=True)

        freq = self.frequency(settings)
        edge, shift = self._step_drift(settings)

        last_phase = self.phase
        self.phase = (self.phase + freq * dt) % 1.0
        r_wave = last_phase < R_WAVE_PHASE <= self.phase

        value = ecg_template(self.phase)
        value += baseline_wander(self.time, self.noise)
        value += settings.noise * self.rng.standard_normal() * self.noise.signal_noise_scale
        self.time += dt
        return GeneratedSample(value, r_wave=r_wave, drift_edge=edge, phase_shift=shift)
