"""
Signal and detection constants for ECGSim.

This module centralizes the magic numbers used by the generator, the beat
and rhythm evaluators and the alert history.
"""

from dataclasses import dataclass

# Sampling and display cadence.
SAMPLE_RATE_HZ = 200
FRAME_RATE_HZ = 60
EVALUATIONS_PER_SEC = 5

# Buffer sizing (seconds of history kept per channel).
MAX_BUFFER_SEC = 60

# Rolling history caps.
R_PEAK_HISTORY = 300
RR_HISTORY = 50
ST_EVENT_HISTORY = 80
USER_MARK_HISTORY = 1000

# Alert / event history caps.
CHANNEL_ALERT_HISTORY = 30
SHARED_ALERT_HISTORY = 100
EVENT_LOG_HISTORY = 10000

# Phase at which the R wave peaks inside the template.
R_WAVE_PHASE = 0.40

# ST measurement offsets relative to the R peak (seconds).
ST_BASELINE_OFFSET_SEC = 0.20
ST_MEASURE_OFFSET_SEC = 0.08

# Rhythm evaluation lookback (seconds).
RHYTHM_WINDOW_SEC = 10
MIN_RR_FOR_CV = 3
MIN_RR_FOR_IRREGULAR = 5

# Signal quality estimate.
QUALITY_WINDOW_SEC = 2
QUALITY_MIN_SAMPLES = 10
QUALITY_SMOOTHING_WIDTH = 5
QUALITY_SCORE_MAX = 2.0
QUALITY_POOR_FACTOR = 1.2
QUALITY_EPSILON = 1e-6

# Minimum number of samples shown in a display window.
MIN_WINDOW_SAMPLES = 10


@dataclass(frozen=True)
class DriftTuning:
    """Intermittent morphology drift (per-sample probabilities)."""
    start_probability: float = 0.003
    end_probability: float = 0.001
    jump_min: float = 0.15
    jump_max: float = 0.35


@dataclass(frozen=True)
class NoiseTuning:
    """Stochastic driver scaling."""
    signal_noise_scale: float = 0.1
    lead_off_noise_scale: float = 0.2

    # Heart-rate variability random walk
    hrv_step: float = 0.02
    hrv_modulation: float = 0.2

    # Baseline wander (mV, Hz)
    wander_amplitude: float = 0.03
    wander_freq_hz: float = 0.33
