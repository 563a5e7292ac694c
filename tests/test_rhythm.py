"""
Rhythm evaluator tests.

Tests verify:
- Rate (brady/tachy), irregularity (CV) and ST-window classification
- Severity derivation including the lead-off override
- Signal quality grading
- Repeat vs edge-triggered alert policy
"""

import numpy as np
import pytest

from ecgsim.core.enums import AlertPolicy, Severity, STKind, STState, SignalQuality
from ecgsim.core.state import MonitorSettings, STEvent
from ecgsim.monitors.rhythm import RhythmEvaluator, estimate_signal_quality, rr_deltas

SR = 200
SETTINGS = MonitorSettings()
FLAT = np.zeros(400)


def peaks_with_spacing(spacings, start=1000):
    peaks = [start]
    for s in spacings:
        peaks.append(peaks[-1] + s)
    return peaks


def evaluate(peaks, st_events=(), settings=SETTINGS, evaluator=None, sample_index=None):
    evaluator = evaluator or RhythmEvaluator(SR)
    if sample_index is None:
        sample_index = peaks[-1] + 10 if peaks else 4000
    return evaluator.evaluate(sample_index, peaks, st_events, FLAT, settings)


def test_rr_deltas():
    assert rr_deltas([0, 200, 500], 200) == [1.0, 1.5]
    assert rr_deltas([], 200) == []


def test_empty_history_is_normal():
    report, alerts = evaluate([])
    assert report.avg_hr == 0.0
    assert report.cv == 0.0
    assert report.severity == Severity.NORMAL
    assert alerts == []


def test_bradycardia_warning():
    report, alerts = evaluate(peaks_with_spacing([300] * 6))
    assert report.avg_hr == pytest.approx(40.0)
    assert report.bradycardia
    assert report.severity == Severity.WARNING
    assert alerts == [("Bradycardia (avg ~40 bpm)", Severity.WARNING)]


def test_tachycardia_warning():
    report, alerts = evaluate(peaks_with_spacing([80] * 20))
    assert report.avg_hr == pytest.approx(150.0)
    assert report.tachycardia
    assert report.severity == Severity.WARNING
    assert alerts[0][0].startswith("Tachycardia")


def test_window_only_uses_recent_peaks():
    # Slow beats more than 10 s before the evaluation point are ignored.
    slow = peaks_with_spacing([300] * 5, start=0)
    fast = peaks_with_spacing([170] * 12, start=slow[-1] + 2500)
    report, _ = evaluate(slow + fast)
    assert report.avg_hr == pytest.approx(60.0 * SR / 170)
    assert not report.bradycardia


def test_irregular_rhythm_is_danger():
    report, alerts = evaluate(peaks_with_spacing([100, 300] * 4))
    assert report.cv == pytest.approx(0.5)
    assert report.irregular
    assert report.severity == Severity.DANGER
    assert ("Irregular rhythm (AFib-suspect: CV 0.50)", Severity.DANGER) in alerts


def test_cv_needs_three_intervals():
    report, _ = evaluate(peaks_with_spacing([100, 300]))
    assert report.cv == 0.0


def test_irregular_needs_five_intervals():
    report, _ = evaluate(peaks_with_spacing([100, 300, 100, 300]))
    assert report.cv > 0.12
    assert not report.irregular


def test_st_event_in_window_is_danger():
    peaks = peaks_with_spacing([170] * 10)
    events = [STEvent(peaks[-2], STKind.DEPRESSION, -0.2), STEvent(peaks[-1], STKind.ELEVATION, 0.2)]
    report, alerts = evaluate(peaks, events)
    assert report.st_state == STState.ELEVATION
    assert report.severity == Severity.DANGER
    assert alerts == []


def test_st_event_outside_window_ignored():
    peaks = peaks_with_spacing([170] * 10, start=5000)
    report, _ = evaluate(peaks, [STEvent(100, STKind.DEPRESSION, -0.2)])
    assert report.st_state == STState.NORMAL
    assert report.severity == Severity.NORMAL


def test_lead_off_forces_danger():
    report, _ = evaluate(peaks_with_spacing([170] * 10), settings=MonitorSettings(lead_off=True))
    assert report.lead_off
    assert report.severity == Severity.DANGER


def test_thresholds_come_from_settings():
    peaks = peaks_with_spacing([170] * 10)
    report, _ = evaluate(peaks, settings=MonitorSettings(brady=80))
    assert report.bradycardia
    assert report.severity == Severity.WARNING


def test_repeat_policy_alerts_every_cycle():
    evaluator = RhythmEvaluator(SR, policy=AlertPolicy.REPEAT)
    peaks = peaks_with_spacing([300] * 6)
    for _ in range(3):
        _, alerts = evaluate(peaks, evaluator=evaluator)
        assert len(alerts) == 1


def test_edge_policy_alerts_on_onset_only():
    evaluator = RhythmEvaluator(SR, policy=AlertPolicy.EDGE)
    slow = peaks_with_spacing([300] * 6)
    normal = peaks_with_spacing([170] * 10)

    assert len(evaluate(slow, evaluator=evaluator)[1]) == 1
    assert evaluate(slow, evaluator=evaluator)[1] == []
    assert evaluate(normal, evaluator=evaluator)[1] == []
    assert len(evaluate(slow, evaluator=evaluator)[1]) == 1


class TestSignalQuality:

    def test_too_few_samples(self):
        est = estimate_signal_quality(np.zeros(5), 0.6)
        assert est.quality == SignalQuality.UNKNOWN
        assert est.score == 0.0

    def test_smooth_signal_is_good(self):
        t = np.arange(400) / SR
        est = estimate_signal_quality(np.sin(2 * np.pi * 1.0 * t), 0.6)
        assert est.quality == SignalQuality.GOOD
        assert est.score < 0.1

    def test_white_noise_is_poor(self):
        noise = np.random.default_rng(0).standard_normal(400)
        est = estimate_signal_quality(noise, 0.6)
        assert est.quality == SignalQuality.POOR
        assert 0.72 < est.score <= 2.0

    def test_sensitivity_moves_grade(self):
        noise = np.random.default_rng(0).standard_normal(400)
        assert estimate_signal_quality(noise, 1.5).quality == SignalQuality.GOOD
        score = estimate_signal_quality(noise, 1.5).score
        assert estimate_signal_quality(noise, score / 1.1).quality == SignalQuality.FAIR

    def test_flat_signal_scores_zero(self):
        est = estimate_signal_quality(np.zeros(100), 0.6)
        assert est.score == 0.0
        assert est.quality == SignalQuality.GOOD
