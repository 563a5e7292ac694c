
import numpy as np
import pytest

from ecgsim.core.enums import AlertPolicy, EventType, Severity
from ecgsim.core.state import MonitorSettings, SettingsHolder, SimulationConfig, settings_from_mapping
from ecgsim.core.engine import SimulationEngine


class TestSettings:

    def test_defaults_match_control_panel(self):
        s = MonitorSettings()
        assert (s.hr, s.hrv, s.noise, s.amp, s.window_sec) == (70.0, 0.05, 0.01, 1.0, 6.0)
        assert (s.brady, s.tachy, s.cv_threshold, s.st_threshold) == (50.0, 120.0, 0.12, 0.12)
        assert s.noise_sensitivity == 0.60
        assert not (s.running or s.drift_enabled or s.lead_off)

    def test_holder_stages_until_commit(self):
        holder = SettingsHolder()
        holder.update(hr=90)
        assert holder.has_pending
        assert holder.current.hr == 70.0
        assert holder.commit().hr == 90
        assert not holder.has_pending

    def test_unknown_setting_rejected(self):
        with pytest.raises(ValueError):
            SettingsHolder().update(heart_rate=90)

    def test_from_mapping_ignores_unknown_keys(self):
        s = settings_from_mapping({"hr": 55, "colour": "red"})
        assert s.hr == 55
        assert s.noise == MonitorSettings().noise

    def test_frame_cadence(self):
        config = SimulationConfig()
        assert config.samples_per_frame == 3
        assert config.frames_per_evaluation == 12


class TestEngine:

    def test_paused_engine_generates_nothing(self, engine_factory):
        engine = engine_factory()
        for _ in range(30):
            engine.tick()
        assert engine.frame_count == 30
        assert all(ch.sample_index == 0 for ch in engine.channels)

    def test_tick_generates_batch_per_channel(self, engine_factory):
        engine = engine_factory(start=True)
        engine.tick()
        assert [ch.sample_index for ch in engine.channels] == [3, 3]

    def test_setting_changes_apply_on_next_tick(self, engine_factory):
        engine = engine_factory(start=True)
        engine.update_settings(hr=40)
        assert engine.settings.current.hr == 70.0
        applied = engine.tick()
        assert applied.hr == 40
        assert engine.settings.current.hr == 40

    def test_rhythm_evaluated_on_coarse_cadence(self, engine_factory):
        engine = engine_factory(start=True)
        for _ in range(11):
            engine.tick()
        assert all(ch.last_report is None for ch in engine.channels)
        engine.tick()
        assert all(ch.last_report is not None for ch in engine.channels)

    def test_run_for_generates_requested_signal(self, engine_factory):
        engine = engine_factory(start=True)
        engine.run_for(10.0)
        assert all(ch.sample_index >= 2000 for ch in engine.channels)
        assert all(ch.sample_index - 2000 < 3 for ch in engine.channels)

    def test_pause_keeps_state(self, engine_factory):
        engine = engine_factory(start=True)
        engine.run_for(2.0)
        counts = [ch.sample_index for ch in engine.channels]
        engine.stop()
        engine.run_for(2.0)
        assert [ch.sample_index for ch in engine.channels] == counts

        engine.toggle_running()
        assert engine.running
        engine.tick()
        assert [ch.sample_index for ch in engine.channels] == [c + 3 for c in counts]

    def test_lead_off_forces_danger_everywhere(self, engine_factory):
        engine = engine_factory(start=True)
        engine.run_for(4.0)
        engine.set_lead_off(True)
        peaks = [ch.r_peaks for ch in engine.channels]
        engine.run_for(2.0)
        assert [ch.r_peaks for ch in engine.channels] == peaks
        assert engine.severities == (Severity.DANGER, Severity.DANGER)
        assert engine.worst_severity == Severity.DANGER

    def test_bradycardia_shared_across_channels(self, engine_factory):
        engine = engine_factory(start=True, hr=40)
        engine.run_for(12.0)
        assert all(s == Severity.WARNING for s in engine.severities)
        channels_alerted = {a.channel_id for a in engine.combined_alerts}
        assert channels_alerted == {0, 1}

    def test_reset_clears_everything(self, engine_factory):
        engine = engine_factory(start=True, hr=40)
        engine.run_for(12.0)
        engine.mark()
        engine.reset()
        assert engine.frame_count == 0
        assert engine.combined_alerts == ()
        for ch in engine.channels:
            assert ch.sample_index == 0
            assert ch.r_peaks == ()
            assert ch.user_marks == ()
            assert ch.severity == Severity.NORMAL
        assert engine.event_log.records[-1].data["action"] == "RESET"

    def test_mark_every_channel(self, engine_factory):
        engine = engine_factory(start=True)
        engine.tick()
        assert engine.mark() == [3, 3]
        assert all(ch.user_marks[-1] == 3 for ch in engine.channels)

    def test_get_channel_bounds(self, engine_factory):
        engine = engine_factory()
        assert engine.get_channel(1).channel_id == 1
        with pytest.raises(IndexError):
            engine.get_channel(2)

    def test_seeded_engines_repeat(self):
        config = SimulationConfig(channels=2, rng_seed=7)
        a = SimulationEngine(config, MonitorSettings(running=True))
        b = SimulationEngine(config, MonitorSettings(running=True))
        a.run_for(1.0)
        b.run_for(1.0)
        for ca, cb in zip(a.channels, b.channels):
            np.testing.assert_array_equal(ca.buffer.tail(200), cb.buffer.tail(200))
        # Channels get independent noise streams
        assert not np.array_equal(a.channels[0].buffer.tail(200), a.channels[1].buffer.tail(200))

    def test_session_and_control_events_logged(self, engine_factory):
        engine = engine_factory()
        assert engine.event_log.records[0].data["action"] == "SESSION_START"
        engine.start()
        engine.set_drift(True)
        system = engine.event_log.of_type(EventType.SYSTEM)
        assert system[-1].data["driftMode"] is True
        assert system[-2].data["action"] == "START"

    def test_edge_policy_quiets_repeat_alerts(self):
        config = SimulationConfig(channels=1, rng_seed=3, alert_policy=AlertPolicy.EDGE)
        engine = SimulationEngine(config, MonitorSettings(hr=40, running=True))
        engine.run_for(20.0)
        brady = [a for a in engine.combined_alerts if "Bradycardia" in a.message]
        assert len(brady) == 1
