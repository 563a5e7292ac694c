from pathlib import Path
import sys

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import numpy as np
import pytest

from ecgsim.core.channel import ECGChannel
from ecgsim.core.engine import SimulationEngine
from ecgsim.core.event_log import EventLog
from ecgsim.core.state import MonitorSettings, SimulationConfig


@pytest.fixture
def settings():
    """Default controls with generation running."""
    return MonitorSettings(running=True)


@pytest.fixture
def quiet_settings():
    """Running, noise-free settings at 70 bpm."""
    return MonitorSettings(hr=70.0, noise=0.0, running=True)


@pytest.fixture
def channel():
    """Single seeded channel with its own event log."""
    return ECGChannel(channel_id=0, rng=np.random.default_rng(1234), event_log=EventLog())


@pytest.fixture
def engine_factory():
    """Build seeded engines with optional setting overrides."""
    def _make(channels=2, seed=42, start=False, **overrides):
        config = SimulationConfig(channels=channels, rng_seed=seed)
        engine = SimulationEngine(config, MonitorSettings(**overrides))
        if start:
            engine.start()
        return engine

    return _make


@pytest.fixture
def advance_channel():
    """Generate `seconds` of signal on a channel with fixed settings."""
    def _advance(channel, seconds, settings):
        channel.generate(int(round(seconds * channel.sample_rate)), settings)
        return channel.sample_index

    return _advance
