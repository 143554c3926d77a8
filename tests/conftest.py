"""
Pytest configuration and shared fixtures for oppnet tests.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture
def seconds_in_time_unit():
    """Aging time unit used across tests"""
    return 30


@pytest.fixture
def clock():
    """Simulation clock starting at t=0"""
    from oppnet.network import SimClock
    return SimClock()


@pytest.fixture
def predictability_config(seconds_in_time_unit):
    """Default predictability configuration with a time unit supplied"""
    from oppnet.config import PredictabilityConfig
    return PredictabilityConfig(seconds_in_time_unit=seconds_in_time_unit)


@pytest.fixture
def store(predictability_config, clock):
    """Predictability table owned by node 0"""
    from oppnet.predictability import PredictabilityStore
    return PredictabilityStore(0, predictability_config, clock)


@pytest.fixture
def tracker():
    """Empty contact ledger for 4 nodes"""
    from oppnet.contacts import ContactTracker
    return ContactTracker(4)


@pytest.fixture
def router_config():
    """Probabilistic router configuration"""
    from oppnet.config import create_small_test_config
    return create_small_test_config()


@pytest.fixture
def make_network(seconds_in_time_unit):
    """Factory for networks over given node locations"""
    from oppnet.config import Strategy, create_default_config
    from oppnet.network import Network

    def _make(locations, strategy=Strategy.PROBABILISTIC, **overrides):
        config = create_default_config(seconds_in_time_unit, strategy)
        for key, value in overrides.items():
            setattr(config, key, value)
        return Network(locations, config)

    return _make


@pytest.fixture
def line_locations():
    """Three nodes on a line, 10 units apart"""
    return [(0.0, 0.0), (10.0, 0.0), (20.0, 0.0)]


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests"""
    return np.random.default_rng(42)
