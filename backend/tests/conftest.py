"""
Pytest Configuration for YieldHunter Backend Tests

Run all tests: python -m pytest tests/ -v
Run API tests only: python -m pytest tests/ -v -k api
"""

import pytest
import random
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment
from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / ".env")

from fastapi.testclient import TestClient

from infrastructure.config import YieldHunterConfig
from infrastructure.errors import error_tracker
from services.runtime import Runtime
from services.demo_data import seed_demo_data


# =============================================================================
# DETERMINISTIC RANDOMNESS / LATENCY
# =============================================================================

class FixedRandom(random.Random):
    """
    random() always returns `value`, so uniform(a, b) == a + (b - a) * value.
    0.0 means every scan finds something, 0.99 means none do.
    """

    def __init__(self, value: float = 0.0, seed: int = 7):
        super().__init__(seed)
        self.value = value

    def random(self):
        return self.value


class FixedLatency:
    """Single-scan latency is constant; parallel latencies are handed out in order."""

    def __init__(self, single: float = 0.0, parallel=(0.0,)):
        self._single = single
        self._parallel = list(parallel)
        self._calls = 0

    def single(self) -> float:
        return self._single

    def parallel(self) -> float:
        value = self._parallel[self._calls % len(self._parallel)]
        self._calls += 1
        return value


# =============================================================================
# FIXTURES - Shared across all test files
# =============================================================================

@pytest.fixture
def test_config():
    """Defaults, without demo seeding"""
    config = YieldHunterConfig()
    config.features.enable_seed_demo_data = False
    return config


@pytest.fixture
def make_runtime(test_config):
    """Factory for runtimes with a fixed random draw and fixed latencies"""
    def _make(rng_value: float = 0.0, single: float = 0.0, parallel=(0.0,), config=None):
        return Runtime.build(
            config or test_config,
            rng=FixedRandom(rng_value),
            latency=FixedLatency(single=single, parallel=parallel),
        )
    return _make


@pytest.fixture
def runtime(make_runtime):
    """Empty runtime; every scan finds an opportunity, no latency"""
    return make_runtime()


@pytest.fixture
def seeded_runtime(runtime):
    seed_demo_data(runtime)
    return runtime


@pytest.fixture
def configuration(runtime):
    """Parallel-enabled configuration with room for two agents"""
    return runtime.registry.create_configuration(
        networks=["ethereum", "polygon"],
        parallel_scanning=True,
        max_agents=2,
    )


@pytest.fixture
def protocol_and_network(runtime):
    protocol = runtime.catalog.add_protocol("Aave v3", "AAVE", "low", website="https://aave.com")
    network = runtime.catalog.add_network("Ethereum", "ETH")
    return protocol, network


@pytest.fixture
def client():
    """
    API client over a seeded app. Scans never complete on their own during a
    test (60s latency); the lifespan cancels them on exit.
    """
    from main import create_app

    config = YieldHunterConfig()
    config.features.enable_seed_demo_data = True
    runtime = Runtime.build(config, rng=FixedRandom(0.0), latency=FixedLatency(single=60.0, parallel=(60.0,)))

    with TestClient(create_app(runtime=runtime)) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def clear_error_tracker():
    error_tracker.clear()
    yield
    error_tracker.clear()
