import random

import matplotlib

matplotlib.use("Agg")

import pytest

from agent import EpidemicAgent
from mobility import StaticMobility

WORLD = (100.0, 100.0)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def make_static():
    """Factory for a non-moving epidemic agent at (x, y)"""
    def _make(aid, x, y, comm_range=10.0, cls=EpidemicAgent, **kwargs):
        mob = StaticMobility(WORLD, 0.0, random.Random(aid), pos=(float(x), float(y), 0.0))
        return cls(aid, comm_range, mob, **kwargs)
    return _make
