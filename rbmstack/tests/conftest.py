"""Shared fixtures for the pretraining tests."""
import pytest
import torch

from rbmstack.src import random_pool
from rbmstack.src.random_pool import RandomStatePool


@pytest.fixture(autouse=True)
def fresh_process_pool(monkeypatch):
    """Give every test its own lazily created process pool."""
    monkeypatch.setattr(random_pool, "_default_pool", None)


@pytest.fixture
def small_pool():
    """Seeded 4x4 pool, small enough to keep sampling fast."""
    return RandomStatePool(tile_size=4, seed=7)


@pytest.fixture
def binary_data():
    """4 samples x 5 binary features."""
    return torch.tensor([
        [1., 0., 1., 0., 1.],
        [0., 1., 0., 1., 0.],
        [1., 1., 0., 0., 1.],
        [0., 0., 1., 1., 0.],
    ])
