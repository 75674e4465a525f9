"""Tests for the random state pool."""
import torch

from rbmstack.src import random_pool
from rbmstack.src.random_pool import RandomStatePool, acquire


class TestRandomStatePool:
    """Tests for explicitly constructed pools."""

    def test_slot_count_is_tile_size_squared(self):
        """A pool holds tile_size x tile_size generators."""
        pool = RandomStatePool(tile_size=3, seed=1)
        assert pool.n_slots == 9
        assert len(pool) == 9

    def test_same_seed_same_streams(self):
        """Slots are seeded deterministically from (seed, slot)."""
        a = RandomStatePool(tile_size=2, seed=42)
        b = RandomStatePool(tile_size=2, seed=42)
        for i in range(2):
            for j in range(2):
                x = torch.rand(5, generator=a.generator(i, j))
                y = torch.rand(5, generator=b.generator(i, j))
                assert torch.equal(x, y)

    def test_slots_are_distinct(self):
        """Different slots of one pool produce different streams."""
        pool = RandomStatePool(tile_size=2, seed=42)
        x = torch.rand(5, generator=pool.generator(0, 0))
        y = torch.rand(5, generator=pool.generator(0, 1))
        assert not torch.equal(x, y)

    def test_default_seed_from_clock(self):
        """Without a seed the pool still records the one it used."""
        pool = RandomStatePool(tile_size=1)
        assert isinstance(pool.seed, int)
        assert pool.seed > 0


class TestAcquire:
    """Tests for the lazily created process pool."""

    def test_created_once(self):
        """Later calls return the first pool and ignore their arguments."""
        first = acquire(seed=3, pool_size=2)
        second = acquire(seed=99, pool_size=8)
        assert first is second
        assert second.seed == 3
        assert second.tile_size == 2

    def test_stored_on_module(self):
        """The pool is kept for the lifetime of the process."""
        pool = acquire(seed=5, pool_size=2)
        assert random_pool._default_pool is pool
