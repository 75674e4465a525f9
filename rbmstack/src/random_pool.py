"""Pool of independent random generator states shared by sampling calls."""
import logging
import time
from typing import Optional

import numpy as np
import torch

from rbmstack.constants import TILE_SIZE
from .exceptions import ResourceExhaustion

logger = logging.getLogger(__name__)

_default_pool = None


def _slot_seed(seed: int, slot: int) -> int:
    """Derive a 63-bit generator seed from the pool seed and a slot index."""
    state = np.random.SeedSequence([seed, slot]).generate_state(2, dtype=np.uint32)
    return (int(state[0]) << 31) ^ int(state[1])


class RandomStatePool:
    """
    Square grid of torch generators addressed by intra-tile coordinate.

    The sampler groups matrix cells into ``tile_size x tile_size`` tiles and
    every cell reads from the slot at its position inside its tile, so cells
    in different tiles that share a coordinate draw from the same generator.
    A smaller pool means more sharing.

    Attributes:
        tile_size: Edge length of a tile, the pool holds tile_size**2 slots
        seed: Seed every slot was derived from
        device: Device the generators produce values on
    """

    def __init__(self, tile_size: int = TILE_SIZE, seed: Optional[int] = None, device=None) -> None:
        """Seed tile_size**2 generators from (seed, slot index)."""
        if tile_size < 1:
            raise ValueError(f"tile_size must be positive, got {tile_size}")
        self.tile_size = int(tile_size)
        self.seed = time.time_ns() if seed is None else int(seed)
        self.device = torch.device(device if device is not None else "cpu")
        try:
            self._generators = []
            for slot in range(self.n_slots):
                generator = torch.Generator(device=self.device)
                generator.manual_seed(_slot_seed(self.seed, slot))
                self._generators.append(generator)
        except torch.cuda.OutOfMemoryError as e:
            raise ResourceExhaustion(f"Could not allocate random state pool on {self.device}") from e
        logger.debug(f"Random state pool ready: {self.n_slots} slots, seed={self.seed}, device={self.device}")

    @property
    def n_slots(self) -> int:
        return self.tile_size * self.tile_size

    def generator(self, row: int, col: int) -> torch.Generator:
        """Return the generator for intra-tile coordinate (row, col)."""
        return self._generators[row * self.tile_size + col]

    def __len__(self) -> int:
        return self.n_slots


def acquire(seed: Optional[int] = None, pool_size: int = TILE_SIZE, device=None) -> RandomStatePool:
    """Return the process-wide pool, creating it on the first call only."""
    global _default_pool
    if _default_pool is None:
        _default_pool = RandomStatePool(tile_size=pool_size, seed=seed, device=device)
        logger.info(f"Created process random state pool (seed={_default_pool.seed}, tile_size={pool_size})")
    return _default_pool
