"""Tile-parallel stochastic sampling of matrix cells."""
import math
from typing import Optional

import torch

from .model import RbmType, reset_bias
from .random_pool import RandomStatePool, acquire


def _draw(generator: torch.Generator, noise: str, n: int) -> torch.Tensor:
    if noise == "normal":
        return torch.randn(n, generator=generator, device=generator.device)
    return torch.rand(n, generator=generator, device=generator.device)


def tile_draws(pool: RandomStatePool, shape, noise: str) -> torch.Tensor:
    """
    Build a matrix of random draws laid out tile by tile.

    Every slot of the pool draws one value per tile, tiles taken in row-major
    order. Cell (r, c) gets the draw of slot (r % t, c % t) for the tile that
    contains it, so cells sharing an intra-tile coordinate consume successive
    values of one generator and are not independent of each other.
    """
    rows, cols = shape
    t = pool.tile_size
    tile_rows = math.ceil(rows / t)
    tile_cols = math.ceil(cols / t)
    n_tiles = tile_rows * tile_cols

    draws = torch.empty(t, t, n_tiles, device=pool.device)
    for i in range(t):
        for j in range(t):
            draws[i, j] = _draw(pool.generator(i, j), noise, n_tiles)

    # (i, j, tile_row, tile_col) -> (tile_row, i, tile_col, j) -> cells
    draws = draws.reshape(t, t, tile_rows, tile_cols).permute(2, 0, 3, 1)
    return draws.reshape(tile_rows * t, tile_cols * t)[:rows, :cols]


def sample(matrix: torch.Tensor, rbm_type: RbmType,
           pool: Optional[RandomStatePool] = None) -> torch.Tensor:
    """
    Stochastically transform every cell of matrix in place.

    Gaussian-Bernoulli adds unit normal noise, Bernoulli-Bernoulli replaces each
    cell with 1.0 when it is at least a uniform draw and 0.0 otherwise. The
    bias column is 1.0 afterwards.
    """
    if pool is None:
        pool = acquire()
    family = rbm_type.family
    draws = tile_draws(pool, matrix.shape, family.noise).to(device=matrix.device, dtype=matrix.dtype)
    family.sample_rule(matrix, draws)
    if matrix.is_cuda:
        torch.cuda.synchronize(matrix.device)
    return reset_bias(matrix)
