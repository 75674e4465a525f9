"""Dataset loading and fixed-order mini-batch partitioning."""
import logging
import os
from typing import Iterator, Optional, Tuple

import numpy as np
import pandas as pd
import torch

logger = logging.getLogger(__name__)


def batch_windows(batch_size: int, total: int) -> Iterator[Tuple[int, int]]:
    """Yield (offset, width) windows covering range(total) in order."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    for offset in range(0, total, batch_size):
        yield offset, min(batch_size, total - offset)


class Dataset:
    """Host-resident feature matrix, one sample per row."""

    def __init__(self, features) -> None:
        features = torch.as_tensor(features, dtype=torch.float32).cpu()
        if features.dim() != 2:
            raise ValueError(f"Expected a 2-D feature matrix, got shape {tuple(features.shape)}")
        self.features = features

    @property
    def n_samples(self) -> int:
        return self.features.shape[0]

    @property
    def n_features(self) -> int:
        return self.features.shape[1]

    def batch(self, offset: int, width: int) -> torch.Tensor:
        return self.features[offset:offset + width]

    def __len__(self) -> int:
        return self.n_samples


def load_dataset(path: str) -> Dataset:
    """Load a dense numeric matrix from a .csv, .npy or .pt file."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Dataset not found: {path}")
    ext = os.path.splitext(path)[1].lower()
    if ext == ".csv":
        frame = pd.read_csv(path)
        numeric = frame.select_dtypes(include="number")
        dropped = frame.shape[1] - numeric.shape[1]
        if dropped:
            logger.warning(f"Ignoring {dropped} non-numeric columns in {path}")
        values = numeric.to_numpy(dtype=np.float32)
    elif ext == ".npy":
        values = np.load(path).astype(np.float32)
    elif ext == ".pt":
        values = torch.load(path, map_location="cpu")
    else:
        raise ValueError(f"Unsupported dataset format: {ext or path}")
    dataset = Dataset(values)
    logger.info(f"Loaded {dataset.n_samples:,} samples x {dataset.n_features} features from {path}")
    return dataset


def make_synthetic_dataset(n_samples: int, n_features: int, seed: Optional[int] = None,
                           binary: bool = True) -> Dataset:
    """Random binary (or standard normal) data for smoke runs."""
    rng = np.random.default_rng(seed)
    if binary:
        values = (rng.random((n_samples, n_features)) < 0.5).astype(np.float32)
    else:
        values = rng.standard_normal((n_samples, n_features)).astype(np.float32)
    return Dataset(values)
