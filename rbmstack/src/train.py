"""RBM training with one-step contrastive divergence and slope-ratio stopping."""
import logging
import math
import time
from typing import List, NamedTuple, Optional

import mlflow as mlf
import torch

from rbmstack.constants import BATCH_SIZE, MAX_EPOCHS, MIN_EPOCHS, SLOPE_WINDOW
from .convergence import ConvergenceMonitor, forecast
from .data_loader import Dataset, batch_windows
from .exceptions import PreconditionViolation, ResourceExhaustion
from .model import RbmType, append_bias, down_propagate, init_weights, up_propagate
from .random_pool import RandomStatePool, acquire
from .sampler import sample
from .utils import ProgressReporter, get_device

logger = logging.getLogger(__name__)


class TrainingResult(NamedTuple):
    weights: torch.Tensor
    errors: List[float]
    epoch_seconds: List[float]


def check_training_data(data: torch.Tensor, rbm_type: RbmType) -> None:
    """Raise PreconditionViolation if data cannot train an RBM of this type."""
    if data.dim() != 2 or data.shape[0] == 0 or data.shape[1] == 0:
        raise PreconditionViolation(f"Training data must be a non-empty 2-D matrix, got {tuple(data.shape)}")
    if rbm_type.family.bounded_input:
        lo, hi = data.min().item(), data.max().item()
        if not (0.0 <= lo and hi <= 1.0):
            raise PreconditionViolation(
                f"{rbm_type.name} training data must lie in [0, 1], found range [{lo}, {hi}]"
            )


def train_single_batch(weights, v1, rbm_type, learning_rate, pool):
    """Apply one CD-1 update to weights in place and return the squared reconstruction error."""
    h1 = up_propagate(weights, v1, rbm_type)
    positive = torch.mm(v1.t(), h1)
    # Hidden units are Bernoulli whatever the visible family.
    sample(h1, RbmType.BERNOULLI_BERNOULLI, pool)
    v2 = down_propagate(weights, h1, rbm_type)
    h2 = up_propagate(weights, v2, rbm_type)
    negative = torch.mm(v2.t(), h2)

    weights.add_(positive - negative, alpha=learning_rate / v1.shape[0])
    return torch.sum((v1 - v2) ** 2).item()


def fit_rbm(data, hidden_dim: int, slope_threshold: float, rbm_type: RbmType,
            learning_rate: float, batch_size: int = BATCH_SIZE,
            pool: Optional[RandomStatePool] = None, device=None,
            progress: Optional[ProgressReporter] = None, use_mlflow: bool = False,
            layer: int = 0, min_epochs: int = MIN_EPOCHS, max_epochs: int = MAX_EPOCHS,
            slope_window: int = SLOPE_WINDOW) -> TrainingResult:
    """
    Train one RBM mapping data's features to hidden_dim units.

    Epochs run over a fixed partition of the samples into batches of
    batch_size. Each epoch's error is sqrt(sum of squared reconstruction
    distances) / number of samples; training stops on the slope-ratio rule of
    ConvergenceMonitor.

    Args:
        data: Dataset or (n_samples, n_visible) matrix, kept on the host
        hidden_dim: Number of hidden units, excluding the bias unit
        slope_threshold: Stop once |current slope / initial slope| falls below this
        rbm_type: Visible-unit family of this layer
        learning_rate: Step size before the type's learning-rate scale
        pool: Random state pool for sampling (process pool when None)
        device: Training device (cuda when available when None)
        progress: Called with (fraction, status) after every epoch

    Returns:
        TrainingResult with the (n_visible + 1, hidden_dim + 1) weights on the
        host, the error trajectory and the duration of each epoch
    """
    dataset = data if isinstance(data, Dataset) else Dataset(data)
    check_training_data(dataset.features, rbm_type)
    if hidden_dim < 1:
        raise PreconditionViolation(f"hidden_dim must be positive, got {hidden_dim}")
    if slope_threshold <= 0:
        raise PreconditionViolation(f"slope_threshold must be positive, got {slope_threshold}")

    device = get_device(device)
    if pool is None:
        pool = acquire(device=device)
    family = rbm_type.family
    rate = learning_rate * family.learning_rate_scale
    n_samples = dataset.n_samples

    weights = init_weights(dataset.n_features, hidden_dim, device=device)
    monitor = ConvergenceMonitor(slope_threshold, min_epochs=min_epochs,
                                 max_epochs=max_epochs, window=slope_window)
    epoch_seconds = []

    logger.info(f"Layer {layer}: training {rbm_type.name} RBM {dataset.n_features} -> {hidden_dim} "
                f"on {n_samples:,} samples (lr={rate:g}, device={device})")

    stop = False
    while not stop:
        started = time.perf_counter()
        total_error = 0.0
        try:
            for offset, width in batch_windows(batch_size, n_samples):
                v1 = append_bias(dataset.batch(offset, width).to(device))
                total_error += train_single_batch(weights, v1, rbm_type, rate, pool)
        except torch.cuda.OutOfMemoryError as e:
            raise ResourceExhaustion(f"Out of device memory in layer {layer}") from e

        epoch_error = math.sqrt(total_error) / n_samples
        stop = monitor.update(epoch_error)
        epoch_seconds.append(time.perf_counter() - started)
        epoch = monitor.epochs

        logger.debug(f"Layer {layer} | Epoch {epoch:03d} | Error: {epoch_error:.6f} | Ratio: {monitor.ratio}")
        if use_mlflow and mlf.active_run():
            mlf.log_metric(f"layer{layer}_reconstruction_error", epoch_error, step=epoch)
        if progress is not None:
            fraction = 1.0 if stop else monitor.progress
            progress(fraction, f"layer {layer} epoch {epoch} error {epoch_error:.6f}")

    errors = monitor.errors
    average = sum(epoch_seconds) / len(epoch_seconds)
    reason = "slope ratio below threshold" if monitor.converged else "maximum epochs reached"
    logger.info(f"Layer {layer}: stopped after {monitor.epochs} epochs ({reason}), "
                f"{average:.3f}s per epoch, final error {errors[-1]:.6f}")
    remaining = max_epochs - monitor.epochs
    if remaining > 0:
        bound = forecast(errors, slope_window, remaining)
        logger.info(f"Layer {layer}: projected error at epoch {max_epochs}: {bound:.6f}")

    weights = weights.cpu()
    if not torch.isfinite(weights).all():
        logger.warning(f"Layer {layer}: weights contain non-finite values, consider a lower learning rate")
    return TrainingResult(weights, errors, epoch_seconds)


def train_rbm(data, hidden_dim: int, slope_threshold: float, rbm_type: RbmType,
              learning_rate: float, **kwargs) -> torch.Tensor:
    """Train one RBM and return only its weight matrix."""
    return fit_rbm(data, hidden_dim, slope_threshold, rbm_type, learning_rate, **kwargs).weights
