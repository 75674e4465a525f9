"""Greedy layer-wise training of a stack of RBMs."""
import logging
from contextlib import contextmanager
from typing import Dict, List, Optional, Sequence

import torch

from rbmstack.constants import TRANSFORM_BATCH_SIZE
from .data_loader import Dataset, batch_windows
from .exceptions import PreconditionViolation, ResourceExhaustion
from .model import RbmType, append_bias, reset_bias
from .train import fit_rbm
from .utils import get_device

logger = logging.getLogger(__name__)


@contextmanager
def device_transfer(host_batch: torch.Tensor, device):
    """Copy a host batch to device for the duration of the block, then release it."""
    try:
        buffer = host_batch.to(device)
    except torch.cuda.OutOfMemoryError as e:
        raise ResourceExhaustion(f"Could not allocate {tuple(host_batch.shape)} batch on {device}") from e
    try:
        yield buffer
    finally:
        del buffer
        if torch.device(device).type == "cuda":
            torch.cuda.empty_cache()


def transform(data, weights: torch.Tensor, batch_size: int = TRANSFORM_BATCH_SIZE, device=None) -> Dataset:
    """
    Forward the whole dataset through one trained layer.

    Each batch gets its bias unit, goes through the logistic activation on the
    device and is copied back to host memory. The bias column is dropped from
    the result, which has one column per hidden unit.
    """
    dataset = data if isinstance(data, Dataset) else Dataset(data)
    device = get_device(device)
    device_weights = weights.to(device)
    n_hidden = weights.shape[1] - 1
    output = torch.empty(dataset.n_samples, n_hidden, dtype=torch.float32)

    for offset, width in batch_windows(batch_size, dataset.n_samples):
        with device_transfer(dataset.batch(offset, width), device) as batch:
            hidden = reset_bias(torch.sigmoid(torch.mm(append_bias(batch), device_weights)))
            output[offset:offset + width] = hidden[:, :-1].cpu()
    return Dataset(output)


def train_stack(data, layer_dims: Sequence[int], slope_threshold: float,
                first_layer_type: RbmType, learning_rate: float,
                histories: Optional[Dict[int, List[float]]] = None, **kwargs) -> List[torch.Tensor]:
    """
    Pretrain one RBM per consecutive pair in layer_dims.

    Only the first layer uses first_layer_type, every later layer is
    Bernoulli-Bernoulli since it sees logistic outputs in [0, 1]. Extra keyword
    arguments go to fit_rbm. When histories is given, each layer's error
    trajectory is stored in it under the layer index.

    Returns:
        Host weight matrices, layer i shaped (layer_dims[i] + 1, layer_dims[i + 1] + 1)
    """
    if len(layer_dims) < 2:
        raise PreconditionViolation(f"layer_dims needs at least 2 entries, got {list(layer_dims)}")
    if any(int(d) < 1 for d in layer_dims):
        raise PreconditionViolation(f"layer_dims must be positive, got {list(layer_dims)}")
    dataset = data if isinstance(data, Dataset) else Dataset(data)
    if dataset.n_features != layer_dims[0]:
        raise PreconditionViolation(
            f"Data has {dataset.n_features} features but the first layer expects {layer_dims[0]}"
        )

    n_layers = len(layer_dims) - 1
    device = kwargs.pop("device", None)
    weights = []
    for layer in range(n_layers):
        rbm_type = first_layer_type if layer == 0 else RbmType.BERNOULLI_BERNOULLI
        logger.info("=" * 60)
        logger.info(f"Layer {layer + 1}/{n_layers}: {layer_dims[layer]} -> {layer_dims[layer + 1]} ({rbm_type.name})")
        logger.info("=" * 60)

        result = fit_rbm(dataset, layer_dims[layer + 1], slope_threshold, rbm_type, learning_rate,
                         device=device, layer=layer, **kwargs)
        weights.append(result.weights)
        if histories is not None:
            histories[layer] = result.errors

        if layer < n_layers - 1:
            dataset = transform(dataset, result.weights, device=device)
    return weights
