"""
Restricted Boltzmann machine unit families and propagation primitives.

Weights are a single (n_visible + 1, n_hidden + 1) matrix. The last row and
column hold the bias terms, matched by a constant 1.0 unit appended to every
visible and hidden batch.

Reference:
    Hinton, G. E. (2002). Training products of experts by minimizing
    contrastive divergence.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import torch

from rbmstack.constants import GAUSSIAN_LEARNING_RATE_SCALE, INITIAL_WEIGHT_STD
from .exceptions import ResourceExhaustion


def _identity(x: torch.Tensor) -> torch.Tensor:
    return x


def _add_unit_normal(x: torch.Tensor, draws: torch.Tensor) -> torch.Tensor:
    return x.add_(draws)


def _binarize(x: torch.Tensor, draws: torch.Tensor) -> torch.Tensor:
    return x.copy_((x >= draws).to(x.dtype))


@dataclass(frozen=True)
class UnitFamily:
    """
    Capabilities of one RBM variant, resolved once per layer.

    Attributes:
        up_activation: Applied to visible @ W when computing hidden units
        bounded_input: Training data must lie in [0, 1]
        learning_rate_scale: Multiplier on the configured learning rate
        noise: "normal" or "uniform", the distribution sample() draws from
        sample_rule: Combines a cell value with its draw, in place
    """

    up_activation: Callable[[torch.Tensor], torch.Tensor]
    bounded_input: bool
    learning_rate_scale: float
    noise: str
    sample_rule: Callable[[torch.Tensor, torch.Tensor], torch.Tensor]


class RbmType(Enum):
    """Visible-unit family of an RBM. Hidden units are always Bernoulli."""

    GAUSSIAN_BERNOULLI = "gaussian_bernoulli"
    BERNOULLI_BERNOULLI = "bernoulli_bernoulli"

    @property
    def family(self) -> UnitFamily:
        return _FAMILIES[self]

    @classmethod
    def parse(cls, value) -> "RbmType":
        """Accept an RbmType, its value or its member name (any case)."""
        if isinstance(value, cls):
            return value
        key = str(value).strip()
        for member in cls:
            if key.lower() in (member.value, member.name.lower()):
                return member
        raise ValueError(f"Unknown RBM type: {value!r}")


_FAMILIES = {
    RbmType.GAUSSIAN_BERNOULLI: UnitFamily(
        up_activation=_identity,
        bounded_input=False,
        learning_rate_scale=GAUSSIAN_LEARNING_RATE_SCALE,
        noise="normal",
        sample_rule=_add_unit_normal,
    ),
    RbmType.BERNOULLI_BERNOULLI: UnitFamily(
        up_activation=torch.sigmoid,
        bounded_input=True,
        learning_rate_scale=1.0,
        noise="uniform",
        sample_rule=_binarize,
    ),
}


def init_weights(n_visible: int, n_hidden: int, device=None,
                 generator: Optional[torch.Generator] = None) -> torch.Tensor:
    """Draw N(0, std) weights with std = INITIAL_WEIGHT_STD / number of columns."""
    n_cols = n_hidden + 1
    try:
        weights = torch.empty(n_visible + 1, n_cols, device=device)
    except torch.cuda.OutOfMemoryError as e:
        raise ResourceExhaustion(f"Could not allocate {n_visible + 1}x{n_cols} weight matrix") from e
    return weights.normal_(0.0, INITIAL_WEIGHT_STD / n_cols, generator=generator)


def append_bias(batch: torch.Tensor) -> torch.Tensor:
    """Return batch with a trailing column of ones."""
    ones = torch.ones(batch.shape[0], 1, dtype=batch.dtype, device=batch.device)
    return torch.cat([batch, ones], dim=1)


def reset_bias(batch: torch.Tensor) -> torch.Tensor:
    """Set the bias column of a batch back to 1.0, in place."""
    batch[:, -1] = 1.0
    return batch


def up_propagate(weights: torch.Tensor, visible: torch.Tensor, rbm_type: RbmType) -> torch.Tensor:
    """Hidden activations for a visible batch (bias column included)."""
    hidden = rbm_type.family.up_activation(torch.mm(visible, weights))
    return reset_bias(hidden)


def down_propagate(weights: torch.Tensor, hidden: torch.Tensor, rbm_type: RbmType) -> torch.Tensor:
    """
    Reconstruct visible probabilities from a hidden batch.

    The reconstruction is always logistic, for Gaussian visible units too, so
    rbm_type does not change the result.
    """
    visible = torch.sigmoid(torch.mm(hidden, weights.t()))
    return reset_bias(visible)
