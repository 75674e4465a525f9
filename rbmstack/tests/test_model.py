"""Tests for unit families and propagation primitives."""
import pytest
import torch

from rbmstack.constants import GAUSSIAN_LEARNING_RATE_SCALE
from rbmstack.src.model import (
    RbmType, append_bias, down_propagate, init_weights, up_propagate
)


@pytest.fixture
def weights():
    torch.manual_seed(0)
    return torch.randn(6, 4)


@pytest.fixture
def visible():
    torch.manual_seed(1)
    return append_bias(torch.rand(3, 5))


class TestRbmType:
    """Tests for per-variant capabilities."""

    def test_bernoulli_capabilities(self):
        """Bernoulli visible units are bounded and unscaled."""
        family = RbmType.BERNOULLI_BERNOULLI.family
        assert family.bounded_input
        assert family.learning_rate_scale == 1.0
        assert family.noise == "uniform"

    def test_gaussian_capabilities(self):
        """Gaussian visible units are unbounded with a scaled learning rate."""
        family = RbmType.GAUSSIAN_BERNOULLI.family
        assert not family.bounded_input
        assert family.learning_rate_scale == GAUSSIAN_LEARNING_RATE_SCALE
        assert family.noise == "normal"

    @pytest.mark.parametrize("value", ["gaussian_bernoulli", "GAUSSIAN_BERNOULLI", RbmType.GAUSSIAN_BERNOULLI])
    def test_parse(self, value):
        """Types parse from values, names or members."""
        assert RbmType.parse(value) is RbmType.GAUSSIAN_BERNOULLI

    def test_parse_unknown(self):
        """Unknown names are rejected."""
        with pytest.raises(ValueError):
            RbmType.parse("softmax")


class TestPropagation:
    """Tests for up and down propagation."""

    def test_up_shape_and_bias(self, weights, visible):
        """Hidden batch is (batch, hidden + 1) with a unit bias column."""
        hidden = up_propagate(weights, visible, RbmType.BERNOULLI_BERNOULLI)
        assert hidden.shape == (3, 4)
        assert torch.all(hidden[:, -1] == 1.0)

    def test_up_bernoulli_is_logistic(self, weights, visible):
        """Bernoulli layers squash hidden activations."""
        hidden = up_propagate(weights, visible, RbmType.BERNOULLI_BERNOULLI)
        expected = torch.sigmoid(visible @ weights)
        assert torch.allclose(hidden[:, :-1], expected[:, :-1])

    def test_up_gaussian_is_linear(self, weights, visible):
        """Gaussian layers leave the hidden pre-activation linear."""
        hidden = up_propagate(weights, visible, RbmType.GAUSSIAN_BERNOULLI)
        assert torch.allclose(hidden[:, :-1], (visible @ weights)[:, :-1])
        assert torch.all(hidden[:, -1] == 1.0)

    def test_down_always_logistic(self, weights):
        """Reconstruction is logistic for both types."""
        hidden = append_bias(torch.rand(3, 3))
        a = down_propagate(weights, hidden, RbmType.GAUSSIAN_BERNOULLI)
        b = down_propagate(weights, hidden, RbmType.BERNOULLI_BERNOULLI)
        assert torch.equal(a, b)
        assert a.shape == (3, 6)
        assert torch.all(a[:, -1] == 1.0)
        assert torch.all((a >= 0.0) & (a <= 1.0))

    def test_inputs_not_mutated(self, weights, visible):
        """Propagation leaves its inputs untouched."""
        w_before = weights.clone()
        v_before = visible.clone()
        up_propagate(weights, visible, RbmType.GAUSSIAN_BERNOULLI)
        down_propagate(weights, append_bias(torch.rand(3, 3)), RbmType.BERNOULLI_BERNOULLI)
        assert torch.equal(weights, w_before)
        assert torch.equal(visible, v_before)


class TestWeights:
    """Tests for weight initialization and bias helpers."""

    def test_init_shape(self):
        """Weights reserve a bias row and column."""
        assert init_weights(10, 6).shape == (11, 7)

    def test_init_spread(self):
        """Standard deviation is 0.1 over the column count."""
        torch.manual_seed(0)
        w = init_weights(400, 99)
        assert abs(w.std().item() - 0.1 / 100) < 1e-4
        assert abs(w.mean().item()) < 1e-4

    def test_append_bias(self):
        """append_bias adds a trailing column of ones."""
        batch = append_bias(torch.zeros(2, 3))
        assert batch.shape == (2, 4)
        assert torch.all(batch[:, -1] == 1.0)
        assert torch.all(batch[:, :-1] == 0.0)
