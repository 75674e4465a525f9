"""Slope-ratio plateau detection over the reconstruction error trajectory."""
from typing import List, Sequence, Tuple

import numpy as np

from rbmstack.constants import MAX_EPOCHS, MIN_EPOCHS, SLOPE_WINDOW


def linear_fit(series: Sequence[float], window: int) -> Tuple[float, float]:
    """
    Least-squares line through the last `window` points of series.

    Points are placed at x = window-1 ... 0 epochs before the most recent one.
    The slope is returned per epoch forward in time, so a falling error gives
    a negative slope, and the intercept is the fitted value at the most recent
    point.
    """
    if window < 2:
        raise ValueError(f"window must be at least 2, got {window}")
    if len(series) < window:
        raise ValueError(f"Need {window} points for the fit, got {len(series)}")
    y = np.asarray(series[-window:], dtype=np.float64)
    x = -np.arange(window - 1, -1, -1, dtype=np.float64)
    x_mean = x.mean()
    y_mean = y.mean()
    m = float(np.sum((x - x_mean) * (y - y_mean)) / np.sum((x - x_mean) ** 2))
    b = float(y_mean - m * x_mean)
    return m, b


def slope(series: Sequence[float], window: int = SLOPE_WINDOW) -> float:
    """Fitted slope of the last `window` points."""
    m, _ = linear_fit(series, window)
    return m


def forecast(series: Sequence[float], window: int, target_epoch: float) -> float:
    """Project the fitted line `target_epoch` epochs past the most recent point."""
    m, b = linear_fit(series, window)
    return m * target_epoch + b


class ConvergenceMonitor:
    """
    Tracks the per-epoch error trajectory and decides when to stop.

    Training always runs min_epochs epochs. At that epoch the slope of the last
    `window` errors is recorded as the initial slope; from then on training
    stops once |slope / initial slope| drops below slope_threshold, or at
    max_epochs regardless.
    """

    def __init__(self, slope_threshold: float, min_epochs: int = MIN_EPOCHS,
                 max_epochs: int = MAX_EPOCHS, window: int = SLOPE_WINDOW):
        if min_epochs < window:
            raise ValueError(f"min_epochs ({min_epochs}) must cover the slope window ({window})")
        if max_epochs < min_epochs:
            raise ValueError(f"max_epochs ({max_epochs}) is below min_epochs ({min_epochs})")
        self.slope_threshold = slope_threshold
        self.min_epochs = min_epochs
        self.max_epochs = max_epochs
        self.window = window
        self.initial_slope = None
        self.ratio = None
        self.converged = False
        self._errors: List[float] = []

    @property
    def errors(self) -> List[float]:
        return list(self._errors)

    @property
    def epochs(self) -> int:
        return len(self._errors)

    @property
    def progress(self) -> float:
        """Rough completion fraction for progress reporting."""
        if self.ratio is None:
            return min(self.epochs / self.max_epochs, 1.0)
        if self.ratio == 0.0:
            return 1.0
        return max(min(self.slope_threshold / self.ratio, 1.0), self.epochs / self.max_epochs)

    def update(self, error: float) -> bool:
        """Append one epoch's error and return True when training should stop."""
        self._errors.append(float(error))
        epoch = len(self._errors)

        if epoch < self.min_epochs:
            return False
        if epoch == self.min_epochs:
            self.initial_slope = slope(self._errors, self.window)
            return epoch >= self.max_epochs

        current = slope(self._errors, self.window)
        # a flat start counts as already converged
        self.ratio = 0.0 if self.initial_slope == 0.0 else abs(current / self.initial_slope)
        if self.ratio < self.slope_threshold:
            self.converged = True
            return True
        return epoch >= self.max_epochs
