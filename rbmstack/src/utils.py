import logging
import os
import random as _random
from typing import Callable, Dict, List, Optional

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import torch

from rbmstack.constants import DEFAULT_FIGURE_SIZE, OUTPUT_DIR, SEED

logger = logging.getLogger(__name__)

ProgressReporter = Callable[[float, str], None]


def log_progress(fraction: float, status: str) -> None:
    """Progress reporter that writes to the module logger."""
    logger.info(f"[{fraction:6.1%}] {status}")


def set_seed(seed: int = SEED) -> None:
    """Set random seeds for reproducibility."""
    _random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)
    if torch.cuda.is_available():
        torch.cuda.manual_seed_all(seed)


def get_device(device: Optional[str] = None) -> torch.device:
    if device:
        return torch.device(device)
    return torch.device("cuda" if torch.cuda.is_available() else "cpu")


def prompt_output_dim(input_fn: Optional[Callable[[str], str]] = None) -> int:
    """Ask for the output layer size until a decimal integer is entered."""
    input_fn = input_fn or input
    while True:
        answer = input_fn("Output layer dimension: ").strip()
        if answer.isdecimal() and int(answer) > 0:
            return int(answer)
        print("Please enter a positive whole number.")


def plot_error_trajectories(histories: Dict[int, List[float]], output_path: Optional[str] = None) -> str:
    plt.figure(figsize=DEFAULT_FIGURE_SIZE)
    for layer, errors in sorted(histories.items()):
        plt.plot(range(1, len(errors) + 1), errors, marker="o", label=f"Layer {layer}")
    plt.xlabel("Epoch")
    plt.ylabel("Reconstruction error")
    plt.title("RBM Stack Pretraining")
    plt.legend()
    plt.grid(True)
    if output_path is None:
        output_path = os.path.join(OUTPUT_DIR, "reconstruction_error.png")
    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    plt.savefig(output_path)
    plt.close()
    return output_path
