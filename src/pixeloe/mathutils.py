"""Small numeric helpers shared by the pipeline stages"""

import numpy as np


def sigmoid(x: np.ndarray) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-x))  # type: ignore[no-any-return]


def round_half_up(x: np.ndarray) -> np.ndarray:
    """Round to nearest integer, halves away from zero for positive values"""
    return np.floor(np.asarray(x, dtype=np.float64) + 0.5)  # type: ignore[no-any-return]


def to_uint8(x: np.ndarray) -> np.ndarray:
    """Round half up and clamp to [0, 255]"""
    return np.clip(round_half_up(x), 0, 255).astype(np.uint8)  # type: ignore[no-any-return]
