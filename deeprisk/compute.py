"""Dense numeric kernels with a selectable compute device.

The device setting chooses a backend. No accelerator backend is available
in this package, so every operation runs on the CPU whatever the setting.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np

__all__ = [
    "ModelError",
    "DimensionMismatchError",
    "InvalidDimensionError",
    "InvalidInputError",
    "NumericalError",
    "ComputeDevice",
    "GPUConfig",
    "is_cuda_available",
    "get_optimal_device",
    "get_gpu_info",
    "matrix_multiply",
    "compute_attention",
    "compute_covariance",
]


class ModelError(Exception):
    """Base class for errors raised by the risk models."""


class DimensionMismatchError(ModelError, ValueError):
    """Operands have shapes that do not fit together."""


class InvalidDimensionError(ModelError, ValueError):
    """A dimension has a value the model cannot use."""


class InvalidInputError(ModelError, ValueError):
    """Input data is unsuitable for the requested computation."""


class NumericalError(ModelError, ArithmeticError):
    """A numerical procedure failed, e.g. a singular matrix."""


class ComputeDevice(Enum):
    """Device on which computations are requested to run."""

    CPU = "cpu"
    GPU = "gpu"


@dataclass
class GPUConfig:
    """Settings for accelerated computation."""

    device: ComputeDevice = ComputeDevice.CPU
    use_mixed_precision: bool = False
    batch_size: int = 64
    use_tensor_cores: bool = True


def is_cuda_available() -> bool:
    """Return whether a CUDA backend is available (never, in this package)."""
    return False


def get_optimal_device() -> ComputeDevice:
    """Return the best device this system supports."""
    return ComputeDevice.GPU if is_cuda_available() else ComputeDevice.CPU


def get_gpu_info() -> str:
    """Describe the available accelerator support."""
    if is_cuda_available():
        return "GPU support enabled (feature flag set)"
    return "GPU support not enabled (feature flag not set)"


def _as_matrix(values, name: str) -> np.ndarray:
    array = np.asarray(values, dtype=np.float32)
    if array.ndim != 2:
        raise InvalidDimensionError(
            f"{name} must be a 2-dimensional array, got {array.ndim} dimensions"
        )
    return array


def matrix_multiply(a, b, config: GPUConfig | None = None) -> np.ndarray:
    """Multiply two matrices, raising if their inner dimensions differ."""
    _ = config or GPUConfig()
    left = _as_matrix(a, "a")
    right = _as_matrix(b, "b")
    if left.shape[1] != right.shape[0]:
        raise DimensionMismatchError(
            "Matrix dimensions don't match for multiplication: "
            f"{list(left.shape)} and {list(right.shape)}"
        )
    return left @ right


def _softmax_rows(scores: np.ndarray) -> np.ndarray:
    shifted = np.exp(scores - scores.max(axis=1, keepdims=True))
    return shifted / shifted.sum(axis=1, keepdims=True)


def compute_attention(query, key, value, config: GPUConfig | None = None) -> np.ndarray:
    """Scaled dot-product attention: softmax(Q K^T / sqrt(d_k)) V."""
    _ = config or GPUConfig()
    q = _as_matrix(query, "query")
    k = _as_matrix(key, "key")
    v = _as_matrix(value, "value")
    if q.shape[1] != k.shape[1]:
        raise DimensionMismatchError("Query and Key dimensions don't match")
    if k.shape[0] != v.shape[0]:
        raise DimensionMismatchError("Key and Value must have the same number of rows")

    scale = np.float32(1.0 / np.sqrt(np.float32(k.shape[1])))
    scores = (q @ k.T) * scale
    weights = _softmax_rows(scores).astype(np.float32)
    return weights @ v


def compute_covariance(data, config: GPUConfig | None = None) -> np.ndarray:
    """Sample covariance of the columns of ``data`` (divisor n - 1)."""
    _ = config or GPUConfig()
    matrix = _as_matrix(data, "data")
    n_samples = matrix.shape[0]
    if n_samples < 2:
        raise InvalidInputError("Need at least 2 samples to compute covariance")
    centered = matrix - matrix.mean(axis=0, dtype=np.float32)
    covariance = (centered.T @ centered) / np.float32(n_samples - 1)
    # Exact symmetry, as the lower triangle is mirrored.
    lower = np.tril(covariance)
    return (lower + np.tril(covariance, -1).T).astype(np.float32)