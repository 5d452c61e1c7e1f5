"""Factor orthogonalisation, quality metrics, selection and loadings."""

from __future__ import annotations

from dataclasses import dataclass
from itertools import combinations
from typing import Sequence

import numpy as np

from deeprisk.compute import InvalidDimensionError, InvalidInputError, NumericalError

__all__ = [
    "FactorQualityMetrics",
    "FactorAnalyzer",
    "calculate_correlation",
]

_TINY = 1e-10
_ORTHOGONALITY_TOLERANCE = 1e-5


def _as_matrix(values, name: str) -> np.ndarray:
    array = np.asarray(values, dtype=np.float32)
    if array.ndim != 2:
        raise InvalidDimensionError(
            f"{name} must be a 2-dimensional array, got {array.ndim} dimensions"
        )
    return array


def _check_same_samples(n_factor_samples: int, n_return_samples: int) -> None:
    if n_factor_samples != n_return_samples:
        raise InvalidDimensionError(
            f"Number of samples in factors ({n_factor_samples}) and "
            f"returns ({n_return_samples}) must match"
        )


def calculate_correlation(x, y) -> float:
    """Pearson correlation of two sequences; 0.0 if undefined."""
    xs = np.asarray(x, dtype=np.float64).ravel()
    ys = np.asarray(y, dtype=np.float64).ravel()
    if xs.size != ys.size or xs.size == 0:
        return 0.0
    dx = xs - xs.mean()
    dy = ys - ys.mean()
    var_x = float(dx @ dx)
    var_y = float(dy @ dy)
    if var_x > 0.0 and var_y > 0.0:
        return float(dx @ dy) / (np.sqrt(var_x) * np.sqrt(var_y))
    return 0.0


@dataclass(frozen=True)
class FactorQualityMetrics:
    """Quality measures of a single risk factor."""

    information_coefficient: float
    vif: float
    t_statistic: float
    explained_variance: float


@dataclass(frozen=True)
class FactorAnalyzer:
    """Processes risk factors and selects those meeting quality thresholds."""

    min_information_coefficient: float
    max_vif: float
    min_t_statistic: float

    @classmethod
    def standard(cls) -> "FactorAnalyzer":
        """Thresholds suitable for most datasets (about 90% confidence)."""
        return cls(0.1, 5.0, 1.65)

    @classmethod
    def strict(cls) -> "FactorAnalyzer":
        """Thresholds for high-quality factors (95% confidence)."""
        return cls(0.3, 2.5, 1.96)

    @classmethod
    def lenient(cls) -> "FactorAnalyzer":
        """Thresholds for exploratory analysis (80% confidence)."""
        return cls(0.05, 10.0, 1.28)

    def orthogonalize_factors(self, factors) -> np.ndarray:
        """Return the factor columns made orthonormal by Gram-Schmidt.

        A column that vanishes after removing its projections is replaced by
        a random vector orthogonal to the earlier columns.
        """
        work = _as_matrix(factors, "factors").astype(np.float64)
        n_samples, n_factors = work.shape
        if n_factors == 0:
            return work.astype(np.float32)

        norm = np.linalg.norm(work[:, 0])
        if norm > _TINY:
            work[:, 0] /= norm

        rng = np.random.default_rng()
        for i in range(1, n_factors):
            factor = work[:, i].copy()
            for previous in work[:, :i].T:
                denominator = previous @ previous
                projection = 0.0 if denominator < _TINY else (factor @ previous) / denominator
                factor -= projection * previous

            norm = np.linalg.norm(factor)
            if norm > _TINY:
                work[:, i] = factor / norm
                continue

            candidate = rng.uniform(-1.0, 1.0, n_samples)
            for previous in work[:, :i].T:
                candidate -= (candidate @ previous) * previous
            norm = np.linalg.norm(candidate)
            if norm > _TINY:
                work[:, i] = candidate / norm

        for i, j in combinations(range(n_factors), 2):
            dot = work[:, i] @ work[:, j]
            if abs(dot) > _ORTHOGONALITY_TOLERANCE:
                updated = work[:, j] - dot * work[:, i]
                norm = np.linalg.norm(updated)
                if norm > _TINY:
                    work[:, j] = updated / norm

        return work.astype(np.float32)

    def calculate_factor_metrics(self, factors, returns) -> list[FactorQualityMetrics]:
        """Compute quality metrics for every factor column."""
        factor_matrix = _as_matrix(factors, "factors")
        return_matrix = _as_matrix(returns, "returns")
        n_samples = factor_matrix.shape[0]
        _check_same_samples(n_samples, return_matrix.shape[0])
        n_assets = return_matrix.shape[1]

        metrics = []
        with np.errstate(divide="ignore", invalid="ignore"):
            samples = np.float32(n_samples)
            total_var = np.float32((return_matrix * return_matrix).sum()) / samples
            for factor in factor_matrix.T:
                ic_sum = sum(
                    abs(calculate_correlation(factor, asset_returns))
                    for asset_returns in return_matrix.T
                )
                ic = np.float32(ic_sum) / np.float32(n_assets)
                t_stat = ic * np.sqrt(samples) / np.sqrt(np.float32(1.0) - ic * ic)
                factor_var = np.float32((factor * factor).sum()) / samples
                metrics.append(
                    FactorQualityMetrics(
                        information_coefficient=float(ic),
                        # Factors are orthogonalised beforehand, so VIF is one.
                        vif=1.0,
                        t_statistic=float(t_stat),
                        explained_variance=float(factor_var / total_var),
                    )
                )
        return metrics

    def select_optimal_factors(
        self, factors, metrics: Sequence[FactorQualityMetrics]
    ) -> np.ndarray:
        """Keep only the factor columns whose metrics meet every threshold."""
        factor_matrix = _as_matrix(factors, "factors")
        n_factors = factor_matrix.shape[1]
        if len(metrics) != n_factors:
            raise InvalidDimensionError(
                f"Number of metrics ({len(metrics)}) must match number of "
                f"factors ({n_factors})"
            )

        selected = [
            index
            for index, metric in enumerate(metrics)
            if metric.information_coefficient >= self.min_information_coefficient
            and metric.vif <= self.max_vif
            and metric.t_statistic >= self.min_t_statistic
        ]
        if not selected:
            raise InvalidInputError("No factors meet the selection criteria")
        return factor_matrix[:, selected].copy()

    def estimate_factor_loadings(self, factors, returns) -> np.ndarray:
        """Least-squares loadings of every asset on the factors (assets x factors)."""
        factor_matrix = _as_matrix(factors, "factors")
        return_matrix = _as_matrix(returns, "returns")
        _check_same_samples(factor_matrix.shape[0], return_matrix.shape[0])

        x = factor_matrix.astype(np.float64)
        y = return_matrix.astype(np.float64)
        try:
            xtx_inv = np.linalg.inv(x.T @ x)
        except np.linalg.LinAlgError as exc:
            raise NumericalError("Failed to invert factor covariance matrix") from exc
        betas = xtx_inv @ (x.T @ y)
        return betas.T.astype(np.float32)

    def estimate_factor_covariance(self, factors) -> np.ndarray:
        """Sample covariance of the factor columns (divisor n - 1)."""
        factor_matrix = _as_matrix(factors, "factors")
        n_samples = factor_matrix.shape[0]
        if n_samples <= 1:
            raise InvalidDimensionError("Need at least 2 samples to estimate covariance")
        x = factor_matrix.astype(np.float64)
        centered = x - x.mean(axis=0)
        covariance = (centered.T @ centered) / (n_samples - 1)
        return covariance.astype(np.float32)