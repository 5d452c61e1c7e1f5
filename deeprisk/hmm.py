"""Hidden Markov model for detecting market regimes from a scalar series."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple

import numpy as np

from deeprisk.compute import InvalidInputError

__all__ = [
    "RegimeType",
    "RegimeConfig",
    "RegimePrediction",
    "MarketRegimeHMM",
]

_MIN_VARIANCE = 1e-6
_MIN_DENSITY = 1e-300
_MIN_TRAINING_OBSERVATIONS = 10

# Offsets of the initial means, in units of half a standard deviation,
# and multipliers of the initial variances, per regime index.
_MEAN_FACTORS = (-2.0, -0.5, 0.5, 2.0)
_VARIANCE_FACTORS = (0.5, 1.0, 2.0, 4.0)


class RegimeType(Enum):
    """Market regimes that can be detected."""

    LOW_VOLATILITY = "Low Volatility"
    NORMAL = "Normal"
    HIGH_VOLATILITY = "High Volatility"
    CRISIS = "Crisis"

    def __str__(self) -> str:
        return self.value

    @property
    def index(self) -> int:
        """Position of the regime among the model's states."""
        return _REGIME_ORDER.index(self)

    @classmethod
    def from_index(cls, index: int) -> "RegimeType":
        """Regime for a state index; indices past the known regimes map to NORMAL."""
        if 0 <= index < len(_REGIME_ORDER):
            return _REGIME_ORDER[index]
        return cls.NORMAL


_REGIME_ORDER = (
    RegimeType.LOW_VOLATILITY,
    RegimeType.NORMAL,
    RegimeType.HIGH_VOLATILITY,
    RegimeType.CRISIS,
)


@dataclass
class RegimeConfig:
    """Settings for regime detection."""

    n_regimes: int = 4
    max_iter: int = 100
    tol: float = 1e-6
    random_seed: int | None = None
    min_prob: float = 0.6


class RegimePrediction(NamedTuple):
    """Outcome of a single prediction and the state that follows it."""

    regime: RegimeType
    current_regime: RegimeType | None
    regime_history: list[RegimeType]
    probability_history: list[np.ndarray]


@dataclass
class MarketRegimeHMM:
    """Gaussian-emission HMM trained with the Baum-Welch algorithm."""

    config: RegimeConfig = field(default_factory=RegimeConfig)
    current_regime: RegimeType | None = None
    regime_history: list[RegimeType] = field(default_factory=list)
    probability_history: list[np.ndarray] = field(default_factory=list)
    trained: bool = False

    def __post_init__(self) -> None:
        n = self.config.n_regimes
        if n < 1:
            raise InvalidInputError("n_regimes must be at least 1")
        self.initial_probs = np.full(n, 1.0 / n)
        self.transition_matrix = np.full((n, n), 1.0 / n)
        self.emission_means = np.zeros(n)
        self.emission_vars = np.ones(n)

    @property
    def n_regimes(self) -> int:
        return self.config.n_regimes

    def with_state(
        self,
        current_regime: RegimeType | None,
        regime_history,
        probability_history,
    ) -> "MarketRegimeHMM":
        """Copy of this model's parameters carrying the given prediction state."""
        clone = MarketRegimeHMM(
            config=RegimeConfig(**vars(self.config)),
            current_regime=current_regime,
            regime_history=list(regime_history),
            probability_history=list(probability_history),
            trained=self.trained,
        )
        clone.initial_probs = self.initial_probs.copy()
        clone.transition_matrix = self.transition_matrix.copy()
        clone.emission_means = self.emission_means.copy()
        clone.emission_vars = self.emission_vars.copy()
        return clone

    def train(self, data) -> None:
        """Fit the model to a 1-D series of observations."""
        series = np.asarray(data, dtype=np.float64).ravel()
        if series.size < _MIN_TRAINING_OBSERVATIONS:
            raise InvalidInputError(
                "Training data must have at least 10 observations"
            )

        self._initialize_emission_params(series)

        previous = -np.inf
        for iteration in range(self.config.max_iter):
            densities = self._densities(series)
            alpha, beta, scales, log_likelihood = self._forward_backward(densities)
            if iteration > 0 and abs(log_likelihood - previous) < self.config.tol:
                break
            previous = log_likelihood
            gamma, xi = self._posteriors(alpha, beta, scales, densities)
            self._update_parameters(gamma, xi, series)

        self.trained = True

    def _initialize_emission_params(self, series: np.ndarray) -> None:
        mean = float(series.mean())
        var = float(((series - mean) ** 2).mean())
        half_std = np.sqrt(var) / 2.0
        for i in range(self.n_regimes):
            mean_factor = _MEAN_FACTORS[i] if i < len(_MEAN_FACTORS) else 0.0
            var_factor = _VARIANCE_FACTORS[i] if i < len(_VARIANCE_FACTORS) else 1.0
            self.emission_means[i] = mean + mean_factor * half_std
            self.emission_vars[i] = max(var * var_factor, _MIN_VARIANCE)

    def _emission(self, x) -> np.ndarray:
        """Gaussian density of ``x`` under each state; broadcasts over ``x``."""
        x = np.asarray(x, dtype=np.float64)[..., None]
        var = self.emission_vars
        return np.exp(-0.5 * (x - self.emission_means) ** 2 / var) / np.sqrt(
            2.0 * np.pi * var
        )

    def _densities(self, series: np.ndarray) -> np.ndarray:
        return np.maximum(self._emission(series), _MIN_DENSITY)

    def _forward_backward(self, densities: np.ndarray):
        steps, n = densities.shape
        transition = self.transition_matrix
        alpha = np.zeros((steps, n))
        scales = np.zeros(steps)

        first = self.initial_probs * densities[0]
        scales[0] = max(first.sum(), _MIN_DENSITY)
        alpha[0] = first / scales[0]
        for t in range(1, steps):
            step = (alpha[t - 1] @ transition) * densities[t]
            scales[t] = max(step.sum(), _MIN_DENSITY)
            alpha[t] = step / scales[t]

        beta = np.ones((steps, n))
        for t in range(steps - 2, -1, -1):
            beta[t] = transition @ (densities[t + 1] * beta[t + 1]) / scales[t + 1]

        return alpha, beta, scales, float(np.log(scales).sum())

    def _posteriors(self, alpha, beta, scales, densities):
        gamma = alpha * beta
        totals = gamma.sum(axis=1, keepdims=True)
        gamma = np.divide(gamma, totals, out=np.zeros_like(gamma), where=totals > 0)

        xi = (
            alpha[:-1, :, None]
            * self.transition_matrix[None, :, :]
            * (densities[1:] * beta[1:])[:, None, :]
        )
        norms = xi.sum(axis=(1, 2), keepdims=True)
        xi = np.divide(xi, norms, out=xi, where=norms > 0)
        return gamma, xi

    def _update_parameters(self, gamma, xi, series) -> None:
        self.initial_probs = gamma[0].copy()

        numerators = xi.sum(axis=0)
        denominators = gamma[:-1].sum(axis=0)
        for i, den in enumerate(denominators):
            if den > 0:
                self.transition_matrix[i] = numerators[i] / den
        row_sums = self.transition_matrix.sum(axis=1)
        for i, row_sum in enumerate(row_sums):
            if row_sum > 0:
                self.transition_matrix[i] /= row_sum

        weights = gamma.sum(axis=0)
        weighted_x = gamma.T @ series
        weighted_x2 = gamma.T @ (series**2)
        for j, weight in enumerate(weights):
            if weight > 0:
                mean = weighted_x[j] / weight
                self.emission_means[j] = mean
                self.emission_vars[j] = max(weighted_x2[j] / weight - mean**2, _MIN_VARIANCE)

    def predict(self, x: float) -> RegimePrediction:
        """Most likely regime for one observation, given the current state."""
        if not self.trained:
            raise InvalidInputError("Model has not been trained yet")

        probs = self._emission(float(x))
        if self.current_regime is not None:
            probs = probs * self.transition_matrix[self.current_regime.index]
        total = probs.sum()
        if total > 0:
            probs = probs / total

        best = int(np.argmax(probs))
        max_prob = float(probs[best])

        if max_prob < self.config.min_prob and self.current_regime is not None:
            return RegimePrediction(
                self.current_regime,
                self.current_regime,
                list(self.regime_history),
                list(self.probability_history),
            )

        regime = RegimeType.from_index(best)
        return RegimePrediction(
            regime,
            regime,
            [*self.regime_history, regime],
            [*self.probability_history, probs.copy()],
        )

    def predict_sequence(self, data) -> list[RegimeType]:
        """Regimes for a sequence, carrying state from one observation to the next."""
        if not self.trained:
            raise InvalidInputError("Model has not been trained yet")

        state = self.with_state(None, [], [])
        regimes = []
        for x in np.asarray(data, dtype=np.float64).ravel():
            prediction = state.predict(float(x))
            state = state.with_state(
                prediction.current_regime,
                prediction.regime_history,
                prediction.probability_history,
            )
            regimes.append(prediction.regime)
        return regimes