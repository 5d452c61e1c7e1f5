# deeprisk

Building blocks for portfolio risk estimation, built on NumPy.

- **`deeprisk.compute`**: matrix multiplication, scaled dot-product attention and
  sample covariance. Each function takes an optional `GPUConfig`, whose `device`
  is `ComputeDevice.CPU` (the default) or `ComputeDevice.GPU`. There is no
  accelerator backend: `is_cuda_available()` returns `False`,
  `get_optimal_device()` returns `ComputeDevice.CPU`, and every computation runs
  on the CPU whatever the setting. The module also defines the package's errors:
  `ModelError` and its subclasses `DimensionMismatchError`,
  `InvalidDimensionError`, `InvalidInputError` and `NumericalError`.
- **`deeprisk.factor_analysis`**: `FactorAnalyzer` orthonormalises factor columns
  (Gram–Schmidt), computes `FactorQualityMetrics` for each factor (information
  coefficient, VIF, t-statistic, explained variance), keeps the factors that pass
  its thresholds, and estimates factor loadings and factor covariance.
  `calculate_correlation(x, y)` gives the Pearson correlation of two sequences.
- **`deeprisk.hmm`**: `MarketRegimeHMM`, a Gaussian hidden Markov model trained by
  Baum–Welch on a one-dimensional series, labelling observations with a
  `RegimeType`.

## Installation

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## Examples

### Covariance, multiplication and attention

```python
import numpy as np
from deeprisk.compute import GPUConfig, compute_attention, compute_covariance, matrix_multiply

data = np.array([[1.0, 4.0], [2.0, 5.0], [3.0, 6.0]], dtype=np.float32)
print(compute_covariance(data, GPUConfig()))   # [[1. 1.] [1. 1.]]

a = np.array([[1, 2, 3], [4, 5, 6]], dtype=np.float32)
b = np.array([[7, 8], [9, 10], [11, 12]], dtype=np.float32)
print(matrix_multiply(a, b))                    # [[ 58.  64.] [139. 154.]]

out = compute_attention(a, a + 6, np.ones((2, 2), dtype=np.float32))
```

Results are `float32` arrays. `matrix_multiply` and `compute_attention` raise
`DimensionMismatchError` when shapes do not fit; `compute_covariance` raises
`InvalidInputError` for fewer than two rows.

### Factor analysis

```python
import numpy as np
from deeprisk.factor_analysis import FactorAnalyzer

rng = np.random.default_rng(0)
factors = rng.normal(size=(200, 4)).astype(np.float32)
returns = rng.normal(size=(200, 10)).astype(np.float32)

analyzer = FactorAnalyzer.standard()            # also strict() and lenient()
factors = analyzer.orthogonalize_factors(factors)   # returns a new array
metrics = analyzer.calculate_factor_metrics(factors, returns)
loadings = analyzer.estimate_factor_loadings(factors, returns)   # assets x factors
factor_cov = analyzer.estimate_factor_covariance(factors)
```

`orthogonalize_factors` leaves its input untouched; a column that vanishes once
earlier columns are projected out is replaced by a random vector orthogonal to
them. The VIF in each metric is always 1.0, since factors are expected to be
orthogonalised first. `select_optimal_factors(factors, metrics)` raises
`InvalidInputError` when no factor meets the analyzer's thresholds, and
`estimate_factor_loadings` raises `NumericalError` when the factors are
collinear.

### Regime detection on a series

```python
import numpy as np
from deeprisk.hmm import MarketRegimeHMM, RegimeConfig

rng = np.random.default_rng(1)
series = np.concatenate([rng.normal(0.0, 0.5, 100), rng.normal(0.0, 2.0, 100)])

hmm = MarketRegimeHMM(config=RegimeConfig(min_prob=0.1))
hmm.train(series)                          # needs at least 10 observations
regimes = hmm.predict_sequence(series)     # one RegimeType per observation

prediction = hmm.predict(0.3)
print(prediction.regime, prediction.regime_history)
```

`predict` returns a `RegimePrediction` holding the regime and the state that
follows it; the model itself is not changed, and `with_state` makes a copy that
carries a given state. When the most likely regime's probability is below
`min_prob` and a current regime is set, the current regime is kept. Calling
`predict` or `predict_sequence` before `train` raises `InvalidInputError`.

Regimes are `RegimeType.LOW_VOLATILITY`, `NORMAL`, `HIGH_VOLATILITY` and
`CRISIS`; `str()` of a regime gives its display name, such as
`"High Volatility"`.

## What this package does not do

- It does not derive a volatility series from a matrix of asset returns;
  `MarketRegimeHMM` works on whatever one-dimensional series it is given.
- It has no model that rescales a covariance matrix by detected regime, and no
  neural-network model that generates risk factors from market data.
- It has no command-line interface, server or persistent storage.

All errors are subclasses of `deeprisk.compute.ModelError`.