import numpy as np
import pytest

from deeprisk.compute import InvalidInputError
from deeprisk.hmm import MarketRegimeHMM, RegimeConfig, RegimeType


def _two_regime_series(seed=7):
    rng = np.random.default_rng(seed)
    low = rng.normal(0.0, 0.5, 100)
    high = rng.normal(0.0, 2.0, 100)
    return np.concatenate([low, high])


def _fixed_model(min_prob=0.6):
    hmm = MarketRegimeHMM(RegimeConfig(min_prob=min_prob))
    hmm.emission_means = np.array([0.0, 1.0, 2.0, 3.0])
    hmm.emission_vars = np.full(4, 0.01)
    hmm.trained = True
    return hmm


def test_hmm_initialization():
    hmm = MarketRegimeHMM()
    assert hmm.n_regimes == 4
    assert hmm.trained is False
    assert abs(hmm.initial_probs.sum() - 1.0) < 1e-6
    for row in hmm.transition_matrix:
        assert abs(row.sum() - 1.0) < 1e-6


def test_default_config_values():
    config = RegimeConfig()
    assert (config.n_regimes, config.max_iter) == (4, 100)
    assert config.tol == 1e-6
    assert config.random_seed is None
    assert config.min_prob == 0.6


def test_regime_display_names():
    names = [str(RegimeType.from_index(i)) for i in range(4)]
    assert names == ["Low Volatility", "Normal", "High Volatility", "Crisis"]


def test_regime_index_mapping():
    assert [RegimeType.from_index(i) for i in range(4)] == [
        RegimeType.LOW_VOLATILITY,
        RegimeType.NORMAL,
        RegimeType.HIGH_VOLATILITY,
        RegimeType.CRISIS,
    ]
    assert RegimeType.from_index(9) is RegimeType.NORMAL
    assert RegimeType.CRISIS.index == 3


def test_hmm_training():
    hmm = MarketRegimeHMM()
    hmm.train(_two_regime_series())
    assert hmm.trained is True
    assert np.all(hmm.emission_vars > 0.0)
    assert np.allclose(hmm.transition_matrix.sum(axis=1), 1.0)
    assert abs(hmm.initial_probs.sum() - 1.0) < 1e-6


def test_training_requires_ten_observations():
    hmm = MarketRegimeHMM()
    with pytest.raises(InvalidInputError):
        hmm.train(np.zeros(9))


def test_predict_requires_training():
    with pytest.raises(InvalidInputError):
        MarketRegimeHMM().predict(0.5)


def test_predict_sequence_requires_training():
    with pytest.raises(InvalidInputError):
        MarketRegimeHMM().predict_sequence([0.1, 0.2])


def test_predict_picks_nearest_state():
    hmm = _fixed_model()
    prediction = hmm.predict(2.0)
    assert prediction.regime is RegimeType.HIGH_VOLATILITY
    assert prediction.current_regime is RegimeType.HIGH_VOLATILITY
    assert prediction.regime_history == [RegimeType.HIGH_VOLATILITY]
    assert len(prediction.probability_history) == 1
    assert abs(prediction.probability_history[0].sum() - 1.0) < 1e-9
    assert prediction.probability_history[0][2] > 0.99


def test_predict_below_threshold_keeps_current_regime():
    hmm = _fixed_model(min_prob=0.99)
    state = hmm.with_state(RegimeType.CRISIS, [RegimeType.CRISIS], [np.ones(4) / 4])
    # Halfway between two states gives roughly even probabilities.
    prediction = state.predict(0.5)
    assert prediction.regime is RegimeType.CRISIS
    assert prediction.regime_history == [RegimeType.CRISIS]
    assert len(prediction.probability_history) == 1


def test_predict_uses_transition_from_current_regime():
    hmm = _fixed_model(min_prob=0.0)
    hmm.transition_matrix = np.array(
        [
            [1.0, 0.0, 0.0, 0.0],
            [0.0, 1.0, 0.0, 0.0],
            [0.0, 0.0, 1.0, 0.0],
            [0.0, 0.0, 0.0, 1.0],
        ]
    )
    state = hmm.with_state(RegimeType.NORMAL, [], [])
    assert state.predict(3.0).regime is RegimeType.NORMAL


def test_with_state_copies_parameters():
    hmm = _fixed_model()
    clone = hmm.with_state(RegimeType.NORMAL, [RegimeType.NORMAL], [])
    assert clone.current_regime is RegimeType.NORMAL
    assert clone.regime_history == [RegimeType.NORMAL]
    assert clone.trained is True
    assert np.array_equal(clone.emission_means, hmm.emission_means)
    clone.emission_means[0] = 42.0
    assert hmm.emission_means[0] == 0.0


def test_predict_sequence_length_and_separation():
    rng = np.random.default_rng(3)
    low = rng.normal(0.01, 0.001, 60)
    high = rng.normal(1.0, 0.1, 60)
    series = np.concatenate([low, high])
    hmm = MarketRegimeHMM(RegimeConfig(min_prob=0.1, random_seed=42))
    hmm.train(series)
    regimes = hmm.predict_sequence(series)
    assert len(regimes) == len(series)
    assert len(set(regimes)) >= 2
    assert regimes[0] != regimes[-1]


def test_predict_sequence_on_fixed_model():
    hmm = _fixed_model(min_prob=0.5)
    assert hmm.predict_sequence([0.0, 3.0, 1.0]) == [
        RegimeType.LOW_VOLATILITY,
        RegimeType.CRISIS,
        RegimeType.NORMAL,
    ]
    assert hmm.current_regime is None


def test_invalid_regime_count():
    with pytest.raises(InvalidInputError):
        MarketRegimeHMM(RegimeConfig(n_regimes=0))