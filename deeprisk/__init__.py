"""Numeric kernels, factor analysis and hidden Markov regime detection for risk estimation."""

__version__ = "0.1.0"
__all__ = ["compute", "factor_analysis", "hmm"]