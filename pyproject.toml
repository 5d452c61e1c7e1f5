[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "deeprisk"
version = "0.1.0"
description = "Numeric kernels, factor analysis and hidden Markov regime detection for portfolio risk"
requires-python = ">=3.10"
dependencies = ["numpy"]
keywords = ["risk", "covariance", "factor-analysis", "hidden-markov-model", "market-regime", "finance"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Financial and Insurance Industry",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial :: Investment",
    "Topic :: Scientific/Engineering :: Mathematics",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["deeprisk"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
