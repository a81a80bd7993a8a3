# tests/test_distributions.py
"""
Tests for the reward distributions.
"""

import numpy as np
import pytest

from bandit_arena import distributions as dist
from bandit_arena.distributions import DistributionFamily
from bandit_arena.errors import ConfigurationError


class TestValidation:
    """Parameter validation per family."""

    def test_family_by_name(self):
        """Family names are case insensitive."""
        assert dist.as_family("Chi-Squared") is DistributionFamily.CHI_SQUARED

    def test_unknown_family(self):
        """Unknown families are a configuration error."""
        with pytest.raises(ConfigurationError):
            dist.as_family("cauchy")

    def test_returns_float_tuple(self):
        """Valid parameters come back as floats."""
        assert dist.validate_parameters("normal", [1, 2]) == (1.0, 2.0)

    @pytest.mark.parametrize("family, params", [
        ("normal", [0.0, -1.0]),
        ("normal", [0.0]),
        ("uniform", [2.0, 2.0]),
        ("chi-squared", [2.5]),
        ("chi-squared", [0]),
        ("exponential", [0.0]),
        ("poisson", [0.0]),
        ("poisson", [dist.MAX_POISSON_LAMBDA + 1]),
        ("bernoulli", [1.5]),
        ("bernoulli", ["abc"]),
        ("normal", [float("nan"), 1.0]),
    ])
    def test_rejects_out_of_domain(self, family, params):
        """Out-of-domain parameters are rejected."""
        with pytest.raises(ConfigurationError):
            dist.validate_parameters(family, params)


class TestSampling:
    """Samplers and expected values."""

    def test_deterministic_for_same_generator_seed(self):
        """Same generator seed gives the same draw."""
        a = dist.sample("normal", (0.0, 1.0), np.random.default_rng(5))
        b = dist.sample("normal", (0.0, 1.0), np.random.default_rng(5))
        assert a == b

    def test_bernoulli_extremes(self):
        """p = 0 and p = 1 are degenerate."""
        rng = np.random.default_rng(0)
        assert all(dist.sample("bernoulli", (1.0,), rng) == 1.0 for _ in range(50))
        assert all(dist.sample("bernoulli", (0.0,), rng) == 0.0 for _ in range(50))

    def test_uniform_within_bounds(self):
        """Uniform draws stay in [min, max)."""
        rng = np.random.default_rng(1)
        draws = [dist.sample("uniform", (-2.0, 3.0), rng) for _ in range(500)]
        assert min(draws) >= -2.0
        assert max(draws) < 3.0

    def test_poisson_is_non_negative_integer(self):
        """Poisson draws are non-negative integers."""
        rng = np.random.default_rng(2)
        draws = [dist.sample("poisson", (4.0,), rng) for _ in range(200)]
        assert all(d >= 0 and float(d).is_integer() for d in draws)

    @pytest.mark.parametrize("family, params", [
        ("normal", (2.0, 1.0)),
        ("uniform", (0.0, 4.0)),
        ("chi-squared", (3.0,)),
        ("exponential", (2.0,)),
        ("poisson", (3.0,)),
        ("bernoulli", (0.3,)),
    ])
    def test_sample_mean_close_to_expected_value(self, family, params):
        """Empirical mean of many draws is close to the closed-form mean."""
        rng = np.random.default_rng(42)
        draws = np.array([dist.sample(family, params, rng) for _ in range(20000)])
        assert abs(draws.mean() - dist.expected_value(family, params)) < 0.1

    def test_expected_values(self):
        """Closed-form means per family."""
        assert dist.expected_value("uniform", (1.0, 3.0)) == 2.0
        assert dist.expected_value("exponential", (4.0,)) == 0.25
        assert dist.expected_value("chi-squared", (5.0,)) == 5.0


class TestRandomParameters:
    """Random arm parameter generation."""

    def test_every_family_yields_valid_parameters(self):
        """Generated parameters always validate."""
        rng = np.random.default_rng(3)
        for family in DistributionFamily:
            for _ in range(20):
                params = dist.random_parameters(family, rng)
                dist.validate_parameters(family, params)

    def test_range_override(self):
        """Overrides replace the default range."""
        rng = np.random.default_rng(4)
        params = dist.random_parameters("bernoulli", rng, {"bernoulli_p": (0.5, 0.5)})
        assert params == (0.5,)
