"""
Reward distributions for the arena arms.

Every sampler below is written against uniform draws from a
``numpy.random.Generator`` only, so a round's rewards are fully determined by
the generator handed in (see ``round_rewards.RoundRewardGenerator``).

Supported families:
- normal (mean, std)            Box-Muller
- uniform (min, max)
- chi-squared (degrees of freedom)   sum of squared standard normals
- exponential (rate)            inverse CDF
- poisson (lambda)              Knuth multiplicative algorithm
- bernoulli (p)                 threshold on a uniform draw
"""
import math
from enum import Enum

import numpy as np

from bandit_arena.errors import ConfigurationError


class DistributionFamily(str, Enum):
    NORMAL = "normal"
    UNIFORM = "uniform"
    CHI_SQUARED = "chi-squared"
    EXPONENTIAL = "exponential"
    POISSON = "poisson"
    BERNOULLI = "bernoulli"


PARAMETER_NAMES = {
    DistributionFamily.NORMAL: ("mean", "std"),
    DistributionFamily.UNIFORM: ("min", "max"),
    DistributionFamily.CHI_SQUARED: ("degrees_of_freedom",),
    DistributionFamily.EXPONENTIAL: ("rate",),
    DistributionFamily.POISSON: ("lambda",),
    DistributionFamily.BERNOULLI: ("p",),
}

DEFAULT_PARAMETERS = {
    DistributionFamily.NORMAL: (0.0, 1.0),
    DistributionFamily.UNIFORM: (0.0, 1.0),
    DistributionFamily.CHI_SQUARED: (1.0,),
    DistributionFamily.EXPONENTIAL: (1.0,),
    DistributionFamily.POISSON: (1.0,),
    DistributionFamily.BERNOULLI: (0.5,),
}

# Ranges used when generating random arms. Defaults only, not invariants.
PARAMETER_RANGES = {
    "normal_mean": (-5.0, 5.0),
    "normal_std": (0.5, 3.0),
    "uniform_min": (-5.0, 5.0),
    "uniform_min_width": 1.0,
    "uniform_extra_width": 5.0,
    "chi_squared_df": (1, 10),
    "exponential_rate": (0.5, 5.0),
    "poisson_lambda": (0.5, 10.0),
    "bernoulli_p": (0.1, 0.9),
}

# Knuth's method multiplies uniforms until it drops below exp(-lambda); beyond this
# exp(-lambda) underflows to zero and the loop would never terminate.
MAX_POISSON_LAMBDA = 700.0


def as_family(family):
    """Coerce a family name (or enum member) to ``DistributionFamily``."""
    if isinstance(family, DistributionFamily):
        return family
    try:
        return DistributionFamily(str(family).lower())
    except ValueError:
        raise ConfigurationError(f"Unknown distribution family: {family!r}") from None


def validate_parameters(family, params):
    """Check ``params`` against the domain of ``family`` and return them as a float tuple.

    Raises
    ------
    ConfigurationError
        Wrong parameter count, non-finite values, or values outside the family's domain.
    """
    family = as_family(family)
    names = PARAMETER_NAMES[family]
    try:
        values = tuple(float(p) for p in params)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{family.value}: parameters must be numbers, got {params!r}") from None

    if len(values) != len(names):
        raise ConfigurationError(
            f"{family.value} takes {len(names)} parameter(s) {names}, got {len(values)}"
        )
    if not all(math.isfinite(v) for v in values):
        raise ConfigurationError(f"{family.value}: parameters must be finite, got {values}")

    if family is DistributionFamily.NORMAL:
        if values[1] < 0:
            raise ConfigurationError(f"normal: std must be >= 0, got {values[1]}")
    elif family is DistributionFamily.UNIFORM:
        if values[0] >= values[1]:
            raise ConfigurationError(f"uniform: min must be < max, got min={values[0]}, max={values[1]}")
    elif family is DistributionFamily.CHI_SQUARED:
        if values[0] < 1 or not values[0].is_integer():
            raise ConfigurationError(
                f"chi-squared: degrees of freedom must be a positive integer, got {values[0]}"
            )
    elif family is DistributionFamily.EXPONENTIAL:
        if values[0] <= 0:
            raise ConfigurationError(f"exponential: rate must be > 0, got {values[0]}")
    elif family is DistributionFamily.POISSON:
        if not 0 < values[0] <= MAX_POISSON_LAMBDA:
            raise ConfigurationError(
                f"poisson: lambda must be in (0, {MAX_POISSON_LAMBDA}], got {values[0]}"
            )
    elif family is DistributionFamily.BERNOULLI:
        if not 0.0 <= values[0] <= 1.0:
            raise ConfigurationError(f"bernoulli: p must be in [0, 1], got {values[0]}")
    return values


# ── Samplers ────────────────────────────────────────────────────────────────

def _open_uniform(rng):
    # uniform on (0, 1): log(0) must never be reached
    u = 0.0
    while u == 0.0:
        u = rng.random()
    return u


def sample_normal(rng, mean, std):
    u = _open_uniform(rng)
    v = _open_uniform(rng)
    z = math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)
    return mean + std * z


def sample_uniform(rng, low, high):
    return low + rng.random() * (high - low)


def sample_chi_squared(rng, degrees_of_freedom):
    total = 0.0
    for _ in range(int(degrees_of_freedom)):
        z = sample_normal(rng, 0.0, 1.0)
        total += z * z
    return total


def sample_exponential(rng, rate):
    return -math.log(1.0 - rng.random()) / rate


def sample_poisson(rng, lam):
    limit = math.exp(-lam)
    k = 0
    p = 1.0
    while True:
        k += 1
        p *= rng.random()
        if p <= limit:
            return float(k - 1)


def sample_bernoulli(rng, p):
    return 1.0 if rng.random() < p else 0.0


_SAMPLERS = {
    DistributionFamily.NORMAL: sample_normal,
    DistributionFamily.UNIFORM: sample_uniform,
    DistributionFamily.CHI_SQUARED: sample_chi_squared,
    DistributionFamily.EXPONENTIAL: sample_exponential,
    DistributionFamily.POISSON: sample_poisson,
    DistributionFamily.BERNOULLI: sample_bernoulli,
}


def sample(family, params, rng):
    """Draw one reward from ``family`` with ``params`` using ``rng``."""
    return float(_SAMPLERS[as_family(family)](rng, *params))


def expected_value(family, params):
    """Closed-form mean of the distribution."""
    family = as_family(family)
    if family is DistributionFamily.NORMAL:
        return float(params[0])
    if family is DistributionFamily.UNIFORM:
        return (params[0] + params[1]) / 2.0
    if family is DistributionFamily.EXPONENTIAL:
        return 1.0 / params[0]
    # poisson -> lambda, chi-squared -> df, bernoulli -> p
    return float(params[0])


def random_parameters(family, rng, ranges=None):
    """Draw a reasonable parameter tuple for ``family``.

    :param ranges: overrides for ``PARAMETER_RANGES``
    """
    r = dict(PARAMETER_RANGES)
    if ranges:
        r.update(ranges)
    family = as_family(family)

    if family is DistributionFamily.NORMAL:
        return (round(rng.uniform(*r["normal_mean"]), 2), round(rng.uniform(*r["normal_std"]), 2))
    if family is DistributionFamily.UNIFORM:
        low = round(rng.uniform(*r["uniform_min"]), 2)
        high = round(low + r["uniform_min_width"] + rng.random() * r["uniform_extra_width"], 2)
        return (low, high)
    if family is DistributionFamily.CHI_SQUARED:
        lo, hi = r["chi_squared_df"]
        return (float(rng.integers(lo, hi + 1)),)
    if family is DistributionFamily.EXPONENTIAL:
        return (round(rng.uniform(*r["exponential_rate"]), 2),)
    if family is DistributionFamily.POISSON:
        return (round(rng.uniform(*r["poisson_lambda"]), 2),)
    return (round(rng.uniform(*r["bernoulli_p"]), 3),)


def random_family(rng):
    families = list(DistributionFamily)
    return families[int(rng.integers(len(families)))]


def expected_values(configs):
    """Vector of expected values for a sequence of arm configs, in slot order."""
    return np.array([expected_value(c.family, c.parameters) for c in configs], dtype=float)
