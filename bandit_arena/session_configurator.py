import copy
import warnings
from dataclasses import dataclass, field
from typing import Optional

from bandit_arena.arm_registry import MAX_ARMS, MIN_ARMS
from bandit_arena.distributions import PARAMETER_RANGES
from bandit_arena.errors import ConfigurationError

# Per-type strategy hyperparameters. User options are merged on top of these.
DEFAULT_STRATEGY_OPTIONS = {
    "ucb": {},
    "ns-ucb": {"window_size": 20, "change_threshold": 50.0},
    "abtest": {},
    "exp3": {"gamma": 0.1, "eta": 0.1},
    "exp3r": {"gamma": 0.1, "eta": 0.1, "window_size": 20, "threshold_multiplier": 2.0},
    "optimal": {"horizon": None, "priors": None},
}


@dataclass
class SessionConfig:
    """
    Configuration for an arena session.

    ----------------------------------------
    Randomness
    ----------------------------------------
    seed (int or None): Root seed. The hidden reward stream, the hard-mode
                        permutations and each strategy's own draws all derive
                        from it through independent streams. ``None`` draws a
                        fresh seed from the OS.

    ----------------------------------------
    Arm settings
    ----------------------------------------
    min_arms, max_arms (int): Allowed number of arms, within [2, 8].
    parameter_ranges (dict): Overrides for the ranges used when generating random arms.

    ----------------------------------------
    Hard mode
    ----------------------------------------
    hard_mode (bool): Start with hard mode on.
    permutation_probability (float): Chance of a silent distribution shuffle before each user pull.

    ----------------------------------------
    Strategies
    ----------------------------------------
    default_strategies (list of str): Strategy types active after the first ``configure_arms``.
    strategy_options (dict): Per-type hyperparameter overrides, merged over ``DEFAULT_STRATEGY_OPTIONS``.
    """

    seed: Optional[int] = None

    min_arms: int = MIN_ARMS
    max_arms: int = MAX_ARMS
    parameter_ranges: dict = field(default_factory=dict)

    hard_mode: bool = False
    permutation_probability: float = 0.05

    default_strategies: list = field(default_factory=lambda: ["ucb"])
    strategy_options: dict = field(default_factory=dict)

    def __post_init__(self):
        if not MIN_ARMS <= self.min_arms <= self.max_arms <= MAX_ARMS:
            raise ConfigurationError(
                f"Need {MIN_ARMS} <= min_arms <= max_arms <= {MAX_ARMS}, got {self.min_arms}, {self.max_arms}"
            )
        if not self.default_strategies:
            raise ValueError("default_strategies must name at least one strategy type")
        if not 0.0 <= self.permutation_probability <= 1.0:
            raise ValueError(f"permutation_probability must be in [0, 1], got {self.permutation_probability}")
        if self.permutation_probability > 0.5:
            warnings.warn(
                f"permutation_probability={self.permutation_probability} reshuffles arms on most pulls; "
                f"no strategy can learn anything in that setting."
            )
        unknown = set(self.parameter_ranges) - set(PARAMETER_RANGES)
        if unknown:
            raise ValueError(f"Unknown parameter ranges: {sorted(unknown)}")

    def options_for(self, type_id, overrides=None):
        """Defaults for ``type_id`` with the session-level and call-level overrides applied."""
        options = copy.deepcopy(DEFAULT_STRATEGY_OPTIONS.get(type_id, {}))
        options.update(self.strategy_options.get(type_id, {}))
        if overrides:
            options.update(overrides)
        return options
