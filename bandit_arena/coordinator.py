import logging
import warnings
import zlib

import numpy as np

from bandit_arena.bandit_algorithm import EXP3, EXP3R, UCB1, ExploreThenCommit, NonStationaryUCB, PermutationAware
from bandit_arena.errors import StateLookupError, StrategyInitializationError
from bandit_arena.optimal_policy import OptimalDP

logger = logging.getLogger(__name__)

STRATEGY_REGISTRY = {
    "ucb": UCB1,
    "ns-ucb": NonStationaryUCB,
    "abtest": ExploreThenCommit,
    "exp3": EXP3,
    "exp3r": EXP3R,
    "optimal": OptimalDP,
}

# Stable id -> display name -> color, consumed by charts and legends.
STRATEGY_META = {
    "user": {"name": "Your Pulls", "full_name": "Your Pulls", "color": "#000000"},
    "best_possible": {"name": "Best Possible", "full_name": "Best Possible (true best arm)", "color": "#32CD32"},
    "ucb": {"name": "UCB", "full_name": "Upper Confidence Bound", "color": "#4285F4"},
    "ns-ucb": {"name": "Non-Stationary UCB", "full_name": "Non-Stationary UCB", "color": "#34A853"},
    "abtest": {"name": "A/B Testing", "full_name": "A/B/C Testing", "color": "#FBBC05"},
    "exp3": {"name": "EXP3", "full_name": "EXP3 (Adversarial)", "color": "#EA4335"},
    "exp3r": {"name": "EXP3-R", "full_name": "EXP3-R (Adaptive)", "color": "#8F44AD"},
    "optimal": {"name": "Optimal Policy", "full_name": "Bayes-Optimal DP Policy", "color": "#DC143C"},
}


def strategy_seed(root_seed, type_id):
    """Seed for one strategy's private draws, independent of which other strategies run."""
    seq = np.random.SeedSequence([int(root_seed), zlib.crc32(type_id.encode())])
    return int(seq.generate_state(1)[0])


def create_strategy(type_id, arm_configs, options=None, seed=0):
    """
    Build and initialize a strategy of type ``type_id``.

    Only fully initialized instances are returned; anything that goes wrong is
    raised as ``StrategyInitializationError``.
    """
    try:
        cls = STRATEGY_REGISTRY[type_id]
    except KeyError:
        raise StrategyInitializationError(f"Unknown strategy type: {type_id!r}",
                                          failures={type_id: "unknown type"}) from None

    options = dict(options or {})
    try:
        strategy = cls(seed=strategy_seed(seed, type_id), **options)
        strategy.initialize(arm_configs)
    except (TypeError, ValueError) as exc:
        raise StrategyInitializationError(f"Could not build strategy {type_id!r}: {exc}",
                                          failures={type_id: str(exc)}) from exc
    logger.info("Initialized strategy %s with options %s", type_id, options)
    return strategy


class StrategyCoordinator:
    """
    Owns the active strategies of a session for one arm set.

    Every round each strategy selects from its own state, is resolved against
    the shared reward vector and updated on its own instance only. Strategies
    never see each other.
    """

    def __init__(self, arm_configs, seed=0):
        self.arm_configs = tuple(arm_configs)
        self.seed = seed
        self._slots = {c.id: slot for slot, c in enumerate(self.arm_configs)}
        self.strategies = {}
        self.options = {}

    @property
    def active_types(self):
        return list(self.strategies)

    def set_active(self, types, per_type_options=None):
        """
        Make ``types`` the active set.

        Instances whose options did not change are kept as they are. Types that
        cannot be built are left out with a warning. If none of the requested
        types can be built, ``StrategyInitializationError`` is raised and the
        previous set stays in place.
        """
        types = list(dict.fromkeys(types))
        if not types:
            raise StrategyInitializationError("No strategy types selected")
        per_type_options = per_type_options or {}

        strategies, options, failures = {}, {}, {}
        for type_id in types:
            opts = dict(per_type_options.get(type_id, {}))
            if type_id in self.strategies and self.options.get(type_id) == opts:
                strategies[type_id] = self.strategies[type_id]
                options[type_id] = opts
                continue
            try:
                strategies[type_id] = create_strategy(type_id, self.arm_configs, opts, self.seed)
                options[type_id] = opts
            except StrategyInitializationError as exc:
                failures.update(exc.failures)
                logger.warning("Excluding strategy %s: %s", type_id, exc)
                warnings.warn(f"Strategy {type_id!r} excluded: {exc}")

        if not strategies:
            raise StrategyInitializationError(
                f"None of the requested strategies could be initialized: {failures}", failures=failures
            )
        self.strategies = strategies
        self.options = options
        return failures

    def slot_of(self, arm_id):
        return self._slots[arm_id]

    def play_round(self, rewards):
        """
        Run select -> resolve -> update for every active strategy.

        Returns ``(results, retired)``: ``results`` maps type id to
        ``(arm_id, reward)``; ``retired`` lists strategies dropped this round
        because they could not produce an action.
        """
        results, retired = {}, []
        for type_id, strategy in list(self.strategies.items()):
            try:
                arm_id = strategy.select_arm()
            except StateLookupError as exc:
                logger.warning("Retiring strategy %s: %s", type_id, exc)
                warnings.warn(f"Strategy {type_id!r} retired: {exc}")
                del self.strategies[type_id]
                self.options.pop(type_id, None)
                retired.append(type_id)
                continue
            reward = float(rewards[self._slots[arm_id]])
            strategy.update(arm_id, reward)
            results[type_id] = (arm_id, reward)
        return results, retired

    def recommendations(self):
        """Each strategy's pick for the next round; ``None`` where it has none."""
        picks = {}
        for type_id, strategy in self.strategies.items():
            try:
                picks[type_id] = strategy.select_arm()
            except StateLookupError:
                picks[type_id] = None
        return picks

    def notify_permutation(self, new_configs):
        self.arm_configs = tuple(new_configs)
        for type_id, strategy in self.strategies.items():
            if isinstance(strategy, PermutationAware):
                logger.debug("Notifying %s of permutation", type_id)
                strategy.handle_permutation(self.arm_configs)

    def reset(self):
        for strategy in self.strategies.values():
            strategy.reset()

    def states(self):
        return {type_id: strategy.get_state() for type_id, strategy in self.strategies.items()}
