import logging
from dataclasses import dataclass, field

import numpy as np

from bandit_arena.accounting import RegretAccountant
from bandit_arena.arm_registry import ArmRegistry, generate_random_arm_configs, validate_arm_configs
from bandit_arena.bandit_algorithm import ArmState
from bandit_arena.coordinator import STRATEGY_META, StrategyCoordinator
from bandit_arena.errors import ConfigurationError, StrategyInitializationError
from bandit_arena.round_rewards import RoundRewardGenerator
from bandit_arena.session_configurator import SessionConfig

logger = logging.getLogger(__name__)

USER = "user"
BEST_POSSIBLE = "best_possible"


@dataclass
class RoundOutcome:
    """Everything that happened in one round of play."""

    round_index: int
    user_arm: int
    rewards: tuple
    strategy_arms: dict = field(default_factory=dict)
    strategy_rewards: dict = field(default_factory=dict)
    payouts: dict = field(default_factory=dict)
    regrets: dict = field(default_factory=dict)
    cumulative_payouts: dict = field(default_factory=dict)
    cumulative_regrets: dict = field(default_factory=dict)
    permuted: bool = False
    retired: list = field(default_factory=list)
    recommendations: dict = field(default_factory=dict)

    @property
    def user_reward(self):
        return self.payouts[USER]


@dataclass
class UserArmTally(ArmState):
    """The user's own record on one machine. Follows the arm id through permutations."""

    payouts: list = field(default_factory=list)

    def record(self, reward):
        super().record(reward)
        self.payouts.append(reward)


def _seed_int(seq):
    return int(seq.generate_state(1)[0])


class BanditSession:
    """
    One player's arena: an arm set, the user's pulls, the active strategies
    racing on the same hidden rewards, and their payout/regret accounts.

    A round runs in a fixed order: hard-mode permutation check, reward
    vector, strategies, accounting.

    ``requested_types`` is the user's strategy selection. Strategies retired
    mid-game leave ``active_types`` but stay requested, so ``reset`` and
    ``configure_arms`` bring them back.
    """

    def __init__(self, config=None):
        self.config = config if config is not None else SessionConfig()

        root = np.random.SeedSequence(self.config.seed)
        self.seed = root.entropy
        reward_seq, permutation_seq, strategy_seq, arm_seq = root.spawn(4)
        self.reward_generator = RoundRewardGenerator(_seed_int(reward_seq))
        self._permutation_rng = np.random.default_rng(permutation_seq)
        self._arm_rng = np.random.default_rng(arm_seq)
        self._strategy_seed = _seed_int(strategy_seq)

        self.registry = ArmRegistry(self.config.min_arms, self.config.max_arms)
        self.hard_mode = self.config.hard_mode
        self.requested_types = list(self.config.default_strategies)
        self.strategy_overrides = {}
        self.coordinator = None
        self.accountant = RegretAccountant()
        self.user_arms = {}
        self.round_index = 0
        self.outcomes = []

    # ── configuration ────────────────────────────────────────────────────

    @property
    def configured(self):
        return len(self.registry) > 0

    @property
    def active_types(self):
        """Strategies racing right now."""
        if self.coordinator is None:
            return list(self.requested_types)
        return self.coordinator.active_types

    def _require_arms(self):
        if not self.configured:
            raise ConfigurationError("No arms configured; call configure_arms first")

    def _strategy_options(self, types, overrides):
        return {t: self.config.options_for(t, overrides.get(t)) for t in types}

    def _build_coordinator(self, configs, types, overrides):
        if not types:
            raise StrategyInitializationError("No strategy types selected")
        coordinator = StrategyCoordinator(configs, seed=self._strategy_seed)
        coordinator.set_active(types, self._strategy_options(types, overrides))
        return coordinator

    def _start_fresh(self):
        self.reward_generator.invalidate()
        self.accountant = RegretAccountant()
        self.user_arms = {c.id: UserArmTally(id=c.id) for c in self.registry.configs}
        self.round_index = 0
        self.outcomes = []

    def configure_arms(self, arm_configs):
        """
        Replace the arm set.

        Everything is validated first; on error nothing changes. On success the
        registry, every requested strategy and all accounts are rebuilt.
        """
        configs = validate_arm_configs(arm_configs, self.config.min_arms, self.config.max_arms)
        coordinator = self._build_coordinator(configs, self.requested_types, self.strategy_overrides)

        self.registry.configure(configs)
        self.coordinator = coordinator
        self.requested_types = coordinator.active_types
        self._start_fresh()
        logger.info("Session configured: %d arms, strategies %s", len(configs), self.requested_types)
        return self.registry.configs

    def configure_random_arms(self, n_arm):
        raw = generate_random_arm_configs(n_arm, self._arm_rng, self.config.parameter_ranges or None)
        return self.configure_arms(raw)

    def set_active_strategies(self, types, per_type_options=None):
        """
        Choose which strategies race the user.

        Unchanged strategies keep their state; new, re-optioned or previously
        retired ones start fresh. Returns the types that could not be built.
        """
        types = list(dict.fromkeys(types))
        if not types:
            raise StrategyInitializationError("No strategy types selected")
        overrides = dict(self.strategy_overrides)
        for type_id, options in (per_type_options or {}).items():
            overrides[type_id] = dict(options)

        failures = {}
        if self.coordinator is not None:
            failures = self.coordinator.set_active(types, self._strategy_options(types, overrides))
            types = self.coordinator.active_types
        self.requested_types = types
        self.strategy_overrides = overrides
        return failures

    def set_hard_mode(self, enabled):
        self.hard_mode = bool(enabled)
        logger.info("Hard mode %s", "on" if self.hard_mode else "off")

    def reset(self):
        """Same arms, fresh requested strategies and accounts. Rewards replay from round 1."""
        self._require_arms()
        self.coordinator = self._build_coordinator(self.registry.configs, self.requested_types,
                                                   self.strategy_overrides)
        self.requested_types = self.coordinator.active_types
        self._start_fresh()

    # ── play ─────────────────────────────────────────────────────────────

    def _permute(self):
        new_configs = self.registry.permute(self._permutation_rng)
        if new_configs is None:
            return False
        self.coordinator.notify_permutation(new_configs)
        return True

    def force_permutation(self):
        """Shuffle the arm distributions now. Returns whether anything changed."""
        self._require_arms()
        return self._permute()

    def record_user_pull(self, arm_id):
        """
        Play one round with the user pulling ``arm_id``.

        If this round retires the last active strategy, the round is still
        recorded (see ``outcomes``) and ``StrategyInitializationError`` is
        raised. Further pulls raise the same error until ``reset`` or
        ``set_active_strategies`` restores a strategy.
        """
        self._require_arms()
        user_slot = self.registry.slot_of(arm_id)
        if not self.coordinator.strategies:
            raise StrategyInitializationError(
                "No active strategies left; call reset() or set_active_strategies()"
            )

        permuted = False
        if self.hard_mode and self._permutation_rng.random() < self.config.permutation_probability:
            permuted = self._permute()

        self.round_index += 1
        rewards = self.reward_generator.rewards_for_round(self.round_index, self.registry.configs)

        played, retired = self.coordinator.play_round(rewards)

        choices = {USER: user_slot, BEST_POSSIBLE: self.registry.best_slot()}
        for type_id, (strategy_arm, _) in played.items():
            choices[type_id] = self.registry.slot_of(strategy_arm)
        rounds = self.accountant.record_round(self.round_index, rewards,
                                              self.registry.expected_values(), choices)
        self.user_arms[arm_id].record(float(rewards[user_slot]))

        outcome = RoundOutcome(
            round_index=self.round_index,
            user_arm=arm_id,
            rewards=tuple(rewards.tolist()),
            strategy_arms={t: a for t, (a, _) in played.items()},
            strategy_rewards={t: r for t, (_, r) in played.items()},
            payouts={name: r.payout for name, r in rounds.items()},
            regrets={name: r.regret for name, r in rounds.items()},
            cumulative_payouts={name: r.cumulative_payout for name, r in rounds.items()},
            cumulative_regrets={name: r.cumulative_regret for name, r in rounds.items()},
            permuted=permuted,
            retired=retired,
            recommendations=self.coordinator.recommendations(),
        )
        self.outcomes.append(outcome)
        logger.debug("Round %d: user pulled %s, reward %.3f", self.round_index, arm_id,
                     outcome.user_reward)
        if retired and not self.coordinator.strategies:
            raise StrategyInitializationError(
                f"Round {self.round_index} retired the last active strategies {retired}",
                failures={t: "retired" for t in retired},
            )
        return outcome

    # ── series ───────────────────────────────────────────────────────────

    def payout_series(self):
        return self.accountant.payout_frame()

    def regret_series(self):
        return self.accountant.regret_frame()

    def series_meta(self):
        names = [USER, BEST_POSSIBLE] + list(self.active_types)
        return {name: dict(STRATEGY_META[name]) for name in names if name in STRATEGY_META}

    def strategy_states(self):
        if self.coordinator is None:
            return {}
        return self.coordinator.states()

    def user_arm_stats(self):
        """Per arm id: the user's pulls, total and mean payout, and payout history."""
        return {
            arm_id: {
                "pulls": tally.pulls,
                "total_payout": tally.total_payout,
                "mean": tally.mean,
                "payouts": list(tally.payouts),
            }
            for arm_id, tally in self.user_arms.items()
        }
