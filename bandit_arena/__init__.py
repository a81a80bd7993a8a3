"""Multi-armed bandit arena: a user and a set of strategies pulling the same arms."""

from bandit_arena.arm_registry import ArmConfig, ArmRegistry
from bandit_arena.bandit_algorithm import EXP3, EXP3R, UCB1, ExploreThenCommit, NonStationaryUCB
from bandit_arena.coordinator import STRATEGY_META, STRATEGY_REGISTRY, StrategyCoordinator, create_strategy
from bandit_arena.distributions import DistributionFamily
from bandit_arena.errors import (
    BanditArenaError, ConfigurationError, StateLookupError, StrategyInitializationError,
)
from bandit_arena.optimal_policy import BetaBernoulliPlanner, OptimalDP
from bandit_arena.session import BanditSession, RoundOutcome
from bandit_arena.session_configurator import SessionConfig
