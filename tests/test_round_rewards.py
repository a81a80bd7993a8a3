# tests/test_round_rewards.py
"""
Tests for the per-round reward vector.
"""

import numpy as np

from bandit_arena.arm_registry import validate_arm_configs
from bandit_arena.round_rewards import RoundRewardGenerator


class TestRoundRewards:
    """Reward vector generation and caching."""

    def test_cached_within_round(self, three_arms):
        """Asking twice for the same round returns the same vector."""
        configs = validate_arm_configs(three_arms)
        generator = RoundRewardGenerator(seed=1)
        first = generator.rewards_for_round(1, configs)
        assert generator.rewards_for_round(1, configs) is first

    def test_read_only(self, three_arms):
        """The vector cannot be modified by consumers."""
        generator = RoundRewardGenerator(seed=1)
        rewards = generator.rewards_for_round(1, validate_arm_configs(three_arms))
        assert not rewards.flags.writeable

    def test_depends_only_on_seed_and_round(self, three_arms):
        """Two generators with the same seed agree round by round."""
        configs = validate_arm_configs(three_arms)
        a, b = RoundRewardGenerator(seed=9), RoundRewardGenerator(seed=9)
        for t in range(1, 20):
            np.testing.assert_array_equal(a.rewards_for_round(t, configs), b.rewards_for_round(t, configs))

    def test_invalidate(self, three_arms, two_arms):
        """After invalidation the vector is recomputed for the new arms."""
        generator = RoundRewardGenerator(seed=3)
        assert len(generator.rewards_for_round(1, validate_arm_configs(three_arms))) == 3
        generator.invalidate()
        assert len(generator.rewards_for_round(1, validate_arm_configs(two_arms))) == 2
