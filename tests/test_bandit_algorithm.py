# tests/test_bandit_algorithm.py
"""
Tests for the arena strategies.
"""

import math

import numpy as np
import pytest

from bandit_arena.arm_registry import validate_arm_configs
from bandit_arena.bandit_algorithm import (
    EXP3,
    EXP3R,
    UCB1,
    ExploreThenCommit,
    NonStationaryUCB,
    PermutationAware,
)


def arms(n):
    return validate_arm_configs([{"id": i, "family": "bernoulli", "parameters": [0.5]} for i in range(n)],
                                max_arms=max(8, n))


class TestBaseContract:
    """Behaviour shared by every strategy."""

    @pytest.mark.parametrize("cls", [UCB1, NonStationaryUCB, EXP3, EXP3R, ExploreThenCommit])
    def test_select_is_pure(self, cls):
        """Selecting twice without an update gives the same arm and changes nothing."""
        strategy = cls(seed=3)
        strategy.initialize(arms(3))
        for t in range(15):
            state = strategy.get_state()
            first = strategy.select_arm()
            assert strategy.select_arm() == first
            assert strategy.get_state() == state
            strategy.update(first, float(t % 2))

    def test_unknown_arm(self):
        """Updating an unknown arm raises KeyError."""
        strategy = UCB1()
        strategy.initialize(arms(2))
        with pytest.raises(KeyError):
            strategy.update(42, 1.0)

    def test_reset(self):
        """Reset clears counts but keeps the arm ids."""
        strategy = UCB1()
        strategy.initialize(arms(2))
        strategy.update(0, 1.0)
        strategy.reset()
        assert strategy.total_pulls == 0
        assert [a.id for a in strategy.arms] == [0, 1]
        assert all(a.pulls == 0 for a in strategy.arms)

    def test_only_exp3r_is_permutation_aware(self):
        """Permutation notifications are opt-in."""
        assert isinstance(EXP3R(), PermutationAware)
        assert not isinstance(EXP3(), PermutationAware)
        assert not isinstance(UCB1(), PermutationAware)


class TestUCB1:
    """UCB1."""

    def test_pulls_unvisited_arms_first(self):
        """Zero-visit arms get an infinite bound, lowest slot first."""
        strategy = UCB1()
        strategy.initialize(arms(3))
        assert strategy.confidence_bounds() == [math.inf] * 3
        assert strategy.select_arm() == 0

    def test_prefers_arm_that_paid(self):
        """Rewards 10 then 0 on two arms: round 3 picks the arm that paid 10."""
        strategy = UCB1()
        strategy.initialize(arms(2))
        first = strategy.select_arm()
        strategy.update(first, 10.0)
        second = strategy.select_arm()
        assert second != first
        strategy.update(second, 0.0)
        assert strategy.select_arm() == first

    def test_no_nan_in_state(self):
        """State never carries NaN bounds."""
        strategy = UCB1()
        strategy.initialize(arms(2))
        strategy.update(0, 1.0)
        assert not any(isinstance(a["ucb"], float) and math.isnan(a["ucb"])
                       for a in strategy.get_state()["arms"])


class TestNonStationaryUCB:
    """Sliding-window UCB with change detection."""

    def test_detects_jump(self):
        """A sustained jump in an arm's rewards flags a change."""
        strategy = NonStationaryUCB(change_threshold=50.0)
        strategy.initialize(arms(2))
        for _ in range(10):
            strategy.update(0, 0.0)
        strategy.update(0, 100.0)
        assert strategy.get_state()["arms"][0]["change_detected"]

    def test_stable_rewards_do_not_trigger(self):
        """Constant rewards never flag a change."""
        strategy = NonStationaryUCB()
        strategy.initialize(arms(2))
        for _ in range(50):
            strategy.update(1, 1.0)
        assert not strategy.arms[1].change_detected

    def test_window_bounded(self):
        """The reward window never exceeds its size."""
        strategy = NonStationaryUCB(window_size=5)
        strategy.initialize(arms(2))
        for t in range(12):
            strategy.update(0, float(t))
        assert list(strategy.arms[0].recent) == [7.0, 8.0, 9.0, 10.0, 11.0]

    def test_rejects_bad_window(self):
        """Window size must be positive."""
        with pytest.raises(ValueError):
            NonStationaryUCB(window_size=0)

    def test_bounds_after_change_use_tail(self):
        """After a change the bound uses the post-change mean, coefficient 3 and pulls since the change."""
        strategy = NonStationaryUCB()
        strategy.initialize(arms(2))
        for _ in range(3):
            strategy.update(1, 0.0)
        for _ in range(10):
            strategy.update(0, 0.0)
        strategy.update(0, 100.0)
        assert strategy.arms[0].last_change_point == 11
        strategy.update(0, 5.0)
        strategy.update(0, 7.0)
        assert strategy.arms[0].last_change_point == 11

        bounds = strategy.confidence_bounds()
        assert bounds[0] == pytest.approx(6.0 + math.sqrt(3.0 * math.log(16) / 2))
        assert bounds[1] == pytest.approx(math.sqrt(2.0 * math.log(16) / 3))
        assert strategy.select_arm() == 0


class TestEXP3:
    """EXP3."""

    @pytest.mark.parametrize("n_arm", range(2, 9))
    def test_probabilities_sum_to_one(self, n_arm):
        """Probabilities form a distribution after every update."""
        strategy = EXP3(seed=n_arm)
        strategy.initialize(arms(n_arm))
        rng = np.random.default_rng(n_arm)
        for _ in range(100):
            arm = strategy.select_arm()
            strategy.update(arm, float(rng.normal(0.0, 20.0)))
            assert strategy.probabilities.sum() == pytest.approx(1.0)
            assert np.all(strategy.probabilities >= strategy.gamma / n_arm - 1e-12)

    def test_normalize_reward_clips(self):
        """Rewards outside the range are clipped to [0, 1]."""
        strategy = EXP3(reward_range=(-10.0, 10.0))
        assert strategy.normalize_reward(-50.0) == 0.0
        assert strategy.normalize_reward(50.0) == 1.0
        assert strategy.normalize_reward(0.0) == 0.5

    def test_zero_weights_fall_back_to_uniform(self):
        """A zero total weight gives uniform probabilities."""
        strategy = EXP3(gamma=0.2)
        strategy.initialize(arms(4))
        strategy.weights[:] = 0.0
        strategy._update_probabilities()
        np.testing.assert_allclose(strategy.probabilities, 0.25)

    def test_large_weights_are_rescaled(self):
        """Weights stay finite under long winning streaks."""
        strategy = EXP3(gamma=0.01, eta=50.0)
        strategy.initialize(arms(2))
        for _ in range(500):
            strategy.update(0, 10.0)
        assert np.all(np.isfinite(strategy.weights))
        assert strategy.probabilities.sum() == pytest.approx(1.0)

    @pytest.mark.parametrize("kwargs", [{"gamma": 0.0}, {"gamma": 1.5}, {"eta": 0.0},
                                        {"reward_range": (1.0, 1.0)}])
    def test_rejects_bad_hyperparameters(self, kwargs):
        """Invalid hyperparameters fail at construction."""
        with pytest.raises(ValueError):
            EXP3(**kwargs)


class TestEXP3R:
    """EXP3 with drift resets."""

    def test_permutation_resets_weights(self):
        """A permutation notification puts every weight back to 1."""
        strategy = EXP3R()
        strategy.initialize(arms(3))
        for _ in range(10):
            strategy.update(1, 8.0)
        assert strategy.weights[1] > 1.0
        strategy.handle_permutation(arms(3))
        np.testing.assert_array_equal(strategy.weights, np.ones(3))
        assert strategy.change_detected.all()

    def test_detects_drift(self):
        """A shift in an arm's rewards resets that arm."""
        strategy = EXP3R(threshold_multiplier=0.1)
        strategy.initialize(arms(2))
        for _ in range(15):
            strategy.update(0, 0.0)
        assert not strategy.change_detected[0]
        for _ in range(20):
            strategy.update(0, 10.0)
        assert strategy.change_detected[0]

    def test_constant_rewards_never_reset(self):
        """Zero-variance windows never count as drift."""
        strategy = EXP3R()
        strategy.initialize(arms(2))
        for _ in range(40):
            strategy.update(0, 3.0)
        assert not strategy.change_detected.any()
        assert strategy.probabilities.sum() == pytest.approx(1.0)

    def test_reset_cooldown(self):
        """No arm resets within ten rounds of its last reset, and the reset round skips the weight update."""
        strategy = EXP3R(threshold_multiplier=0.1)
        strategy.initialize(arms(2))
        for _ in range(20):
            strategy.update(0, 0.0)
        strategy.handle_permutation(arms(2))
        assert strategy.last_resets[0] == 20

        for reward in [10.0, 0.0] * 4 + [10.0]:
            strategy.update(0, reward)
        assert strategy.last_resets[0] == 20
        assert strategy.weights[0] > 1.0

        strategy.update(0, 0.0)
        assert strategy.last_resets[0] == 30
        assert strategy.weights[0] == 1.0
        assert len(strategy.windows[0]) == 0

    def test_change_flag_clears(self):
        """The change flag drops once more than 30 rounds pass since the arm's reset."""
        strategy = EXP3R()
        strategy.initialize(arms(2))
        strategy.handle_permutation(arms(2))
        for _ in range(30):
            strategy.update(1, 3.0)
        assert strategy.change_detected[1]
        strategy.update(1, 3.0)
        assert not strategy.change_detected[1]
        assert strategy.change_detected[0]


class TestExploreThenCommit:
    """A/B/C testing."""

    @pytest.mark.parametrize("n_arm, expected", [(2, 30), (5, 20), (8, 13)])
    def test_default_samples_per_arm(self, n_arm, expected):
        """Default sample size is clamp(ceil(100 / k), 10, 30)."""
        strategy = ExploreThenCommit()
        strategy.initialize(arms(n_arm))
        assert strategy.samples_per_arm == expected

    def test_commits_to_best_after_exploration(self):
        """k=2, 10 samples each: the 21st selection is the higher-mean arm and it stays."""
        strategy = ExploreThenCommit(samples_per_arm=10)
        strategy.initialize(arms(2))
        for t in range(20):
            assert strategy.phase == "exploring"
            arm = strategy.select_arm()
            assert arm == t % 2
            strategy.update(arm, 1.0 if arm == 1 else 0.0)
        assert strategy.phase == "committed"
        assert strategy.select_arm() == 1
        for _ in range(10):
            strategy.update(1, -5.0)
            assert strategy.select_arm() == 1

    def test_progress(self):
        """Progress is reported as a percentage of the exploration phase."""
        strategy = ExploreThenCommit(samples_per_arm=10)
        strategy.initialize(arms(2))
        for t in range(5):
            strategy.update(strategy.select_arm(), 1.0)
        assert strategy.get_state()["progress"] == 25
