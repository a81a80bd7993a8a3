# tests/test_sim_wrapper.py
"""
Tests for batch replications.
"""

import pytest

from bandit_arena import sim_wrapper as sw
from bandit_arena.errors import StrategyInitializationError


class TestRunSession:
    """A single scripted session."""

    def test_long_format(self, three_arms):
        """One row per round and series."""
        df = sw.run_session(three_arms, ["ucb", "exp3"], horizon=12, seed=4)
        assert list(df.columns) == ["round", "series", "payout", "regret"]
        assert len(df) == 12 * 4
        assert set(df["series"]) == {"user", "best_possible", "ucb", "exp3"}

    def test_deterministic(self, three_arms):
        """Same seed, same frame."""
        a = sw.run_session(three_arms, ["ucb"], horizon=10, seed=8, user_policy="random")
        b = sw.run_session(three_arms, ["ucb"], horizon=10, seed=8, user_policy="random")
        assert a.equals(b)

    def test_best_user_matches_baseline(self, three_arms):
        """A user who always pulls the best arm has zero regret."""
        df = sw.run_session(three_arms, ["ucb"], horizon=15, seed=2, user_policy="best")
        user = df[df["series"] == "user"].set_index("round")
        best = df[df["series"] == "best_possible"].set_index("round")
        assert (user["regret"] == 0).all()
        assert user["payout"].equals(best["payout"])

    def test_unknown_policy(self, three_arms):
        """Only the scripted policies are accepted."""
        with pytest.raises(ValueError):
            sw.run_session(three_arms, ["ucb"], horizon=5, user_policy="greedy")


class TestReplications:
    """Parallel replications."""

    def test_replications(self, three_arms):
        """Every replication contributes a full session."""
        df = sw.run_replications(three_arms, ["ucb"], horizon=10, n_rep=3, n_jobs=1,
                                 user_policy="round_robin", seed=0, progress=False)
        assert list(df.columns) == ["rep", "round", "series", "payout", "regret"]
        assert sorted(df["rep"].unique()) == [0, 1, 2]
        assert len(df) == 3 * 10 * 3

    def test_summary(self, three_arms):
        """The summary has one row per round and series."""
        df = sw.run_replications(three_arms, ["ucb"], horizon=8, n_rep=4, n_jobs=1, seed=1, progress=False)
        summary = sw.summarize_replications(df)
        assert len(summary) == 8 * 3
        assert {"payout_mean", "payout_se", "regret_mean", "regret_se"} <= set(summary.columns)
        best = summary[summary["series"] == "best_possible"]
        assert (best["regret_mean"] == 0).all()

    def test_all_strategies_retired(self, three_arms):
        """A run that outlasts its only strategy reports it."""
        with pytest.raises(StrategyInitializationError):
            sw.run_session(three_arms, ["optimal"], horizon=10, seed=1,
                           strategy_options={"optimal": {"horizon": 3}})
