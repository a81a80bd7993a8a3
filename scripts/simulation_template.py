"""
template for running the arena offline (how to set up arms, strategies etc)
"""

import logging

from bandit_arena import sim_wrapper as sw
from bandit_arena.analysis import final_summary, mean_curves
from bandit_arena.plotting import plot_series, plot_session
from bandit_arena.session import BanditSession
from bandit_arena.session_configurator import SessionConfig

logging.basicConfig(level=logging.INFO)

arm_configs = [
    {"id": 0, "family": "normal", "parameters": [1.0, 1.0]},
    {"id": 1, "family": "bernoulli", "parameters": [0.7]},
    {"id": 2, "family": "exponential", "parameters": [2.0]},
]
strategies = ["ucb", "ns-ucb", "abtest", "exp3", "exp3r", "optimal"]

"""
Part 1: a single session with a scripted player
"""
session = BanditSession(SessionConfig(seed=7, default_strategies=strategies, hard_mode=True))
session.configure_arms(arm_configs)
for t in range(200):
    session.record_user_pull(arm_configs[t % len(arm_configs)]["id"])

print(final_summary(session))
plot_session(session)

"""
Part 2: replications
"""
res_df = sw.run_replications(arm_configs, strategies, horizon=200, n_rep=50,
                             user_policy="random", hard_mode=True, seed=1)
print(sw.summarize_replications(res_df).tail())
plot_series(mean_curves(res_df, "regret"), title="Mean cumulative regret", ylabel="Regret")
