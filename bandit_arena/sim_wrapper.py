"""
Batch replications: many independent sessions with a scripted user, for
comparing the strategies offline.
"""
import logging
import warnings

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from tqdm import tqdm

from bandit_arena.session import BanditSession
from bandit_arena.session_configurator import SessionConfig

logger = logging.getLogger(__name__)

USER_POLICIES = ("random", "round_robin", "best")


def _user_arm(policy, session, rng, round_index):
    ids = session.registry.ids
    if policy == "random":
        return ids[int(rng.integers(len(ids)))]
    if policy == "round_robin":
        return ids[round_index % len(ids)]
    return ids[session.registry.best_slot()]


def run_session(arm_configs, strategy_types, horizon, user_policy="random", hard_mode=False,
                seed=None, strategy_options=None):
    """
    Play one session for ``horizon`` rounds.

    Raises ``StrategyInitializationError`` if every strategy retires before
    ``horizon`` (e.g. ``optimal`` alone past its planning horizon).

    :return: long-format DataFrame with columns (round, series, payout, regret),
             cumulative values per round
    """
    if user_policy not in USER_POLICIES:
        raise ValueError(f"user_policy must be one of {USER_POLICIES}, got {user_policy!r}")

    config = SessionConfig(seed=seed, hard_mode=hard_mode, default_strategies=list(strategy_types),
                           strategy_options=strategy_options or {})
    session = BanditSession(config)
    session.configure_arms(arm_configs)
    # the session consumes the first four children of its seed
    user_rng = np.random.default_rng(np.random.SeedSequence(session.seed).spawn(5)[4])

    with warnings.catch_warnings():
        # retirements are expected when a horizon outlasts a planner
        warnings.simplefilter("ignore")
        for t in range(horizon):
            session.record_user_pull(_user_arm(user_policy, session, user_rng, t))

    payout = session.payout_series().reset_index().melt(id_vars="round", var_name="series", value_name="payout")
    regret = session.regret_series().reset_index().melt(id_vars="round", var_name="series", value_name="regret")
    df = payout.merge(regret, on=["round", "series"])
    return df.dropna(subset=["payout"]).reset_index(drop=True)


def run_replications(arm_configs, strategy_types, horizon, n_rep=100, user_policy="random",
                     hard_mode=False, seed=0, n_jobs=-1, strategy_options=None, progress=True):
    """
    Run ``n_rep`` independent sessions in parallel.

    Each replication gets its own seed spawned from ``seed``, so results do not
    depend on ``n_jobs``.

    Returns
    -------
    pd.DataFrame
        Columns ``rep``, ``round``, ``series``, ``payout``, ``regret``.
    """
    seeds = [int(s.generate_state(1)[0]) for s in np.random.SeedSequence(seed).spawn(n_rep)]
    logger.info("Running %d replications of %d rounds with %s", n_rep, horizon, list(strategy_types))

    reps = tqdm(range(n_rep), desc="replications", disable=not progress)
    frames = Parallel(n_jobs=n_jobs)(
        delayed(run_session)(arm_configs, strategy_types, horizon, user_policy, hard_mode,
                             seeds[rep], strategy_options)
        for rep in reps
    )
    for rep, frame in enumerate(frames):
        frame.insert(0, "rep", rep)
    return pd.concat(frames, ignore_index=True)


def summarize_replications(df):
    """
    Mean and standard error of cumulative payout and regret per (round, series).
    """
    grouped = df.groupby(["round", "series"])[["payout", "regret"]]
    summary = grouped.mean().add_suffix("_mean")
    sem = grouped.sem().add_suffix("_se")
    return summary.join(sem).reset_index()
