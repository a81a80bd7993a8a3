import numpy as np
import pandas as pd


# ── Single-session tables ────────────────────────────────────────────────────

def final_summary(session):
    """Final cumulative payout and regret of every tracked series.

    Parameters
    ----------
    session : BanditSession

    Returns
    -------
    pd.DataFrame
        Index: series id. Columns: ``name``, ``rounds``, ``payout``,
        ``regret``, ``payout_per_round``. Sorted by regret, lowest first.
    """
    meta = session.series_meta()
    rows = []
    for series_id, account in session.accountant.series.items():
        n = len(account.payouts)
        rows.append({
            "series": series_id,
            "name": meta.get(series_id, {}).get("name", series_id),
            "rounds": n,
            "payout": account.payout,
            "regret": account.regret,
            "payout_per_round": account.payout / n if n else np.nan,
        })
    if not rows:
        return pd.DataFrame(columns=["name", "rounds", "payout", "regret", "payout_per_round"])
    return pd.DataFrame(rows).set_index("series").sort_values("regret", kind="stable")


def regret_per_round(frame):
    """Per-round increments of a cumulative series frame.

    The first round of each series keeps its cumulative value; rounds outside
    a series' lifetime stay NaN.
    """
    increments = frame.diff()
    first = frame.notna() & frame.shift().isna()
    return increments.mask(first, frame)


# ── Replication tables ───────────────────────────────────────────────────────

def mean_curves(df, value="regret"):
    """Mean cumulative curve per series across replications.

    Parameters
    ----------
    df : pd.DataFrame
        Long format output of ``run_replications``.
    value : {"regret", "payout"}

    Returns
    -------
    pd.DataFrame
        Index: round. Columns: series. Values: mean of ``value`` over reps.
    """
    if value not in ("regret", "payout"):
        raise ValueError(f"value must be 'regret' or 'payout', got {value!r}")
    return df.pivot_table(index="round", columns="series", values=value, aggfunc="mean")
