import matplotlib.pyplot as plt

from bandit_arena.coordinator import STRATEGY_META


def plot_series(frame, meta=None, title=None, ylabel=None, ax=None):
    """Plot cumulative curves, one line per series.

    Parameters
    ----------
    frame : pd.DataFrame
        Index: round. Columns: series id.
    meta : dict[str, dict] or None
        Series id -> ``{"name", "color"}``, layered over ``STRATEGY_META``.
    ax : matplotlib.axes.Axes or None
        If None a new figure is created.

    Returns
    -------
    ax : matplotlib.axes.Axes
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(8, 4))
    meta = {**STRATEGY_META, **(meta or {})}

    for series_id in frame.columns:
        info = meta.get(series_id, {})
        # the user's own line is drawn solid and on top
        is_user = series_id == "user"
        ax.plot(frame.index, frame[series_id],
                label=info.get("name", series_id),
                color=info.get("color"),
                ls="-" if is_user else "--",
                lw=2.0 if is_user else 1.2,
                zorder=3 if is_user else 2)

    ax.set_xlabel("Round")
    if ylabel:
        ax.set_ylabel(ylabel)
    if title:
        ax.set_title(title)
    ax.legend()
    ax.grid(alpha=0.3)
    return ax


def plot_session(session):
    """Cumulative payout and cumulative regret of a session, side by side.

    Returns
    -------
    fig : matplotlib.figure.Figure
    """
    meta = session.series_meta()
    fig, axes = plt.subplots(1, 2, figsize=(14, 4))
    plot_series(session.payout_series(), meta, title="Cumulative payout", ylabel="Payout", ax=axes[0])
    plot_series(session.regret_series(), meta, title="Cumulative regret", ylabel="Regret", ax=axes[1])
    fig.tight_layout()
    return fig
