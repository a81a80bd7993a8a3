from dataclasses import dataclass, field

import numpy as np
import pandas as pd


@dataclass
class SeriesAccount:
    """Cumulative payout and regret of one tracked entity (user, baseline or strategy)."""

    name: str
    start_round: int
    payout: float = 0.0
    regret: float = 0.0
    payouts: list = field(default_factory=list)
    regrets: list = field(default_factory=list)

    @property
    def rounds(self):
        return range(self.start_round, self.start_round + len(self.payouts))


@dataclass
class SeriesRound:
    payout: float
    regret: float
    cumulative_payout: float
    cumulative_regret: float


class RegretAccountant:
    """
    Tracks payout and regret per series, one point per round.

    Per round and series:
        payout += reward(chosen slot)
        regret += max(0, best expected value - expected value(chosen slot))
    Expected values are those of the arm configs in force for that round.
    """

    def __init__(self):
        self.series = {}

    def record_round(self, round_index, rewards, expected_values, choices):
        """
        :param rewards: the round's reward vector, in slot order
        :param expected_values: expected value per slot for this round
        :param choices: series name -> chosen slot
        :return: series name -> ``SeriesRound``
        """
        expected_values = np.asarray(expected_values, dtype=float)
        best_ev = float(np.max(expected_values))

        result = {}
        for name, slot in choices.items():
            account = self.series.get(name)
            if account is None:
                account = self.series[name] = SeriesAccount(name=name, start_round=round_index)
            payout = float(rewards[slot])
            regret = max(0.0, best_ev - float(expected_values[slot]))
            account.payout += payout
            account.regret += regret
            account.payouts.append(account.payout)
            account.regrets.append(account.regret)
            result[name] = SeriesRound(payout, regret, account.payout, account.regret)
        return result

    def totals(self):
        return {name: (a.payout, a.regret) for name, a in self.series.items()}

    def _frame(self, attr):
        columns = {
            name: pd.Series(getattr(account, attr), index=pd.Index(account.rounds, name="round"), dtype=float)
            for name, account in self.series.items()
        }
        if not columns:
            return pd.DataFrame(index=pd.Index([], name="round"))
        return pd.DataFrame(columns)

    def payout_frame(self):
        """Cumulative payout per round (rows) and series (columns)."""
        return self._frame("payouts")

    def regret_frame(self):
        """Cumulative regret per round (rows) and series (columns)."""
        return self._frame("regrets")
