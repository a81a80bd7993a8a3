import numpy as np

from bandit_arena import distributions as dist


class RoundRewardGenerator:
    """
    Produces the hidden reward of every arm for a round.

    The vector for round ``t`` depends only on ``(seed, t)`` and the arm configs
    in force for that round. It is computed once, cached and handed out
    read-only, so the user's pull, the best-possible baseline and every
    strategy are judged on the same luck. Which strategies are active has no
    influence on it.
    """

    def __init__(self, seed):
        self.seed = int(seed)
        self._round_index = None
        self._rewards = None

    def rewards_for_round(self, round_index, configs):
        if round_index == self._round_index:
            return self._rewards

        rng = np.random.default_rng([self.seed, int(round_index)])
        rewards = np.array([dist.sample(c.family, c.parameters, rng) for c in configs], dtype=float)
        rewards.setflags(write=False)

        self._round_index = round_index
        self._rewards = rewards
        return rewards

    def invalidate(self):
        """Forget the cached vector (arm set replaced)."""
        self._round_index = None
        self._rewards = None
