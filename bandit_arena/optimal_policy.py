"""
Bayes-optimal finite-horizon policy for Bernoulli bandits.

Each arm i carries a Beta(alpha_i, beta_i) prior. The planning state is the
flat tuple (s_0, f_0, s_1, f_1, ...) of observed successes and failures; the
round index t is its sum, so the tuple alone is a value-equal key. Values and
optimal actions live in an arena: ``_index`` maps a key to a slot in the
parallel ``_values`` / ``_actions`` lists.

Backward induction:
    V_H(state) = 0
    V_t(state) = max_i  p_i * (1 + V_{t+1}(s_i + 1)) + (1 - p_i) * V_{t+1}(f_i + 1)
    p_i = (alpha_i + s_i) / (alpha_i + beta_i + s_i + f_i)

The reachable state count is C(H + 2k, 2k), so the table is either solved
eagerly level by level (small k * H) or filled lazily, only under the states
actually looked up.
"""
import logging
import math

import numpy as np

from bandit_arena.bandit_algorithm import BanditAlgorithm
from bandit_arena.errors import StateLookupError

logger = logging.getLogger(__name__)


def count_reachable_states(n_arm, horizon):
    """Number of (successes, failures) states over t = 0..horizon."""
    return math.comb(horizon + 2 * n_arm, 2 * n_arm)


def max_horizon_for_budget(n_arm, state_budget, max_horizon=1000):
    horizon = 1
    while horizon < max_horizon and count_reachable_states(n_arm, horizon + 1) <= state_budget:
        horizon += 1
    return horizon


def _compositions(total, parts):
    """All tuples of ``parts`` non-negative ints summing to ``total``."""
    if parts == 1:
        yield (total,)
        return
    for head in range(total, -1, -1):
        for tail in _compositions(total - head, parts - 1):
            yield (head,) + tail


def _bump(key, position):
    return key[:position] + (key[position] + 1,) + key[position + 1:]


class BetaBernoulliPlanner:
    """
    Optimal-action table for a k-armed Beta-Bernoulli bandit over ``horizon`` rounds.

    Parameters
    ----------
    n_arm : int
    horizon : int or None
        Planning horizon H. ``None`` picks the largest H <= ``max_horizon``
        whose reachable state count fits ``state_budget``.
    priors : sequence of (alpha, beta) or None
        One Beta prior per arm, default (1, 1).
    state_budget : int
        Hard cap on reachable states; an explicit horizon above it is rejected.
    eager_state_limit : int
        At or below this many states the whole table is solved up front.
    """

    def __init__(self, n_arm, horizon=None, priors=None, state_budget=100_000,
                 eager_state_limit=20_000, max_horizon=1000):
        if n_arm < 1:
            raise ValueError(f"n_arm must be >= 1, got {n_arm}")
        self.n_arm = int(n_arm)

        if priors is None:
            priors = [(1.0, 1.0)] * self.n_arm
        priors = [(float(a), float(b)) for a, b in priors]
        if len(priors) != self.n_arm:
            raise ValueError(f"Expected {self.n_arm} priors, got {len(priors)}")
        if any(a <= 0 or b <= 0 for a, b in priors):
            raise ValueError(f"Beta prior parameters must be > 0, got {priors}")
        self.priors = priors

        if horizon is None:
            horizon = max_horizon_for_budget(self.n_arm, state_budget, max_horizon)
        elif horizon < 1:
            raise ValueError(f"horizon must be >= 1, got {horizon}")
        self.horizon = int(horizon)

        self.n_states = count_reachable_states(self.n_arm, self.horizon)
        if self.n_states > state_budget:
            raise ValueError(
                f"horizon {self.horizon} with {self.n_arm} arms has {self.n_states} reachable states, "
                f"above the budget of {state_budget}"
            )

        self._index = {}
        self._values = []
        self._actions = []
        self.eager = self.n_states <= eager_state_limit
        if self.eager:
            self.solve()

    # ── arena ────────────────────────────────────────────────────────────

    def _store(self, key, action, value):
        self._index[key] = len(self._values)
        self._values.append(value)
        self._actions.append(action)

    def _child_value(self, key):
        if sum(key) >= self.horizon:
            return 0.0
        return self._values[self._index[key]]

    def _best_action(self, key):
        best_arm, best_value = -1, -math.inf
        for arm in range(self.n_arm):
            s, f = key[2 * arm], key[2 * arm + 1]
            alpha, beta = self.priors[arm]
            p = (alpha + s) / (alpha + beta + s + f)
            value = (p * (1.0 + self._child_value(_bump(key, 2 * arm)))
                     + (1.0 - p) * self._child_value(_bump(key, 2 * arm + 1)))
            if value > best_value:
                best_arm, best_value = arm, value
        return best_arm, best_value

    def states_at(self, t):
        return _compositions(t, 2 * self.n_arm)

    def solve(self):
        """Backward induction over every reachable state, t = H-1 down to 0."""
        for t in range(self.horizon - 1, -1, -1):
            for key in self.states_at(t):
                if key not in self._index:
                    self._store(key, *self._best_action(key))
        logger.info("Optimal policy solved: %d arms, horizon %d, %d states",
                    self.n_arm, self.horizon, len(self._values))

    def _solve_from(self, root):
        stack = [(root, False)]
        while stack:
            key, expanded = stack.pop()
            if key in self._index or sum(key) >= self.horizon:
                continue
            if expanded:
                self._store(key, *self._best_action(key))
                continue
            stack.append((key, True))
            for position in range(2 * self.n_arm):
                child = _bump(key, position)
                if child not in self._index and sum(child) < self.horizon:
                    stack.append((child, False))

    # ── lookups ──────────────────────────────────────────────────────────

    def _key(self, t, state):
        flat = []
        for item in state:
            if isinstance(item, (tuple, list, np.ndarray)):
                flat.extend(item)
            else:
                flat.append(item)
        try:
            key = tuple(int(v) for v in flat)
        except (TypeError, ValueError):
            raise StateLookupError(t, state, "state must contain integer counts") from None
        if len(key) != 2 * self.n_arm:
            raise StateLookupError(t, state, f"expected {self.n_arm} (successes, failures) pairs")
        if t < 0 or t >= self.horizon:
            raise StateLookupError(t, state, f"outside the planning horizon [0, {self.horizon})")
        if any(v < 0 for v in key) or sum(key) != t:
            raise StateLookupError(t, state, "state is not reachable at this round")
        return key

    def _slot(self, t, state):
        key = self._key(t, state)
        if key not in self._index:
            if self.eager:
                raise StateLookupError(t, state, "state missing from the solved table")
            self._solve_from(key)
        return self._index[key]

    def lookup(self, t, state):
        """``(action, value)`` at round ``t`` in ``state``."""
        slot = self._slot(t, state)
        return self._actions[slot], self._values[slot]

    def optimal_action(self, t, state):
        """Arm index to pull at round ``t`` in ``state``."""
        return self._actions[self._slot(t, state)]

    def value(self, t, state):
        """Expected number of future successes under the optimal policy."""
        if sum(np.ravel(state)) == t == self.horizon:
            return 0.0
        return self._values[self._slot(t, state)]

    def __len__(self):
        return len(self._values)


class OptimalDP(BanditAlgorithm):
    """
    Plays the Bayes-optimal action of a ``BetaBernoulliPlanner``.

    A reward counts as a success when it exceeds ``success_threshold``.
    Past the planning horizon ``select_arm`` raises ``StateLookupError``.

    With ``horizon=None`` the horizon is whatever fits ``state_budget``: 36
    rounds for 2 arms, 16 for 3, about 6 for 8 with the default budget. In a
    session the strategy is retired once a game runs longer than that. Pass
    a larger ``state_budget`` (and ``max_horizon``) for longer games; the
    first lookup from the root then solves the whole table, so its cost grows
    with the budget.
    """

    type_id = "optimal"

    def __init__(self, horizon=None, priors=None, success_threshold=0.5, state_budget=100_000,
                 eager_state_limit=20_000, max_horizon=1000, seed=None):
        super().__init__(seed)
        self.horizon = horizon
        self.priors = priors
        self.success_threshold = float(success_threshold)
        self.state_budget = state_budget
        self.eager_state_limit = eager_state_limit
        self.max_horizon = max_horizon

    def initialize(self, arm_configs):
        super().initialize(arm_configs)
        self.planner = BetaBernoulliPlanner(
            self.n_arm, horizon=self.horizon, priors=self.priors, state_budget=self.state_budget,
            eager_state_limit=self.eager_state_limit, max_horizon=self.max_horizon,
        )
        self.successes = np.zeros(self.n_arm, dtype=int)
        self.failures = np.zeros(self.n_arm, dtype=int)

    def reset(self):
        super().reset()
        self.successes[:] = 0
        self.failures[:] = 0

    def hyperparameters(self):
        planner = getattr(self, "planner", None)
        return {
            "horizon": planner.horizon if planner is not None else self.horizon,
            "priors": planner.priors if planner is not None else self.priors,
            "success_threshold": self.success_threshold,
        }

    def current_state(self):
        return tuple(zip(self.successes.tolist(), self.failures.tolist()))

    def select_arm(self):
        action = self.planner.optimal_action(self.total_pulls, self.current_state())
        return self.arms[action].id

    def update(self, arm_id, reward):
        i = super().update(arm_id, reward)
        if reward > self.success_threshold:
            self.successes[i] += 1
        else:
            self.failures[i] += 1
        return i

    def get_state(self):
        state = super().get_state()
        state["planned_states"] = len(self.planner)
        for arm_state, s, f in zip(state["arms"], self.successes, self.failures):
            arm_state["successes"] = int(s)
            arm_state["failures"] = int(f)
        return state
