import logging
import math
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field

import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class ArmState:
    """Per-arm statistics owned by one strategy instance."""

    id: int
    pulls: int = 0
    total_payout: float = 0.0
    mean: float = 0.0

    def record(self, reward):
        self.pulls += 1
        self.total_payout += reward
        self.mean = self.total_payout / self.pulls


class BanditAlgorithm(ABC):
    """
    Common contract of the arena strategies.

    Hyperparameters are fixed at construction. ``initialize`` builds fresh
    per-arm state for an arm set; ``select_arm`` only reads that state;
    ``update`` folds in the reward of the arm that was actually resolved.
    """

    type_id = None

    def __init__(self, seed=None):
        self.seed = seed
        self.__name__ = f"{self.__class__.__name__}"
        self.total_pulls = 0
        self.arms = []

    def initialize(self, arm_configs):
        self.arms = [ArmState(id=c.id) for c in arm_configs]
        self.total_pulls = 0
        self._index = {a.id: i for i, a in enumerate(self.arms)}

    @property
    def n_arm(self):
        return len(self.arms)

    def _arm_index(self, arm_id):
        try:
            return self._index[arm_id]
        except KeyError:
            raise KeyError(f"{self.__name__}: unknown arm id {arm_id!r}") from None

    @abstractmethod
    def select_arm(self):
        pass

    def update(self, arm_id, reward):
        i = self._arm_index(arm_id)
        self.total_pulls += 1
        self.arms[i].record(reward)
        return i

    def reset(self):
        self.total_pulls = 0
        self.arms = [ArmState(id=a.id) for a in self.arms]

    def hyperparameters(self):
        return {}

    def get_state(self):
        return {
            "type": self.type_id,
            "total_pulls": self.total_pulls,
            "hyperparameters": self.hyperparameters(),
            "arms": [{"id": a.id, "pulls": a.pulls, "mean": a.mean} for a in self.arms],
        }


class PermutationAware(ABC):
    """Capability of strategies that want a push notification when arm distributions are shuffled."""

    @abstractmethod
    def handle_permutation(self, new_configs):
        pass


def _ucb_index(mean, total_pulls, pulls, coefficient=2.0):
    if pulls == 0:
        return math.inf
    # total_pulls >= pulls >= 1 here, so log() never sees 0
    return mean + math.sqrt(coefficient * math.log(total_pulls) / pulls)


def _first_argmax(values):
    best_i, best_v = 0, -math.inf
    for i, v in enumerate(values):
        if v > best_v:
            best_i, best_v = i, v
    return best_i


class UCB1(BanditAlgorithm):
    type_id = "ucb"

    def confidence_bounds(self):
        return [_ucb_index(a.mean, self.total_pulls, a.pulls) for a in self.arms]

    def select_arm(self):
        return self.arms[_first_argmax(self.confidence_bounds())].id

    def get_state(self):
        state = super().get_state()
        for arm_state, ucb in zip(state["arms"], self.confidence_bounds()):
            arm_state["ucb"] = ucb
        return state


@dataclass
class DriftingArmState(ArmState):
    recent: deque = field(default_factory=deque)
    ph_sum: float = 0.0
    ph_min: float = 0.0
    last_change_point: int = 0
    change_detected: bool = False


class NonStationaryUCB(BanditAlgorithm):
    """
    UCB1 with a sliding reward window and a Page-Hinkley change detector per arm.

    After a detected change the arm's mean is taken from the window tail
    observed since the change and its exploration bonus is computed from the
    pulls since the change with a larger coefficient.
    """

    type_id = "ns-ucb"

    def __init__(self, window_size=20, change_threshold=50.0, drift_allowance=0.05,
                 min_pulls=5, seed=None):
        super().__init__(seed)
        if window_size < 1:
            raise ValueError(f"window_size must be >= 1, got {window_size}")
        self.window_size = int(window_size)
        self.change_threshold = float(change_threshold)
        self.drift_allowance = float(drift_allowance)
        self.min_pulls = int(min_pulls)

    def initialize(self, arm_configs):
        super().initialize(arm_configs)
        self.arms = [DriftingArmState(id=c.id, recent=deque(maxlen=self.window_size)) for c in arm_configs]

    def reset(self):
        self.total_pulls = 0
        self.arms = [DriftingArmState(id=a.id, recent=deque(maxlen=self.window_size)) for a in self.arms]

    def hyperparameters(self):
        return {"window_size": self.window_size, "change_threshold": self.change_threshold,
                "drift_allowance": self.drift_allowance, "min_pulls": self.min_pulls}

    def _effective_mean(self, arm):
        if not arm.recent:
            return arm.mean
        if arm.change_detected:
            since_change = arm.pulls - arm.last_change_point
            tail = list(arm.recent)[max(0, len(arm.recent) - since_change):] if since_change > 0 else []
            return float(np.mean(tail)) if tail else arm.mean
        return float(np.mean(arm.recent))

    def confidence_bounds(self):
        bounds = []
        for arm in self.arms:
            if arm.pulls == 0:
                bounds.append(math.inf)
                continue
            if arm.change_detected:
                effective_pulls = max(1, arm.pulls - arm.last_change_point)
                coefficient = 3.0
            else:
                effective_pulls = arm.pulls
                coefficient = 2.0
            bounds.append(_ucb_index(self._effective_mean(arm), self.total_pulls, effective_pulls, coefficient))
        return bounds

    def select_arm(self):
        return self.arms[_first_argmax(self.confidence_bounds())].id

    def update(self, arm_id, reward):
        i = self._arm_index(arm_id)
        arm = self.arms[i]
        prior_mean = arm.mean
        self.total_pulls += 1
        arm.record(reward)
        arm.recent.append(reward)

        # Page-Hinkley
        deviation = reward - prior_mean - self.drift_allowance
        arm.ph_sum = max(0.0, arm.ph_sum + deviation)
        arm.ph_min = min(arm.ph_min, arm.ph_sum)
        ph_stat = arm.ph_sum - arm.ph_min

        if arm.pulls > self.min_pulls and ph_stat > self.change_threshold:
            logger.info("[ns-ucb] change detected on arm %s: PH statistic = %.2f", arm.id, ph_stat)
            arm.change_detected = True
            arm.last_change_point = arm.pulls
            arm.ph_sum = 0.0
            arm.ph_min = 0.0
        return i

    def get_state(self):
        state = super().get_state()
        for arm_state, arm, ucb in zip(state["arms"], self.arms, self.confidence_bounds()):
            arm_state.update({
                "ucb": ucb,
                "recent_mean": float(np.mean(arm.recent)) if arm.recent else 0.0,
                "change_detected": arm.change_detected,
                "time_since_change": arm.pulls - arm.last_change_point if arm.change_detected else 0,
            })
        return state


class EXP3(BanditAlgorithm):
    """
    Exponential weights for adversarial bandits.

    p_i = (1 - gamma) * w_i / sum(w) + gamma / k. Rewards are mapped into
    [0, 1] through ``reward_range`` and only the pulled arm's weight moves,
    by its importance-weighted estimate.

    The categorical draw in ``select_arm`` comes from a generator seeded by
    ``(seed, total_pulls)``, so selecting twice without an update returns the
    same arm.
    """

    type_id = "exp3"
    # weights are rescaled once the largest one passes this; probabilities are unaffected
    _WEIGHT_CEILING = 1e200

    def __init__(self, gamma=0.1, eta=0.1, reward_range=(-10.0, 10.0), seed=None):
        super().__init__(seed)
        if not 0.0 < gamma <= 1.0:
            raise ValueError(f"gamma must be in (0, 1], got {gamma}")
        if eta <= 0:
            raise ValueError(f"eta must be > 0, got {eta}")
        low, high = reward_range
        if not low < high:
            raise ValueError(f"reward_range must satisfy low < high, got {reward_range}")
        self.gamma = float(gamma)
        self.eta = float(eta)
        self.reward_range = (float(low), float(high))

    def initialize(self, arm_configs):
        super().initialize(arm_configs)
        self.weights = np.ones(self.n_arm)
        self._update_probabilities()

    def reset(self):
        super().reset()
        self.weights = np.ones(self.n_arm)
        self._update_probabilities()

    def hyperparameters(self):
        return {"gamma": self.gamma, "eta": self.eta, "reward_range": self.reward_range}

    def _update_probabilities(self):
        total = float(np.sum(self.weights))
        if not np.isfinite(total) or total <= 0.0:
            share = np.full(self.n_arm, 1.0 / self.n_arm)
        else:
            share = self.weights / total
        self.probabilities = (1.0 - self.gamma) * share + self.gamma / self.n_arm

    def normalize_reward(self, reward):
        low, high = self.reward_range
        return min(1.0, max(0.0, (reward - low) / (high - low)))

    def _draw(self):
        seed = 0 if self.seed is None else self.seed
        return np.random.default_rng([seed, self.total_pulls]).random()

    def select_arm(self):
        u = self._draw()
        cumulative = np.cumsum(self.probabilities)
        i = int(np.searchsorted(cumulative, u, side="right"))
        # rounding can leave cumulative[-1] a hair below 1
        return self.arms[min(i, self.n_arm - 1)].id

    def _exp3_step(self, i, reward):
        estimate = self.normalize_reward(reward) / self.probabilities[i]
        self.weights[i] *= math.exp(self.eta * estimate / self.n_arm)
        if self.weights[i] > self._WEIGHT_CEILING:
            self.weights /= np.max(self.weights)
        self._update_probabilities()

    def update(self, arm_id, reward):
        i = super().update(arm_id, reward)
        self._exp3_step(i, reward)
        return i

    def get_state(self):
        state = super().get_state()
        state["probabilities"] = self.probabilities.tolist()
        state["weights"] = self.weights.tolist()
        for arm_state, p, w in zip(state["arms"], self.probabilities, self.weights):
            arm_state["probability"] = float(p)
            arm_state["weight"] = float(w)
        return state


class EXP3R(EXP3, PermutationAware):
    """
    EXP3 with per-arm drift resets.

    Each arm keeps a rolling window of rewards. When the window mean departs
    from the arm's running mean by more than ``threshold_multiplier`` window
    standard deviations, that arm's weight goes back to 1 and its window is
    cleared. A permutation notification resets every arm at once.
    """

    type_id = "exp3r"
    _MIN_WINDOW = 5

    def __init__(self, gamma=0.1, eta=0.1, reward_range=(-10.0, 10.0), window_size=20,
                 threshold_multiplier=2.0, min_pulls=10, reset_cooldown=10,
                 change_flag_duration=30, seed=None):
        super().__init__(gamma=gamma, eta=eta, reward_range=reward_range, seed=seed)
        if window_size < 1:
            raise ValueError(f"window_size must be >= 1, got {window_size}")
        self.window_size = int(window_size)
        self.threshold_multiplier = float(threshold_multiplier)
        self.min_pulls = int(min_pulls)
        self.reset_cooldown = int(reset_cooldown)
        self.change_flag_duration = int(change_flag_duration)

    def initialize(self, arm_configs):
        super().initialize(arm_configs)
        self._clear_drift_state()

    def reset(self):
        super().reset()
        self._clear_drift_state()

    def _clear_drift_state(self):
        self.windows = [deque(maxlen=self.window_size) for _ in range(self.n_arm)]
        self.window_variances = np.zeros(self.n_arm)
        self.last_resets = np.zeros(self.n_arm, dtype=int)
        self.change_detected = np.zeros(self.n_arm, dtype=bool)

    def hyperparameters(self):
        params = super().hyperparameters()
        params.update({"window_size": self.window_size, "threshold_multiplier": self.threshold_multiplier,
                       "min_pulls": self.min_pulls, "reset_cooldown": self.reset_cooldown,
                       "change_flag_duration": self.change_flag_duration})
        return params

    def detect_change(self, i, reward):
        window = self.windows[i]
        window.append(reward)
        if len(window) < self._MIN_WINDOW:
            return False

        values = np.fromiter(window, dtype=float)
        window_mean = values.mean()
        variance = float(np.mean((values - window_mean) ** 2))
        self.window_variances[i] = variance

        if self.arms[i].pulls < self.min_pulls:
            return False
        if self.total_pulls - self.last_resets[i] < self.reset_cooldown:
            return False

        std = math.sqrt(variance)
        mean_diff = abs(window_mean - self.arms[i].mean)
        changed = std > 0.01 and mean_diff > self.threshold_multiplier * std
        if changed:
            logger.info("[exp3r] change detected on arm %s: mean diff %.4f > %.4f",
                        self.arms[i].id, mean_diff, self.threshold_multiplier * std)
        return changed

    def reset_arm(self, i):
        self.weights[i] = 1.0
        self.last_resets[i] = self.total_pulls
        self.change_detected[i] = True
        self.windows[i].clear()
        self._update_probabilities()

    def update(self, arm_id, reward):
        i = BanditAlgorithm.update(self, arm_id, reward)
        if self.detect_change(i, reward):
            self.reset_arm(i)
            return i

        self._exp3_step(i, reward)
        if self.change_detected[i] and self.total_pulls - self.last_resets[i] > self.change_flag_duration:
            self.change_detected[i] = False
        return i

    def handle_permutation(self, new_configs):
        logger.info("[exp3r] permutation notified, resetting all arm weights")
        self.weights = np.ones(self.n_arm)
        for window in self.windows:
            window.clear()
        self.last_resets[:] = self.total_pulls
        self.change_detected[:] = True
        self._update_probabilities()

    def get_state(self):
        state = super().get_state()
        for j, arm_state in enumerate(state["arms"]):
            arm_state["change_detected"] = bool(self.change_detected[j])
            arm_state["time_since_reset"] = int(self.total_pulls - self.last_resets[j])
        return state


class ExploreThenCommit(BanditAlgorithm):
    """
    A/B/C test: sample every arm ``samples_per_arm`` times round-robin, then
    commit for good to the arm with the best empirical mean.
    """

    type_id = "abtest"

    def __init__(self, samples_per_arm=None, seed=None):
        super().__init__(seed)
        if samples_per_arm is not None and samples_per_arm < 1:
            raise ValueError(f"samples_per_arm must be >= 1, got {samples_per_arm}")
        self._requested_samples = samples_per_arm

    def initialize(self, arm_configs):
        super().initialize(arm_configs)
        if self._requested_samples is None:
            self.samples_per_arm = max(10, min(30, math.ceil(100 / self.n_arm)))
        else:
            self.samples_per_arm = int(self._requested_samples)
        self.exploration_length = self.n_arm * self.samples_per_arm
        self.committed_arm = None

    def reset(self):
        super().reset()
        self.committed_arm = None

    @property
    def phase(self):
        return "exploring" if self.committed_arm is None else "committed"

    def hyperparameters(self):
        return {"samples_per_arm": getattr(self, "samples_per_arm", self._requested_samples)}

    def select_arm(self):
        if self.committed_arm is not None:
            return self.committed_arm
        return self.arms[self.total_pulls % self.n_arm].id

    def update(self, arm_id, reward):
        i = super().update(arm_id, reward)
        if self.committed_arm is None and self.total_pulls >= self.exploration_length:
            best = self.arms[_first_argmax([a.mean for a in self.arms])]
            self.committed_arm = best.id
            logger.info("[abtest] exploration complete, committed to arm %s (mean %.4f)", best.id, best.mean)
        return i

    def get_state(self):
        state = super().get_state()
        state.update({
            "phase": self.phase,
            "samples_per_arm": self.samples_per_arm,
            "committed_arm": self.committed_arm,
            "progress": min(100, (100 * self.total_pulls) // self.exploration_length),
        })
        return state
