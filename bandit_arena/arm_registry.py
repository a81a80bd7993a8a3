import logging
from dataclasses import dataclass, replace
from typing import Iterable, Mapping, Optional, Union

import numpy as np

from bandit_arena import distributions as dist
from bandit_arena.errors import ConfigurationError

logger = logging.getLogger(__name__)

MIN_ARMS = 2
MAX_ARMS = 8


@dataclass(frozen=True)
class ArmConfig:
    """One arm slot: a stable id plus the hidden reward distribution currently behind it."""

    id: int
    family: dist.DistributionFamily
    parameters: tuple

    @property
    def expected_value(self) -> float:
        return dist.expected_value(self.family, self.parameters)

    @property
    def distribution(self):
        return (self.family, self.parameters)

    def to_dict(self):
        return {"id": self.id, "family": self.family.value, "parameters": list(self.parameters)}


def parse_arm_config(raw: Union[ArmConfig, Mapping]) -> ArmConfig:
    """Build a validated ``ArmConfig`` from a mapping with ``id``, ``family`` and ``parameters``.

    ``distribution`` is accepted as an alias of ``family``.
    """
    if isinstance(raw, ArmConfig):
        family, params, arm_id = raw.family, raw.parameters, raw.id
    else:
        try:
            arm_id = raw["id"]
            family = raw["family"] if "family" in raw else raw["distribution"]
            params = raw["parameters"]
        except KeyError as exc:
            raise ConfigurationError(f"Arm config is missing field {exc.args[0]!r}: {raw!r}") from None

    if isinstance(arm_id, bool) or not isinstance(arm_id, (int, np.integer)):
        raise ConfigurationError(f"Arm id must be an integer, got {arm_id!r}")
    family = dist.as_family(family)
    return ArmConfig(id=int(arm_id), family=family, parameters=dist.validate_parameters(family, params))


def validate_arm_configs(raw_configs: Iterable, min_arms=MIN_ARMS, max_arms=MAX_ARMS):
    """Validate a whole arm set. Nothing is returned unless every arm is valid."""
    configs = [parse_arm_config(raw) for raw in raw_configs]
    if not min_arms <= len(configs) <= max_arms:
        raise ConfigurationError(f"Number of arms must be in [{min_arms}, {max_arms}], got {len(configs)}")
    ids = [c.id for c in configs]
    if len(set(ids)) != len(ids):
        raise ConfigurationError(f"Arm ids must be unique, got {ids}")
    return tuple(configs)


class ArmRegistry:
    """
    Holds the current arm set of a session.

    Written only by ``configure`` (which replaces the whole set) and by
    ``permute`` (which swaps distributions between slots while ids and slot
    order stay fixed). Everything else reads ``configs``.
    """

    def __init__(self, min_arms=MIN_ARMS, max_arms=MAX_ARMS):
        self.min_arms = min_arms
        self.max_arms = max_arms
        self._configs = ()

    def configure(self, raw_configs):
        configs = validate_arm_configs(raw_configs, self.min_arms, self.max_arms)
        self._configs = configs
        logger.info("Arm registry configured with %d arms", len(configs))
        return configs

    @property
    def configs(self):
        return self._configs

    @property
    def ids(self):
        return [c.id for c in self._configs]

    def __len__(self):
        return len(self._configs)

    def slot_of(self, arm_id) -> int:
        for slot, config in enumerate(self._configs):
            if config.id == arm_id:
                return slot
        raise ConfigurationError(f"Unknown arm id: {arm_id!r}")

    def get(self, arm_id) -> ArmConfig:
        return self._configs[self.slot_of(arm_id)]

    def expected_values(self):
        return dist.expected_values(self._configs)

    def best_slot(self) -> int:
        # np.argmax keeps the first slot on ties
        return int(np.argmax(self.expected_values()))

    def best_expected_value(self) -> float:
        return float(np.max(self.expected_values()))

    def can_permute(self) -> bool:
        return len({c.distribution for c in self._configs}) > 1

    def permute(self, rng: np.random.Generator) -> Optional[tuple]:
        """
        Fisher-Yates shuffle of (family, parameters) across the slots.

        Reshuffles until at least one slot ends up with a different
        distribution. Returns the new configs, or ``None`` when every slot
        carries the same distribution and no visible permutation exists.
        """
        if not self.can_permute():
            logger.debug("Permutation skipped: all arms share one distribution")
            return None

        current = [c.distribution for c in self._configs]
        while True:
            shuffled = list(current)
            for i in range(len(shuffled) - 1, 0, -1):
                j = int(rng.integers(0, i + 1))
                shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
            if shuffled != current:
                break

        self._configs = tuple(
            replace(config, family=family, parameters=params)
            for config, (family, params) in zip(self._configs, shuffled)
        )
        logger.info("Arm distributions permuted: %s",
                    ", ".join(f"{c.id}={c.family.value}{c.parameters}" for c in self._configs))
        return self._configs


def generate_random_arm_configs(n_arm, rng, ranges=None):
    """Random arm set with ids 0..n_arm-1, as plain dicts ready for ``configure``."""
    configs = []
    for i in range(n_arm):
        family = dist.random_family(rng)
        configs.append({
            "id": i,
            "family": family.value,
            "parameters": list(dist.random_parameters(family, rng, ranges)),
        })
    return configs
