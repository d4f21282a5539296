from __future__ import annotations

import os
import random
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from core.errors import InvalidArmError

ARM_NAMES: Tuple[str, ...] = ("Left", "Middle", "Right")
DEFAULT_REWARD_PROBABILITIES: Tuple[float, ...] = (0.3, 0.5, 0.7)


def _probabilities_from_env() -> List[float]:
    raw = os.getenv("BANDIT_REWARD_PROBABILITIES")
    if not raw:
        return list(DEFAULT_REWARD_PROBABILITIES)
    return [float(p.strip()) for p in raw.split(",") if p.strip()]


@dataclass
class BanditConfig:
    reward_probabilities: List[float] = field(default_factory=_probabilities_from_env)
    arm_names: Sequence[str] = ARM_NAMES

    def __post_init__(self) -> None:
        if len(self.reward_probabilities) != len(self.arm_names):
            raise ValueError(
                f"Expected {len(self.arm_names)} reward probabilities, got {len(self.reward_probabilities)}"
            )
        if any(not 0.0 <= p <= 1.0 for p in self.reward_probabilities):
            raise ValueError("Reward probabilities must lie in [0, 1]")

    @property
    def n_arms(self) -> int:
        return len(self.reward_probabilities)

    @property
    def optimal_arm(self) -> int:
        # configured, never inferred from observed rewards; ties go to the lowest index
        probs = self.reward_probabilities
        return max(range(len(probs)), key=lambda i: (probs[i], -i))


class BanditEnvironment:
    """The three hidden-probability arms a player chooses between."""

    def __init__(self, config: Optional[BanditConfig] = None, seed: Optional[int] = None):
        self.config = config or BanditConfig()
        self._rng = random.Random(seed)

    @property
    def optimal_arm(self) -> int:
        return self.config.optimal_arm

    def validate_arm(self, arm: int) -> int:
        if isinstance(arm, bool) or not isinstance(arm, int) or not 0 <= arm < self.config.n_arms:
            raise InvalidArmError(arm, self.config.n_arms)
        return arm

    def pull(self, arm: int) -> int:
        self.validate_arm(arm)
        return 1 if self._rng.random() < self.config.reward_probabilities[arm] else 0

    def describe(self) -> dict:
        return {
            "arms": [
                {"id": i, "name": name, "rewardProbability": p}
                for i, (name, p) in enumerate(zip(self.config.arm_names, self.config.reward_probabilities))
            ],
            "optimalArm": self.optimal_arm,
        }
