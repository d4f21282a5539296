from __future__ import annotations

import random
from dataclasses import dataclass
from typing import List, Optional

import numpy as np


@dataclass
class ArmDef:
    id: int
    name: str


class QValueAdvisor:
    """Epsilon-greedy hint for the player: which arm looks best so far.

    Purely a display aid. It is never consulted when counting optimal choices.
    """

    def __init__(self, arms: List[ArmDef], learning_rate: float = 0.1, exploration_rate: float = 0.2, seed: Optional[int] = None):
        self.arms = arms
        self.learning_rate = learning_rate
        self.exploration_rate = exploration_rate
        self.q = np.zeros(len(arms))
        self._rng = random.Random(seed)

    def update(self, arm_id: int, reward: float) -> float:
        self.q[arm_id] += self.learning_rate * (reward - self.q[arm_id])
        return float(self.q[arm_id])

    def best_arm(self) -> ArmDef:
        return self.arms[int(np.argmax(self.q))]

    def recommend(self) -> Optional[ArmDef]:
        if self._rng.random() < self.exploration_rate:
            return None
        return self.best_arm()

    def q_values(self) -> List[float]:
        return [float(v) for v in self.q]
