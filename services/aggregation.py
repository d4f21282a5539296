from __future__ import annotations

import math
from typing import Iterable, List, Sequence, Union

import numpy as np

from core.models import Session, SessionStats, Trial
from streams.models import SignalReading, SignalVector

SignalHistory = Iterable[Union[SignalVector, SignalReading]]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp(value: float, lo: float = 0.0, hi: float = 100.0) -> float:
    return max(lo, min(hi, value))


def optimal_fraction(arms: Sequence[int], optimal_arm: int) -> float:
    if len(arms) == 0:
        return 0.0
    return float(np.count_nonzero(np.asarray(arms) == optimal_arm)) / len(arms)


def mean_reaction_time(trials: Sequence[Trial]) -> float:
    # each term is scaled before summing so the total never leaves float range
    n = len(trials)
    if n == 0:
        return 0.0
    return math.fsum(t.reaction_time_ms / n for t in trials)


def attention_values(history: SignalHistory) -> List[float]:
    values: List[float] = []
    for item in history:
        vector = item.vector if isinstance(item, SignalReading) else item
        values.append(float(vector.attention))
    return values


class SessionAggregator:
    """Derives SessionStats from a trial log; a pure function of its inputs."""

    def __init__(self, optimal_arm: int, n_arms: int = 3, signal_window: int = 20):
        if not 0 <= optimal_arm < n_arms:
            raise ValueError(f"optimal_arm must be in [0, {n_arms - 1}]")
        self.optimal_arm = optimal_arm
        self.n_arms = n_arms
        self.signal_window = signal_window

    def compute_stats(self, session: Union[Session, Sequence[Trial]], signal_history: SignalHistory = ()) -> SessionStats:
        trials: Sequence[Trial] = session.trials if isinstance(session, Session) else session
        total = len(trials)
        if total == 0:
            return SessionStats()

        arms = np.array([t.arm_chosen for t in trials], dtype=int)
        optimal = int(np.count_nonzero(arms == self.optimal_arm))
        learning = self.learning_rate(arms)
        avg_rt = round_half_up(mean_reaction_time(trials))
        correlation = self.signal_correlation(signal_history, learning)

        return SessionStats(
            total_trials=total,
            optimal_choices=optimal,
            exploration_rate=self.exploration_rate(arms),
            learning_rate=learning,
            avg_reaction_time_ms=avg_rt,
            signal_correlation=correlation,
        )

    def exploration_rate(self, arms: Sequence[int]) -> int:
        if len(arms) == 0:
            return 0
        counts = np.bincount(np.asarray(arms, dtype=int), minlength=self.n_arms)
        return int(clamp(round_half_up(100.0 * (1.0 - counts.max() / len(arms)))))

    def learning_rate(self, arms: Sequence[int]) -> int:
        # first half takes floor(n/2) trials; improvement only, never negative
        if len(arms) < 2:
            return 0
        half = len(arms) // 2
        first = optimal_fraction(arms[:half], self.optimal_arm)
        second = optimal_fraction(arms[half:], self.optimal_arm)
        return int(clamp(round_half_up(100.0 * max(0.0, second - first))))

    def signal_correlation(self, signal_history: SignalHistory, learning_rate: int) -> int:
        values = attention_values(signal_history)
        if self.signal_window > 0:
            values = values[-self.signal_window :]
        else:
            values = []
        if not values:
            return 0
        mean_attention = sum(values) / len(values)
        return int(clamp(round_half_up(mean_attention * learning_rate / 100.0)))
