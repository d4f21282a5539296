from __future__ import annotations

from typing import Dict, Optional, Sequence

from core.errors import InsufficientProfileDataError
from core.models import CognitiveProfile, Session
from services.aggregation import SessionAggregator, clamp, optimal_fraction, round_half_up
from streams.models import SignalVector

NEUTRAL_SCORE = 50
MEMORY_WINDOW = 10
MIN_TRIALS_FOR_MEMORY = 5
MIN_TRIALS_FOR_RISK = 10

# relative weight of each term in the decline-risk composite
RISK_WEIGHTS: Dict[str, float] = {
    "explorationRate": 30.0,
    "learningRate": 40.0,
    "recognition": 30.0,
}


class CognitiveScorer:
    """Heuristic 0-100 indices from gameplay and the closing signal vector.

    Nothing here is a clinical estimate. When a session is too short the
    memory and decline-risk scores fall back to ``NEUTRAL_SCORE``; callers
    should read ``sample_count`` before treating 50 as a real midpoint.
    """

    def __init__(self, aggregator: SessionAggregator):
        self.aggregator = aggregator

    def score_session(self, session: Session, final_signal: Optional[SignalVector]) -> CognitiveProfile:
        if final_signal is None:
            raise InsufficientProfileDataError(
                f"A final signal vector is required to score session '{session.session_id}'"
            )
        arms = session.choices()
        risk, weights = self.decline_risk(arms, final_signal)
        return CognitiveProfile(
            profile_id=session.profile_id,
            session_id=session.session_id,
            decline_risk_score=risk,
            memory_score=self.memory_score(arms),
            sample_count=len(arms),
            feature_weights=weights,
            **self.signal_scores(final_signal),
        )

    def score_readings(self, profile_id: str, readings: Sequence[SignalVector]) -> CognitiveProfile:
        """Profile for an uploaded batch of readings with no gameplay attached."""
        final_signal = SignalVector.mean_of(list(readings))
        if final_signal is None:
            raise InsufficientProfileDataError("No readings were supplied to score")
        risk, weights = self.decline_risk([], final_signal)
        return CognitiveProfile(
            profile_id=profile_id,
            decline_risk_score=risk,
            memory_score=self.memory_score([]),
            sample_count=len(readings),
            feature_weights=weights,
            **self.signal_scores(final_signal),
        )

    def memory_score(self, arms: Sequence[int]) -> int:
        if len(arms) < MIN_TRIALS_FOR_MEMORY:
            return NEUTRAL_SCORE
        recent = list(arms)[-MEMORY_WINDOW:]
        return round_half_up(clamp(100.0 * optimal_fraction(recent, self.aggregator.optimal_arm)))

    def decline_risk(self, arms: Sequence[int], final_signal: SignalVector):
        if len(arms) < MIN_TRIALS_FOR_RISK:
            nominal = {name: weight / 100.0 for name, weight in RISK_WEIGHTS.items()}
            return NEUTRAL_SCORE, nominal

        exploration = self.aggregator.exploration_rate(arms)
        learning = self.aggregator.learning_rate(arms)
        contributions = {
            "explorationRate": RISK_WEIGHTS["explorationRate"] * (1.0 - exploration / 100.0),
            "learningRate": RISK_WEIGHTS["learningRate"] * (1.0 - max(0.0, learning / 100.0)),
            "recognition": RISK_WEIGHTS["recognition"] * (1.0 - clamp(final_signal.recognition) / 100.0),
        }
        risk = round_half_up(clamp(sum(contributions.values())))
        weights = {name: round(value / 100.0, 4) for name, value in contributions.items()}
        return risk, weights

    @staticmethod
    def signal_scores(final_signal: SignalVector) -> Dict[str, int]:
        return {
            "attention_score": round_half_up(clamp(final_signal.attention)),
            "cognitive_control_score": round_half_up(
                clamp((final_signal.relaxation + 100.0 - final_signal.stress) / 2.0)
            ),
            "fatigue_level": round_half_up(clamp(100.0 - final_signal.relaxation)),
        }
