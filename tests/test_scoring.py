import random

import pytest

from core.errors import InsufficientProfileDataError
from core.models import Session, Trial
from services.aggregation import SessionAggregator
from services.scoring import CognitiveScorer
from streams.models import SignalVector


def _session(arms) -> Session:
    session = Session(profile_id="p1")
    for i, arm in enumerate(arms):
        session.trials.append(
            Trial(session_id=session.session_id, trial_index=i + 1, arm_chosen=arm, reward_received=1, reaction_time_ms=400.0)
        )
    return session


def _scorer() -> CognitiveScorer:
    return CognitiveScorer(SessionAggregator(optimal_arm=2))


def test_short_session_uses_neutral_defaults():
    profile = _scorer().score_session(_session([2, 2, 1]), SignalVector())
    assert profile.decline_risk_score == 50
    assert profile.memory_score == 50
    assert profile.sample_count == 3


def test_risk_default_below_ten_trials_but_memory_scored():
    profile = _scorer().score_session(_session([2, 2, 2, 1, 2, 2]), SignalVector())
    assert profile.decline_risk_score == 50
    assert profile.sample_count == 6
    assert profile.memory_score == 83


def test_memory_score_uses_last_ten_trials():
    arms = [0, 0] + [2, 2, 2, 2, 2, 2, 2, 1, 1, 1]
    profile = _scorer().score_session(_session(arms), SignalVector())
    assert profile.memory_score == 70


def test_decline_risk_weighted_combination():
    profile = _scorer().score_session(_session([2] * 10), SignalVector(recognition=40.0))
    # no exploration (30) + no learning improvement (40) + 30 * (1 - 0.4)
    assert profile.decline_risk_score == 88
    assert profile.feature_weights == {"explorationRate": 0.3, "learningRate": 0.4, "recognition": 0.18}


def test_signal_derived_scores():
    vector = SignalVector(attention=55.0, relaxation=60.0, stress=20.0)
    profile = _scorer().score_session(_session([2]), vector)
    assert profile.attention_score == 55
    assert profile.cognitive_control_score == 70
    assert profile.fatigue_level == 40
    assert profile.profile_id == "p1"


def test_missing_signal_vector_raises():
    with pytest.raises(InsufficientProfileDataError):
        _scorer().score_session(_session([2] * 12), None)


def test_score_readings_averages_upload():
    readings = [SignalVector(attention=40.0, relaxation=50.0, stress=30.0), SignalVector(attention=60.0, relaxation=70.0, stress=10.0)]
    profile = _scorer().score_readings("p9", readings)
    assert profile.sample_count == 2
    assert profile.attention_score == 50
    assert profile.fatigue_level == 40
    assert profile.decline_risk_score == 50
    assert profile.session_id is None


def test_score_readings_requires_data():
    with pytest.raises(InsufficientProfileDataError):
        _scorer().score_readings("p9", [])


def test_profile_scores_stay_in_bounds():
    rng = random.Random(99)
    scorer = _scorer()
    for _ in range(200):
        arms = [rng.randint(0, 2) for _ in range(rng.randint(0, 40))]
        vector = SignalVector(**{name: rng.uniform(0, 100) for name in ("attention", "relaxation", "stress", "recognition")})
        profile = scorer.score_session(_session(arms), vector)
        for value in (
            profile.decline_risk_score,
            profile.attention_score,
            profile.memory_score,
            profile.cognitive_control_score,
            profile.fatigue_level,
        ):
            assert 0 <= value <= 100
        assert profile.sample_count == len(arms)
