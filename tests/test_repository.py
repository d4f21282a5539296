import pytest

from bandit.repository import InMemoryCognitiveProfileStore, InMemorySessionRepository
from core.errors import SessionClosedError, SessionNotFoundError
from core.models import CognitiveProfile, Session, SessionStats, Trial


def _trial(session: Session, index: int) -> Trial:
    return Trial(session_id=session.session_id, trial_index=index, arm_chosen=1, reward_received=0, reaction_time_ms=90.0)


def test_loaded_sessions_are_copies():
    repo = InMemorySessionRepository()
    session = repo.create(Session(profile_id="p1"))
    loaded = repo.load(session.session_id)
    loaded.trials.append(_trial(session, 1))
    assert repo.load(session.session_id).trials == []
    repo.save(loaded)
    assert len(repo.load(session.session_id).trials) == 1


def test_append_trial_keeps_indices_gap_free():
    repo = InMemorySessionRepository()
    session = repo.create(Session(profile_id="p1"))
    repo.append_trial(session.session_id, _trial(session, 1), SessionStats(total_trials=1))
    with pytest.raises(ValueError):
        repo.append_trial(session.session_id, _trial(session, 3), SessionStats(total_trials=2))
    stored = repo.load(session.session_id)
    assert [t.trial_index for t in stored.trials] == [1]
    assert stored.stats.total_trials == 1


def test_append_trial_rejects_closed_and_unknown_sessions():
    repo = InMemorySessionRepository()
    session = repo.create(Session(profile_id="p1"))
    closed = repo.load(session.session_id)
    closed.ended_at = closed.started_at
    repo.save(closed)
    with pytest.raises(SessionClosedError):
        repo.append_trial(session.session_id, _trial(session, 1), SessionStats())
    with pytest.raises(SessionNotFoundError):
        repo.load("nope")
    assert repo.open_session_for("p1") is None


def test_profile_store_latest_and_listing():
    store = InMemoryCognitiveProfileStore()
    scores = dict(decline_risk_score=50, attention_score=50, memory_score=50, cognitive_control_score=50, fatigue_level=50)
    first = store.create(CognitiveProfile(profile_id="p1", sample_count=1, **scores))
    second = store.create(CognitiveProfile(profile_id="p1", sample_count=2, **scores))
    store.create(CognitiveProfile(profile_id="p2", sample_count=3, **scores))
    assert store.latest("p1").id in {first.id, second.id}
    assert len(store.list("p1")) == 2
    assert len(store.list()) == 3
    assert store.get(first.id) == first
    assert store.latest("nobody") is None
