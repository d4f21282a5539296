import pytest

from bandit.recorder import TrialRecorder
from core.errors import InvalidArmError, SessionClosedError
from core.models import Session
from services.aggregation import SessionAggregator
from streams.models import SignalReading, SignalVector


def _recorder(history=None) -> TrialRecorder:
    provider = (lambda session: history) if history is not None else None
    return TrialRecorder(SessionAggregator(optimal_arm=2), history_provider=provider)


def test_record_trial_appends_and_recomputes():
    recorder = _recorder()
    session = Session(profile_id="p1")
    for arm, reward in [(2, 1), (2, 0), (1, 1), (2, 1)]:
        recorder.record_trial(session, arm, reward, 350)
    assert [t.trial_index for t in session.trials] == [1, 2, 3, 4]
    assert session.stats.total_trials == 4
    assert session.stats.optimal_choices == 3
    assert session.stats.exploration_rate == 25
    assert session.stats.avg_reaction_time_ms == 350


def test_closed_session_rejects_trials():
    recorder = _recorder()
    session = Session(profile_id="p1")
    recorder.record_trial(session, 0, 1, 200)
    recorder.end_session(session)
    with pytest.raises(SessionClosedError):
        recorder.record_trial(session, 2, 1, 200)
    assert len(session.trials) == 1


def test_end_session_only_once():
    recorder = _recorder()
    session = Session(profile_id="p1")
    stats = recorder.end_session(session)
    assert session.ended_at is not None
    assert stats.total_trials == 0
    ended_at = session.ended_at
    with pytest.raises(SessionClosedError):
        recorder.end_session(session)
    assert session.ended_at == ended_at


@pytest.mark.parametrize("arm", [-1, 3, True])
def test_invalid_arm_is_not_recorded(arm):
    recorder = _recorder()
    session = Session(profile_id="p1")
    with pytest.raises(InvalidArmError):
        recorder.record_trial(session, arm, 1, 100)
    assert session.trials == []


def test_invalid_reward_and_reaction_time():
    recorder = _recorder()
    session = Session(profile_id="p1")
    with pytest.raises(ValueError):
        recorder.record_trial(session, 1, 2, 100)
    with pytest.raises(ValueError):
        recorder.record_trial(session, 1, 1, -5)
    assert session.trials == []


def test_listeners_notified_and_failures_isolated():
    recorder = _recorder()
    seen = []

    def broken(session, trial):
        raise RuntimeError("boom")

    recorder.add_listener(broken)
    recorder.add_listener(lambda session, trial: seen.append(trial.trial_index))
    session = Session(profile_id="p1")
    recorder.record_trial(session, 0, 0, 10)
    recorder.record_trial(session, 2, 1, 10)
    assert seen == [1, 2]


def test_history_provider_feeds_signal_correlation():
    history = [SignalReading(profile_id="p1", vector=SignalVector(attention=50.0))] * 20
    recorder = _recorder(history)
    session = Session(profile_id="p1")
    for arm in [0, 0, 2, 2]:
        recorder.record_trial(session, arm, 1, 100)
    assert session.stats.learning_rate == 100
    assert session.stats.signal_correlation == 50


def test_huge_reaction_times_do_not_overflow():
    recorder = _recorder()
    session = Session(profile_id="p1")
    recorder.record_trial(session, 2, 1, 1e308)
    recorder.record_trial(session, 2, 1, 1e308)
    assert session.stats.total_trials == 2
    assert session.stats.avg_reaction_time_ms == int(1e308)


@pytest.mark.parametrize("reaction_time", [float("inf"), float("nan")])
def test_non_finite_reaction_time_rejected(reaction_time):
    recorder = _recorder()
    session = Session(profile_id="p1")
    recorder.record_trial(session, 1, 1, 100)
    with pytest.raises(ValueError):
        recorder.record_trial(session, 1, 1, reaction_time)
    assert len(session.trials) == 1
    assert session.stats.total_trials == 1


def test_failed_recompute_leaves_log_untouched():
    def failing_history(session):
        raise RuntimeError("history unavailable")

    recorder = TrialRecorder(SessionAggregator(optimal_arm=2), history_provider=failing_history)
    session = Session(profile_id="p1")
    with pytest.raises(RuntimeError):
        recorder.record_trial(session, 2, 1, 100)
    assert session.trials == []
    assert session.stats is None


def test_notify_can_be_deferred():
    recorder = _recorder()
    seen = []
    recorder.add_listener(lambda session, trial: seen.append(trial.trial_index))
    session = Session(profile_id="p1")
    trial = recorder.record_trial(session, 0, 1, 10, notify=False)
    assert seen == []
    recorder.notify(session, trial)
    assert seen == [1]
