from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from bandit.environment import BanditEnvironment
from bandit.recorder import TrialRecorder
from bandit.repository import InMemoryCognitiveProfileStore, SessionRepository
from core.errors import SessionClosedError
from core.models import CognitiveProfile, Session, SessionStats, Trial
from policies.arm_advisor import ArmDef, QValueAdvisor
from services.scoring import CognitiveScorer
from streams.bus import StreamBus
from streams.models import SignalReading, SignalVector
from streams.store import InMemorySignalStore, PostgresSignalStore
from streams.synthetic import SignalFeed

logger = logging.getLogger(__name__)


@dataclass
class PullResult:
    trial: Trial
    session: Session
    recommended_arm: Optional[int]
    q_values: List[float] = field(default_factory=list)


@dataclass
class SessionEnd:
    session: Session
    profile: CognitiveProfile


class BanditSessionService:
    """Composition of recorder, scorer, storage and the signal feed.

    Every mutation of a session runs under that session's lock, so trial
    indices stay gap-free and ending a session cannot interleave with an
    append.
    """

    def __init__(
        self,
        repo: SessionRepository,
        profiles: InMemoryCognitiveProfileStore,
        recorder: TrialRecorder,
        scorer: CognitiveScorer,
        environment: BanditEnvironment,
        feed: SignalFeed,
        signal_store: InMemorySignalStore | PostgresSignalStore,
        bus: Optional[StreamBus] = None,
    ):
        self.repo = repo
        self.profiles = profiles
        self.recorder = recorder
        self.scorer = scorer
        self.environment = environment
        self.feed = feed
        self.signal_store = signal_store
        self.bus = bus
        self._locks: Dict[str, asyncio.Lock] = {}
        self._advisors: Dict[str, QValueAdvisor] = {}
        self._feed_links: Dict[str, Callable[[], None]] = {}
        self.recorder.add_listener(self._on_trial_recorded)

    def _lock(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        return lock

    def _advisor(self, session_id: str) -> QValueAdvisor:
        advisor = self._advisors.get(session_id)
        if advisor is None:
            arms = [ArmDef(id=i, name=name) for i, name in enumerate(self.environment.config.arm_names)]
            advisor = self._advisors[session_id] = QValueAdvisor(arms)
        return advisor

    def _publish(self, message: dict) -> None:
        if self.bus is not None:
            self.bus.publish_nowait(message)

    def _on_trial_recorded(self, session: Session, trial: Trial) -> None:
        self._publish(
            {
                "kind": "trial_recorded",
                "trial": trial.model_dump(mode="json", by_alias=True),
                "stats": session.stats.model_dump(mode="json", by_alias=True) if session.stats else None,
                "meta": {"session_id": session.session_id, "profile_id": session.profile_id},
            }
        )

    def _link_feed(self, session: Session) -> None:
        profile_id, session_id = session.profile_id, session.session_id

        def _store_reading(vector: SignalVector) -> None:
            self.signal_store.append(SignalReading(profile_id=profile_id, session_id=session_id, vector=vector))

        self._feed_links[session_id] = self.feed.subscribe(_store_reading)

    def _unlink_feed(self, session_id: str) -> None:
        unsubscribe = self._feed_links.pop(session_id, None)
        if unsubscribe:
            unsubscribe()

    async def start_session(self, profile_id: str) -> Session:
        existing = self.repo.open_session_for(profile_id)
        if existing is not None:
            return existing
        session = Session(profile_id=profile_id, stats=SessionStats())
        self.repo.create(session)
        self._link_feed(session)
        logger.info("Started bandit session %s for profile %s", session.session_id, profile_id)
        return session

    def get_session(self, session_id: str) -> Session:
        return self.repo.load(session_id)

    def list_sessions(self, profile_id: Optional[str] = None) -> List[Session]:
        if profile_id:
            return self.repo.list_by_profile(profile_id)
        return self.repo.list_all()

    def _record_locked(self, session: Session, arm_chosen: int, reward_received: int, reaction_time_ms: float) -> Trial:
        # caller holds the session lock; listeners hear about the trial only once it is stored
        trial = self.recorder.record_trial(session, arm_chosen, reward_received, reaction_time_ms, notify=False)
        self.repo.append_trial(session.session_id, trial, session.stats)
        self._advisor(session.session_id).update(trial.arm_chosen, trial.reward_received)
        self.recorder.notify(session, trial)
        return trial

    async def record_trial(self, session_id: str, arm_chosen: int, reward_received: int, reaction_time_ms: float) -> Trial:
        async with self._lock(session_id):
            session = self.repo.load(session_id)
            return self._record_locked(session, arm_chosen, reward_received, reaction_time_ms)

    async def pull(self, session_id: str, arm_chosen: int, reaction_time_ms: float) -> PullResult:
        async with self._lock(session_id):
            session = self.repo.load(session_id)
            if not session.is_open:
                raise SessionClosedError(session_id)
            reward = self.environment.pull(arm_chosen)
            trial = self._record_locked(session, arm_chosen, reward, reaction_time_ms)
        advisor = self._advisor(session_id)
        recommended = advisor.recommend()
        return PullResult(
            trial=trial,
            session=session,
            recommended_arm=recommended.id if recommended else None,
            q_values=advisor.q_values(),
        )

    async def refresh_stats(self, session_id: str) -> SessionStats:
        async with self._lock(session_id):
            session = self.repo.load(session_id)
            if session.ended_at is not None and session.stats is not None:
                return session.stats
            session.stats = self.recorder.recompute(session)
            self.repo.save(session)
            return session.stats

    async def end_session(self, session_id: str) -> SessionEnd:
        async with self._lock(session_id):
            session = self.repo.load(session_id)
            self.recorder.end_session(session)
            self.repo.save(session)
            self._unlink_feed(session_id)
            profile = self.profiles.create(self.scorer.score_session(session, self.feed.current))
        self._locks.pop(session_id, None)
        self._advisors.pop(session_id, None)
        logger.info(
            "Ended bandit session %s: %s trials, decline risk %s",
            session_id,
            len(session.trials),
            profile.decline_risk_score,
        )
        self._publish(
            {
                "kind": "session_ended",
                "session": session.model_dump(mode="json", by_alias=True),
                "profile": profile.model_dump(mode="json", by_alias=True),
                "meta": {"session_id": session_id, "profile_id": session.profile_id},
            }
        )
        return SessionEnd(session=session, profile=profile)

    def score_upload(self, profile_id: str, vectors: List[SignalVector]) -> CognitiveProfile:
        for vector in vectors:
            self.signal_store.append(SignalReading(profile_id=profile_id, vector=vector))
        profile = self.profiles.create(self.scorer.score_readings(profile_id, vectors))
        logger.info("Scored %s uploaded readings for profile %s", len(vectors), profile_id)
        return profile
