from __future__ import annotations

from typing import Dict, List, Optional, Protocol

from core.errors import SessionClosedError, SessionNotFoundError
from core.models import CognitiveProfile, Session, SessionStats, Trial


class SessionRepository(Protocol):
    def create(self, session: Session) -> Session:
        ...

    def load(self, session_id: str) -> Session:
        ...

    def save(self, session: Session) -> None:
        ...

    def append_trial(self, session_id: str, trial: Trial, stats: SessionStats) -> None:
        """Persist one new trial together with the stats that include it."""
        ...

    def list_by_profile(self, profile_id: str) -> List[Session]:
        ...

    def list_all(self) -> List[Session]:
        ...

    def open_session_for(self, profile_id: str) -> Optional[Session]:
        ...


class InMemorySessionRepository:
    """Process-local session storage. Callers serialize writes per session.

    Sessions go in and come out as copies, so a caller holding a loaded
    session never sees writes it did not make.
    """

    def __init__(self):
        self.sessions: Dict[str, Session] = {}

    def _stored(self, session_id: str) -> Session:
        session = self.sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def create(self, session: Session) -> Session:
        if session.session_id in self.sessions:
            raise ValueError(f"Session '{session.session_id}' already exists")
        self.sessions[session.session_id] = session.model_copy(deep=True)
        return session

    def load(self, session_id: str) -> Session:
        return self._stored(session_id).model_copy(deep=True)

    def save(self, session: Session) -> None:
        self._stored(session.session_id)
        self.sessions[session.session_id] = session.model_copy(deep=True)

    def append_trial(self, session_id: str, trial: Trial, stats: SessionStats) -> None:
        stored = self._stored(session_id)
        if not stored.is_open:
            raise SessionClosedError(session_id)
        if trial.trial_index != len(stored.trials) + 1:
            raise ValueError(
                f"Trial index {trial.trial_index} does not follow {len(stored.trials)} stored trials"
            )
        stored.trials.append(trial)
        stored.stats = stats

    def list_by_profile(self, profile_id: str) -> List[Session]:
        sessions = [s.model_copy(deep=True) for s in self.sessions.values() if s.profile_id == profile_id]
        return sorted(sessions, key=lambda s: s.started_at, reverse=True)

    def list_all(self) -> List[Session]:
        sessions = [s.model_copy(deep=True) for s in self.sessions.values()]
        return sorted(sessions, key=lambda s: s.started_at, reverse=True)

    def open_session_for(self, profile_id: str) -> Optional[Session]:
        for session in self.list_by_profile(profile_id):
            if session.is_open:
                return session
        return None


class InMemoryCognitiveProfileStore:
    def __init__(self):
        self.profiles: Dict[str, CognitiveProfile] = {}

    def create(self, profile: CognitiveProfile) -> CognitiveProfile:
        self.profiles[profile.id] = profile
        return profile

    def get(self, profile_snapshot_id: str) -> Optional[CognitiveProfile]:
        return self.profiles.get(profile_snapshot_id)

    def list(self, profile_id: Optional[str] = None) -> List[CognitiveProfile]:
        items = [p for p in self.profiles.values() if profile_id is None or p.profile_id == profile_id]
        return sorted(items, key=lambda p: p.created_at, reverse=True)

    def latest(self, profile_id: str) -> Optional[CognitiveProfile]:
        items = self.list(profile_id)
        return items[0] if items else None
