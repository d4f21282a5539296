from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from core.errors import InvalidArmError, SessionClosedError
from core.models import Session, SessionStats, Trial
from services.aggregation import SessionAggregator
from streams.models import SignalReading

logger = logging.getLogger(__name__)

TrialListener = Callable[[Session, Trial], None]
HistoryProvider = Callable[[Session], Iterable[SignalReading]]


def _no_history(session: Session) -> List[SignalReading]:
    return []


class TrialRecorder:
    """Appends trials to a session's log and keeps its stats current.

    Recomputation happens inline before ``record_trial`` returns, so the
    session's stats always describe its full trial log.
    """

    def __init__(
        self,
        aggregator: SessionAggregator,
        history_provider: Optional[HistoryProvider] = None,
        n_arms: int = 3,
    ):
        self.aggregator = aggregator
        self.history_provider = history_provider or _no_history
        self.n_arms = n_arms
        self._listeners: List[TrialListener] = []

    def add_listener(self, listener: TrialListener) -> None:
        self._listeners.append(listener)

    def record_trial(
        self,
        session: Session,
        arm_chosen: int,
        reward_received: int,
        reaction_time_ms: float,
        notify: bool = True,
    ) -> Trial:
        """Append one trial and refresh the session's stats.

        Stats are computed on the extended log before anything is appended,
        so a failure leaves the session untouched. Pass ``notify=False`` when
        the caller persists the trial first and calls ``notify`` itself.
        """
        if not session.is_open:
            raise SessionClosedError(session.session_id)
        if isinstance(arm_chosen, bool) or not isinstance(arm_chosen, int) or not 0 <= arm_chosen < self.n_arms:
            raise InvalidArmError(arm_chosen, self.n_arms)
        if reward_received not in (0, 1):
            raise ValueError(f"reward_received must be 0 or 1, got {reward_received!r}")
        if not math.isfinite(reaction_time_ms) or reaction_time_ms < 0:
            raise ValueError("reaction_time_ms must be a finite, non-negative number")

        trial = Trial(
            session_id=session.session_id,
            trial_index=len(session.trials) + 1,
            arm_chosen=arm_chosen,
            reward_received=int(reward_received),
            reaction_time_ms=float(reaction_time_ms),
        )
        stats = self.aggregator.compute_stats(session.trials + [trial], self.history_provider(session))
        session.trials.append(trial)
        session.stats = stats
        if notify:
            self.notify(session, trial)
        return trial

    def notify(self, session: Session, trial: Trial) -> None:
        for listener in list(self._listeners):
            try:
                listener(session, trial)
            except Exception:
                logger.exception("Trial listener failed for session %s", session.session_id)

    def end_session(self, session: Session) -> SessionStats:
        if not session.is_open:
            raise SessionClosedError(session.session_id)
        session.ended_at = datetime.now(timezone.utc)
        session.stats = self.recompute(session)
        return session.stats

    def recompute(self, session: Session) -> SessionStats:
        return self.aggregator.compute_stats(session, self.history_provider(session))
