from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional
import uuid

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Trial(BaseModel):
    """One recorded choice-and-outcome event. Never mutated once created."""

    session_id: str = Field(alias="sessionId")
    trial_index: int = Field(ge=1, alias="trialIndex")  # 1-based, gap-free
    arm_chosen: int = Field(ge=0, le=2, alias="armChosen")
    reward_received: int = Field(ge=0, le=1, alias="rewardReceived")
    reaction_time_ms: float = Field(ge=0.0, allow_inf_nan=False, alias="reactionTimeMs")
    recorded_at: datetime = Field(default_factory=_utcnow, alias="recordedAt")

    model_config = {"frozen": True, "populate_by_name": True}


class SessionStats(BaseModel):
    total_trials: int = Field(default=0, alias="totalTrials")
    optimal_choices: int = Field(default=0, alias="optimalChoices")
    exploration_rate: int = Field(default=0, ge=0, le=100, alias="explorationRate")
    learning_rate: int = Field(default=0, ge=0, le=100, alias="learningRate")
    avg_reaction_time_ms: int = Field(default=0, alias="avgReactionTimeMs")
    # heuristic association between recent attention and learning, not a coefficient
    signal_correlation: int = Field(default=0, ge=0, le=100, alias="signalCorrelation")

    model_config = {"frozen": True, "populate_by_name": True}


class Session(BaseModel):
    session_id: str = Field(default_factory=lambda: str(uuid.uuid4()), alias="sessionId")
    profile_id: str = Field(alias="profileId")
    started_at: datetime = Field(default_factory=_utcnow, alias="startedAt")
    ended_at: Optional[datetime] = Field(default=None, alias="endedAt")
    trials: List[Trial] = Field(default_factory=list)
    stats: Optional[SessionStats] = None

    model_config = {"populate_by_name": True}

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    def choices(self) -> List[int]:
        return [t.arm_chosen for t in self.trials]


class CognitiveProfile(BaseModel):
    """Derived snapshot written once per completed session or upload."""

    profile_id: str = Field(alias="profileId")
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    created_at: datetime = Field(default_factory=_utcnow, alias="createdAt")
    decline_risk_score: int = Field(ge=0, le=100, alias="declineRiskScore")
    attention_score: int = Field(ge=0, le=100, alias="attentionScore")
    memory_score: int = Field(ge=0, le=100, alias="memoryScore")
    cognitive_control_score: int = Field(ge=0, le=100, alias="cognitiveControlScore")
    fatigue_level: int = Field(ge=0, le=100, alias="fatigueLevel")
    sample_count: int = Field(ge=0, alias="sampleCount")
    feature_weights: Dict[str, float] = Field(default_factory=dict, alias="featureWeights")

    model_config = {"frozen": True, "populate_by_name": True}
