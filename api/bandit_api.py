from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, Response
from pydantic import BaseModel, Field

from core.errors import InvalidArmError, SessionClosedError, SessionNotFoundError
from core.models import CognitiveProfile, Session, SessionStats, Trial
from services.sessions import BanditSessionService


class StartSessionRequest(BaseModel):
    profile_id: str = Field(alias="profileId", min_length=1)

    model_config = {"populate_by_name": True}


class TrialRequest(BaseModel):
    arm_chosen: int = Field(alias="armChosen")
    reward_received: int = Field(alias="rewardReceived")
    reaction_time_ms: float = Field(alias="reactionTimeMs", allow_inf_nan=False)

    model_config = {"populate_by_name": True}


class PullRequest(BaseModel):
    arm_chosen: int = Field(alias="armChosen")
    reaction_time_ms: float = Field(alias="reactionTimeMs", ge=0.0, allow_inf_nan=False)

    model_config = {"populate_by_name": True}


class PullResponse(BaseModel):
    trial: Trial
    stats: Optional[SessionStats] = None
    recommended_arm: Optional[int] = Field(default=None, alias="recommendedArm")
    q_values: List[float] = Field(default_factory=list, alias="qValues")

    model_config = {"populate_by_name": True}


class EndSessionResponse(BaseModel):
    session: Session
    profile: CognitiveProfile


def build_bandit_router(service: BanditSessionService) -> APIRouter:
    router = APIRouter(prefix="/bandit", tags=["bandit"])

    def _load(session_id: str) -> Session:
        try:
            return service.get_session(session_id)
        except SessionNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc))

    @router.get("/config")
    def config() -> dict:
        return service.environment.describe()

    @router.get("/sessions", response_model=List[Session])
    def list_sessions(profile_id: Optional[str] = Query(default=None, alias="profileId")) -> List[Session]:
        return service.list_sessions(profile_id)

    @router.post("/sessions", response_model=Session, status_code=201)
    async def start_session(req: StartSessionRequest, response: Response) -> Session:
        # an already-open session is handed back with 200 rather than created
        if service.repo.open_session_for(req.profile_id) is not None:
            response.status_code = 200
        return await service.start_session(req.profile_id)

    @router.get("/sessions/{session_id}", response_model=Session)
    def get_session(session_id: str) -> Session:
        return _load(session_id)

    @router.get("/sessions/{session_id}/trials", response_model=List[Trial])
    def list_trials(session_id: str) -> List[Trial]:
        return list(_load(session_id).trials)

    @router.post("/sessions/{session_id}/trials", response_model=Trial, status_code=201)
    async def record_trial(session_id: str, req: TrialRequest) -> Trial:
        try:
            return await service.record_trial(session_id, req.arm_chosen, req.reward_received, req.reaction_time_ms)
        except SessionNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc))
        except SessionClosedError as exc:
            raise HTTPException(status_code=409, detail=str(exc))
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))

    @router.post("/sessions/{session_id}/pull", response_model=PullResponse, status_code=201)
    async def pull(session_id: str, req: PullRequest) -> PullResponse:
        try:
            result = await service.pull(session_id, req.arm_chosen, req.reaction_time_ms)
        except SessionNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc))
        except SessionClosedError as exc:
            raise HTTPException(status_code=409, detail=str(exc))
        except InvalidArmError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        return PullResponse(
            trial=result.trial,
            stats=result.session.stats,
            recommended_arm=result.recommended_arm,
            q_values=result.q_values,
        )

    @router.get("/sessions/{session_id}/stats", response_model=SessionStats)
    async def stats(session_id: str) -> SessionStats:
        try:
            return await service.refresh_stats(session_id)
        except SessionNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc))

    @router.post("/sessions/{session_id}/end", response_model=EndSessionResponse)
    async def end_session(session_id: str) -> EndSessionResponse:
        try:
            ended = await service.end_session(session_id)
        except SessionNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc))
        except SessionClosedError as exc:
            raise HTTPException(status_code=409, detail=str(exc))
        return EndSessionResponse(session=ended.session, profile=ended.profile)

    return router
