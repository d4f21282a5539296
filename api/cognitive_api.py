from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile
from pydantic import BaseModel, Field

from core.models import CognitiveProfile
from services.narrative import ProfileNarrator
from services.sessions import BanditSessionService
from streams.upload import parse_readings_csv


class UploadResponse(BaseModel):
    message: str
    data_points: int = Field(alias="dataPoints")
    profile: CognitiveProfile

    model_config = {"populate_by_name": True}


class NarrativeResponse(BaseModel):
    profile_id: str = Field(alias="profileId")
    text: str
    backend: Optional[str] = None
    fallback: bool = False

    model_config = {"populate_by_name": True}


def build_cognitive_router(service: BanditSessionService, narrator: ProfileNarrator) -> APIRouter:
    router = APIRouter(prefix="/cognitive-profiles", tags=["cognitive-profiles"])

    @router.get("", response_model=List[CognitiveProfile])
    def list_profiles(profile_id: Optional[str] = Query(default=None, alias="profileId")) -> List[CognitiveProfile]:
        return service.profiles.list(profile_id)

    @router.get("/latest", response_model=CognitiveProfile)
    def latest(profile_id: Optional[str] = Query(default=None, alias="profileId")) -> CognitiveProfile:
        if not profile_id:
            raise HTTPException(status_code=400, detail="Profile ID is required")
        profile = service.profiles.latest(profile_id)
        if profile is None:
            raise HTTPException(status_code=404, detail="No cognitive profile found for this profile")
        return profile

    @router.post("/upload", response_model=UploadResponse, status_code=201)
    async def upload(profile_id: str = Form(..., alias="profileId"), readings: UploadFile = File(...)) -> UploadResponse:
        content = await readings.read()
        try:
            vectors = parse_readings_csv(content)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        if not vectors:
            raise HTTPException(status_code=400, detail="Readings file contains no usable rows")
        profile = service.score_upload(profile_id, vectors)
        return UploadResponse(message="Readings processed", data_points=len(vectors), profile=profile)

    @router.post("/{snapshot_id}/narrative", response_model=NarrativeResponse)
    def narrative(snapshot_id: str) -> NarrativeResponse:
        profile = service.profiles.get(snapshot_id)
        if profile is None:
            raise HTTPException(status_code=404, detail="Cognitive profile not found")
        result = narrator.narrate(profile, service.feed.current)
        return NarrativeResponse(profile_id=profile.profile_id, text=result.text, backend=result.backend, fallback=result.fallback)

    return router
