from __future__ import annotations

from typing import Dict, List, Literal, Optional

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from streams.bus import StreamBus
from streams.models import SignalReading, SignalVector
from streams.store import InMemorySignalStore, PostgresSignalStore
from streams.synthetic import SignalFeed


class SignalEventRequest(BaseModel):
    kind: Literal["stress", "relaxation", "recognition"]
    level: float = Field(default=20.0, ge=0.0, le=100.0, description="Magnitude for stress/relaxation events")
    recognized: bool = Field(default=True, description="Outcome for recognition events")


class FeedStatus(BaseModel):
    running: bool
    interval_ms: int = Field(alias="intervalMs")
    ticks: int
    subscribers: int
    bus_subscribers: int = Field(alias="busSubscribers")
    current: SignalVector

    model_config = {"populate_by_name": True}


class ReadingsPage(BaseModel):
    profile_id: str = Field(alias="profileId")
    total: int
    readings: List[SignalReading]

    model_config = {"populate_by_name": True}


def build_signals_router(
    feed: SignalFeed,
    bus: StreamBus,
    signal_store: InMemorySignalStore | PostgresSignalStore,
) -> APIRouter:
    router = APIRouter(prefix="/signals", tags=["signals"])

    def _status() -> FeedStatus:
        return FeedStatus(
            running=feed.running,
            interval_ms=feed.interval_ms,
            ticks=feed.tick_count,
            subscribers=feed.subscriber_count(),
            bus_subscribers=bus.subscriber_count(),
            current=feed.current,
        )

    @router.get("/current", response_model=SignalVector)
    def current() -> SignalVector:
        return feed.current

    @router.get("/status", response_model=FeedStatus)
    def status() -> FeedStatus:
        return _status()

    # handlers that touch the feed are async so they run on the event loop thread
    @router.post("/start", response_model=FeedStatus)
    async def start() -> FeedStatus:
        await feed.start()
        return _status()

    @router.post("/stop", response_model=FeedStatus)
    async def stop() -> FeedStatus:
        feed.stop()
        return _status()

    @router.post("/adjust", response_model=SignalVector)
    async def adjust(partial: Dict[str, float]) -> SignalVector:
        try:
            return feed.adjust(partial)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))

    @router.post("/events", response_model=SignalVector)
    async def scripted_event(req: SignalEventRequest) -> SignalVector:
        if req.kind == "stress":
            return feed.simulate_stress(req.level)
        if req.kind == "relaxation":
            return feed.simulate_relaxation(req.level)
        return feed.simulate_recognition(req.recognized)

    @router.get("/readings", response_model=ReadingsPage)
    def list_readings(
        profile_id: str = Query(..., alias="profileId", min_length=1),
        session_id: Optional[str] = Query(default=None, alias="sessionId"),
        limit: int = Query(default=20, ge=1, le=1000),
    ) -> ReadingsPage:
        """Most recent stored readings for a profile, oldest first."""
        return ReadingsPage(
            profile_id=profile_id,
            total=signal_store.count(profile_id),
            readings=signal_store.recent(profile_id, limit=limit, session_id=session_id),
        )

    @router.post("/readings", response_model=SignalReading, status_code=201)
    def add_reading(reading: SignalReading) -> SignalReading:
        signal_store.append(reading)
        return reading

    @router.websocket("/live")
    async def live(websocket: WebSocket, kinds: Optional[str] = None) -> None:
        """Push signal ticks and session events from the bus to a client.

        ``?kinds=signal,session_ended`` narrows the stream.
        """
        await websocket.accept()
        wanted = [k.strip() for k in kinds.split(",") if k.strip()] if kinds else None
        queue = await bus.subscribe(wanted)
        try:
            while True:
                message = await queue.get()
                await websocket.send_json(message)
        except WebSocketDisconnect:
            pass
        finally:
            bus.unsubscribe(queue)

    return router
