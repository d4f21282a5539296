from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.bandit_api import build_bandit_router
from api.cognitive_api import build_cognitive_router
from api.signals_api import build_signals_router
from bandit.environment import BanditConfig, BanditEnvironment
from bandit.recorder import TrialRecorder
from bandit.repository import InMemoryCognitiveProfileStore, InMemorySessionRepository
from services.aggregation import SessionAggregator
from services.llm import ChatCompletionsClient, ChatCompletionsConfig, LLMRouter, LLMUnavailableError
from services.narrative import ProfileNarrator
from services.scoring import CognitiveScorer
from services.sessions import BanditSessionService
from streams import InMemorySignalStore, PostgresSignalStore, SignalFeed, StreamBus

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def build_signal_store() -> InMemorySignalStore | PostgresSignalStore:
    dsn = os.getenv("SIGNAL_STORE_DSN")
    table = os.getenv("SIGNAL_STORE_TABLE", "signal_readings")
    if dsn:
        try:
            return PostgresSignalStore(dsn, table=table)
        except Exception as exc:
            logger.warning("Falling back to in-memory signal store: %s", exc)
    return InMemorySignalStore()


def build_llm_router() -> LLMRouter:
    clients = {}
    # Only register a backend that is explicitly configured.
    if os.getenv("REMOTE_LLM_URL"):
        try:
            clients["remote"] = ChatCompletionsClient(ChatCompletionsConfig())
        except LLMUnavailableError as exc:
            logger.warning("Narrative backend disabled: %s", exc)
    return LLMRouter(clients=clients, default_backend="remote" if clients else None)


def build_service(bus: StreamBus) -> BanditSessionService:
    environment = BanditEnvironment(BanditConfig())
    window = int(os.getenv("SIGNAL_HISTORY_WINDOW", "20"))
    aggregator = SessionAggregator(optimal_arm=environment.optimal_arm, n_arms=environment.config.n_arms, signal_window=window)
    signal_store = build_signal_store()
    feed = SignalFeed(
        bus=bus,
        interval_ms=int(os.getenv("SIGNAL_TICK_MS", "1000")),
        magnitude=float(os.getenv("SIGNAL_MAGNITUDE", "5")),
    )
    recorder = TrialRecorder(
        aggregator,
        history_provider=lambda session: signal_store.recent(session.profile_id, limit=window),
        n_arms=environment.config.n_arms,
    )
    return BanditSessionService(
        repo=InMemorySessionRepository(),
        profiles=InMemoryCognitiveProfileStore(),
        recorder=recorder,
        scorer=CognitiveScorer(aggregator),
        environment=environment,
        feed=feed,
        signal_store=signal_store,
        bus=bus,
    )


stream_bus = StreamBus()
session_service = build_service(stream_bus)
narrator = ProfileNarrator(build_llm_router())


@asynccontextmanager
async def lifespan(_: FastAPI):
    if os.getenv("SIGNAL_AUTOSTART", "").lower() in {"1", "true", "yes"}:
        await session_service.feed.start()
    yield
    session_service.feed.stop()


app = FastAPI(title="Recollect API", version="0.1.0", lifespan=lifespan)

allowed_origins = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "").split(",") if o.strip()]
if allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
app.include_router(build_bandit_router(session_service))
app.include_router(build_signals_router(session_service.feed, stream_bus, session_service.signal_store))
app.include_router(build_cognitive_router(session_service, narrator))


@app.get("/health")
def health() -> dict:
    return {
        "status": "ok",
        "signal_feed_running": session_service.feed.running,
        "live_subscribers": stream_bus.subscriber_count(),
        "narrative_backends": narrator.router.backends() if narrator.router else [],
    }
