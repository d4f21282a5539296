from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional
import uuid

from pydantic import BaseModel, Field


SIGNAL_FIELDS = ("attention", "relaxation", "stress", "recognition", "theta", "alpha", "beta", "blink_rate")


def clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


class SignalVector(BaseModel):
    """Synthetic EEG-like reading; every field is on a 0-100 scale."""

    attention: float = Field(default=50.0, ge=0.0, le=100.0)
    relaxation: float = Field(default=60.0, ge=0.0, le=100.0)
    stress: float = Field(default=20.0, ge=0.0, le=100.0)
    recognition: float = Field(default=40.0, ge=0.0, le=100.0)
    theta: float = Field(default=40.0, ge=0.0, le=100.0)
    alpha: float = Field(default=50.0, ge=0.0, le=100.0)
    beta: float = Field(default=30.0, ge=0.0, le=100.0)
    blink_rate: float = Field(default=20.0, ge=0.0, le=100.0, alias="blinkRate")

    model_config = {"frozen": True, "populate_by_name": True}

    def with_updates(self, updates: Mapping[str, float]) -> "SignalVector":
        """Return a copy with the named fields replaced (clamped to 0-100)."""
        values: Dict[str, float] = self.as_dict()
        for key, value in updates.items():
            name = "blink_rate" if key == "blinkRate" else key
            if name not in SIGNAL_FIELDS:
                raise ValueError(f"Unknown signal field '{key}'. Options: {', '.join(SIGNAL_FIELDS)}")
            values[name] = clamp_percent(value)
        return SignalVector(**values)

    def as_dict(self) -> Dict[str, float]:
        return {name: float(getattr(self, name)) for name in SIGNAL_FIELDS}

    @classmethod
    def mean_of(cls, vectors: List["SignalVector"]) -> Optional["SignalVector"]:
        if not vectors:
            return None
        n = float(len(vectors))
        return cls(**{name: clamp_percent(sum(getattr(v, name) for v in vectors) / n) for name in SIGNAL_FIELDS})


class SignalReading(BaseModel):
    """A signal vector attributed to a profile (and optionally a session)."""

    reading_id: str = Field(default_factory=lambda: str(uuid.uuid4()), alias="readingId")
    profile_id: str = Field(alias="profileId")
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    timestamp_utc: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), alias="timestamp")
    vector: SignalVector

    model_config = {"frozen": True, "populate_by_name": True}

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "SignalReading":
        return cls.model_validate(payload)
