from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol


class LLMUnavailableError(RuntimeError):
    """A backend could not produce text: not configured, unreachable or refused."""

    def __init__(self, backend: str, reason: str):
        super().__init__(f"{backend}: {reason}")
        self.backend = backend
        self.reason = reason


@dataclass
class LLMRequest:
    """One narrative prompt; the system turn carries the caregiver-facing tone."""

    prompt: str
    max_tokens: int = 200
    temperature: float = 0.7
    system_prompt: Optional[str] = None

    def messages(self) -> List[Dict[str, str]]:
        out = []
        if self.system_prompt:
            out.append({"role": "system", "content": self.system_prompt.strip()})
        out.append({"role": "user", "content": self.prompt.strip()})
        return out


@dataclass
class LLMResponse:
    text: str
    model: str
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None

    @property
    def is_blank(self) -> bool:
        return not self.text.strip()


class LLMClient(Protocol):
    def generate(self, req: LLMRequest) -> LLMResponse:
        """Return generated text or raise LLMUnavailableError."""
        ...
