from __future__ import annotations

import json
import os
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Optional

from .base import LLMClient, LLMRequest, LLMResponse, LLMUnavailableError


@dataclass
class ChatCompletionsConfig:
    base_url: Optional[str] = None  # e.g., https://api.openai.com/v1/chat/completions
    model: Optional[str] = None
    api_token: Optional[str] = None
    timeout: float = 30.0


class ChatCompletionsClient(LLMClient):
    """
    HTTP client for an OpenAI-compatible chat completions endpoint.
    Sends {model, messages, max_tokens, temperature}; reads choices[0].message.content.
    """

    def __init__(self, config: Optional[ChatCompletionsConfig] = None):
        self.config = config or ChatCompletionsConfig()
        self.base_url = self.config.base_url or os.getenv("REMOTE_LLM_URL")
        self.model = self.config.model or os.getenv("REMOTE_LLM_MODEL") or "gpt-4o"
        self.api_token = self.config.api_token or os.getenv("REMOTE_LLM_TOKEN")
        if not self.base_url:
            raise LLMUnavailableError("chat-completions", "base_url is not configured (set REMOTE_LLM_URL)")

    def build_payload(self, req: LLMRequest) -> dict:
        return {
            "model": self.model,
            "messages": req.messages(),
            "max_tokens": req.max_tokens,
            "temperature": req.temperature,
        }

    def generate(self, req: LLMRequest) -> LLMResponse:
        data = json.dumps(self.build_payload(req)).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        request = urllib.request.Request(self.base_url, data=data, headers=headers, method="POST")
        try:
            with urllib.request.urlopen(request, timeout=self.config.timeout) as resp:
                parsed = json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as exc:
            detail = exc.read().decode("utf-8") if hasattr(exc, "read") else str(exc)
            raise LLMUnavailableError("chat-completions", f"HTTP {exc.code} {detail}") from exc
        except Exception as exc:  # pragma: no cover - network errors
            raise LLMUnavailableError("chat-completions", f"request failed: {exc}") from exc
        return self.parse_response(parsed)

    def parse_response(self, parsed: object) -> LLMResponse:
        text = ""
        usage = {}
        if isinstance(parsed, dict):
            choices = parsed.get("choices") or []
            if choices and isinstance(choices[0], dict):
                text = (choices[0].get("message") or {}).get("content") or ""
            usage = parsed.get("usage") or {}
        return LLMResponse(
            text=str(text),
            model=self.model,
            prompt_tokens=usage.get("prompt_tokens"),
            completion_tokens=usage.get("completion_tokens"),
        )
