from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from core.models import CognitiveProfile
from services.llm import LLMRequest, LLMRouter, LLMUnavailableError
from streams.models import SignalVector

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a memory assistance AI that explains cognitive exercise results to "
    "people living with memory loss and their caregivers, gently and without alarm."
)
FALLBACK_TEXT = "I'm sorry, I couldn't put together a summary of this session right now."


@dataclass
class Narrative:
    text: str
    backend: Optional[str]
    fallback: bool = False


def _band(score: int) -> str:
    if score >= 70:
        return "high"
    if score >= 40:
        return "moderate"
    return "low"


class ProfileNarrator:
    """Turns a CognitiveProfile into a short, reassuring summary.

    Output is display text only; no score is ever derived from it.
    """

    def __init__(self, router: Optional[LLMRouter] = None, max_tokens: int = 200):
        self.router = router
        self.max_tokens = max_tokens

    def build_prompt(self, profile: CognitiveProfile, signal: Optional[SignalVector] = None) -> str:
        prompt = (
            "Write a brief, encouraging summary of a memory game session. "
            f"Attention was {_band(profile.attention_score)} ({profile.attention_score}/100), "
            f"memory {_band(profile.memory_score)} ({profile.memory_score}/100), "
            f"calm focus {_band(profile.cognitive_control_score)} ({profile.cognitive_control_score}/100), "
            f"and tiredness {_band(profile.fatigue_level)} ({profile.fatigue_level}/100)."
        )
        if profile.sample_count < 10:
            prompt += " The session was short, so do not draw conclusions about overall memory health."
        if signal is not None:
            if signal.stress > 70:
                prompt += f" The player seems stressed (stress level: {round(signal.stress)}/100), so keep it extra calming and simple."
            elif signal.relaxation > 70:
                prompt += f" The player seems relaxed (relaxation level: {round(signal.relaxation)}/100), so a little more detail is fine."
        prompt += " Keep it to 2-3 sentences, positive, written in second person. Never mention diagnoses or risk."
        return prompt

    def narrate(self, profile: CognitiveProfile, signal: Optional[SignalVector] = None) -> Narrative:
        if self.router is None or not self.router.clients:
            return Narrative(text=FALLBACK_TEXT, backend=None, fallback=True)
        req = LLMRequest(prompt=self.build_prompt(profile, signal), max_tokens=self.max_tokens, system_prompt=SYSTEM_PROMPT)
        try:
            resp, backend = self.router.generate(req)
        except LLMUnavailableError as exc:
            logger.warning("Narrative generation failed for profile %s: %s", profile.profile_id, exc)
            return Narrative(text=FALLBACK_TEXT, backend=None, fallback=True)
        if resp.is_blank:
            return Narrative(text=FALLBACK_TEXT, backend=backend, fallback=True)
        return Narrative(text=resp.text.strip(), backend=backend)
