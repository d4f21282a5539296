from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .base import LLMClient, LLMRequest, LLMResponse, LLMUnavailableError

logger = logging.getLogger(__name__)


@dataclass
class LLMRouter:
    """Named text backends tried in order until one answers.

    The default backend (or an explicitly requested one) goes first, the rest
    follow by name. Any RuntimeError from a backend hands over to the next;
    when all fail, one LLMUnavailableError carries the collected reasons.
    """

    clients: Dict[str, LLMClient]
    default_backend: Optional[str] = None

    def backends(self) -> List[str]:
        return sorted(self.clients)

    def _order(self, preferred: Optional[str]) -> List[str]:
        first = preferred or self.default_backend
        rest = [name for name in self.backends() if name != first]
        return ([first] if first in self.clients else []) + rest

    def generate(self, req: LLMRequest, backend: Optional[str] = None) -> Tuple[LLMResponse, str]:
        order = self._order(backend)
        if not order:
            raise LLMUnavailableError("router", "no backend is configured")
        errors = []
        for name in order:
            try:
                return self.clients[name].generate(req), name
            except RuntimeError as exc:
                logger.warning("LLM backend '%s' failed: %s", name, exc)
                errors.append(f"{name}: {exc}")
        raise LLMUnavailableError("router", "all backends failed; " + "; ".join(errors))
