from __future__ import annotations


class CognitiveCoreError(Exception):
    """Base class for errors raised by the bandit/scoring core."""


class SessionClosedError(CognitiveCoreError):
    def __init__(self, session_id: str):
        super().__init__(f"Session '{session_id}' has already ended")
        self.session_id = session_id


class InvalidArmError(CognitiveCoreError, ValueError):
    def __init__(self, arm: object, n_arms: int = 3):
        super().__init__(f"Arm {arm!r} is not one of {list(range(n_arms))}")
        self.arm = arm


class InsufficientProfileDataError(CognitiveCoreError):
    """Scoring was called without a required input (e.g. the final signal vector)."""


class SessionNotFoundError(CognitiveCoreError, KeyError):
    def __init__(self, session_id: str):
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return f"Session '{self.session_id}' not found"
