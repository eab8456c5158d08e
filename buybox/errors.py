"""Error kinds raised by the analysis core."""
from __future__ import annotations


class BuyboxError(Exception):
    """Base class for all analysis errors."""


class ValidationError(BuyboxError):
    """Submission is missing fields or fails length/range checks. Never retried."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid submission")


class EngineUnavailableError(BuyboxError):
    """Engine is disabled or its credentials are not configured."""

    def __init__(self, engine_id: str, reason: str = ""):
        self.engine_id = engine_id
        msg = f"Engine '{engine_id}' is not available"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class AnalysisError(BuyboxError):
    """A single engine failed while processing a submission."""

    def __init__(self, engine_id: str, message: str, retryable: bool = False):
        super().__init__(f"{engine_id}: {message}")
        self.engine_id = engine_id
        self.retryable = retryable


class OrchestrationError(BuyboxError):
    """Unknown engine id or an unusable request to the orchestrator."""
