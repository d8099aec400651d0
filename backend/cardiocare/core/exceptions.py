"""
Exception hierarchy for the risk engine and the conversational agent.

Each error carries a stable ``code`` and a ``details`` dict so callers can
turn it into an API payload without inspecting the message.
"""
from typing import Any, Dict, Optional


class CardioCareError(Exception):
    """Base exception for all CardioCare errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details
        }


class RiskValidationError(CardioCareError):
    """Patient measurements that cannot be scored."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="VALIDATION_FAILED", details=details)


class AgentError(CardioCareError):
    """A conversational turn failed and produced no reply."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="AGENT_ERROR", details=details)


class AgentTimeoutError(AgentError):
    """The caller's deadline expired before the turn finished."""

    def __init__(self, timeout_seconds: float, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Agent turn exceeded {timeout_seconds}s deadline",
            details={"timeout_seconds": timeout_seconds, **(details or {})}
        )
        self.code = "AGENT_TIMEOUT"
        self.timeout_seconds = timeout_seconds


class AgentNotInitializedError(CardioCareError):
    """The agent runtime was used before application startup built it."""

    def __init__(self, message: str = "Agent not initialized. Call initialize_agent() during app startup."):
        super().__init__(message=message, code="AGENT_NOT_INITIALIZED")
