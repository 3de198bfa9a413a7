"""
Exception types raised by the agent runtime core.
"""
from typing import Optional


class AgentRuntimeError(Exception):
    """Base class for agent runtime errors"""
    pass


class RuntimeConfigurationError(AgentRuntimeError):
    """Raised when the runtime is wired incorrectly. Never retried."""
    pass


class UnknownModelProviderError(RuntimeConfigurationError):
    """Raised when a character selects a provider with no model settings"""

    def __init__(self, provider: str):
        super().__init__(f"Unsupported model provider: {provider}")
        self.provider = provider


class MissingHandlerError(RuntimeConfigurationError):
    """A matched action has no handler"""

    def __init__(self, action_name: str):
        super().__init__(f"Action {action_name} has no handler")
        self.action_name = action_name


class EmptyContentError(AgentRuntimeError):
    """Raised when a memory without text is asked for an embedding"""
    pass


class EmptyContextError(AgentRuntimeError):
    """Raised when a generation call that must return a value gets no context"""
    pass


class GenerationError(AgentRuntimeError):
    """Base class for failures while talking to the model backend"""
    pass


class MaxRetriesExceeded(GenerationError):
    """Raised once a retry policy's budget is spent"""

    def __init__(self, message: str, attempts: int, total_delay_ms: float, last_error: Optional[Exception] = None):
        super().__init__(message)
        self.attempts = attempts
        self.total_delay_ms = total_delay_ms
        self.last_error = last_error
