"""
FocusBot centralized error handling and exception hierarchy
"""
import threading
import time
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .logging_utils import setup_logger

logger = setup_logger("focusbot.error_handler", "logs/focusbot.log")


class ErrorSeverity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """Context information for error tracking"""
    component: str
    operation: str
    session_id: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)


class ErrorHandler:
    """Records pipeline failures with severity-mapped logging and a bounded history."""

    def __init__(self, max_history_size: int = 1000):
        self.error_count = 0
        self.error_history: List[Dict[str, Any]] = []
        self.max_history_size = max_history_size
        self._lock = threading.Lock()

    def handle_error(self, error: Exception, context: ErrorContext, severity: ErrorSeverity = ErrorSeverity.MEDIUM) -> Dict[str, Any]:
        """Handle an error with context and severity"""
        error_id = f"ERR_{int(time.time() * 1000000)}"

        error_details = {
            'error_id': error_id,
            'type': error.__class__.__name__,
            'message': str(error),
            'traceback': ''.join(traceback.format_exception(type(error), error, error.__traceback__)),
            'context': {
                'component': context.component,
                'operation': context.operation,
                'session_id': context.session_id,
                'metadata': context.metadata,
            },
            'severity': severity.value,
            'timestamp': context.timestamp.isoformat(),
        }

        with self._lock:
            self.error_count += 1
            error_details['count'] = self.error_count
            self.error_history.append(error_details)
            if len(self.error_history) > self.max_history_size:
                self.error_history = self.error_history[-self.max_history_size:]

        self._log_error(error_details, severity)
        return error_details

    def _log_error(self, error_details: Dict[str, Any], severity: ErrorSeverity) -> None:
        """Log error with appropriate level"""
        ctx = error_details['context']
        log_message = (
            f"[{error_details['error_id']}] {ctx['component']}.{ctx['operation']} "
            f"{error_details['type']}: {error_details['message']}"
        )

        extra = {"error_details": {k: v for k, v in error_details.items() if k != "traceback"}}
        if severity == ErrorSeverity.CRITICAL:
            logger.critical(log_message, extra=extra)
            logger.debug(error_details["traceback"])
        elif severity == ErrorSeverity.HIGH:
            logger.error(log_message, extra=extra)
        elif severity == ErrorSeverity.MEDIUM:
            logger.warning(log_message, extra=extra)
        else:
            logger.info(log_message, extra=extra)

    def get_error_stats(self) -> Dict[str, Any]:
        """Get error statistics"""
        with self._lock:
            counts: Dict[str, int] = {}
            for error in self.error_history[-100:]:
                counts[error['type']] = counts.get(error['type'], 0) + 1
            return {
                'total_errors': self.error_count,
                'recent_errors': len(self.error_history),
                'error_types': counts,
            }

    def clear_error_history(self) -> None:
        """Clear error history"""
        with self._lock:
            self.error_history.clear()
            self.error_count = 0


_handler_instance: Optional[ErrorHandler] = None


def get_error_handler() -> ErrorHandler:
    """Get or create error handler instance"""
    global _handler_instance
    if _handler_instance is None:
        _handler_instance = ErrorHandler()
    return _handler_instance


def handle_error(error: Exception, component: str, operation: str, severity: ErrorSeverity = ErrorSeverity.MEDIUM, **context_kwargs) -> Dict[str, Any]:
    """Convenience function to handle errors"""
    context = ErrorContext(component=component, operation=operation, **context_kwargs)
    return get_error_handler().handle_error(error, context, severity)


class FocusBotException(Exception):
    """Base exception for FocusBot-specific errors"""

    def __init__(self, message: str, component: str = "unknown", operation: str = "unknown", **kwargs):
        super().__init__(message)
        self.component = component
        self.operation = operation
        self.context = kwargs


class ConfigurationError(FocusBotException):
    """Configuration-related errors"""
    pass


class CaptureError(FocusBotException):
    """Audio capture process could not start or ended unexpectedly"""

    def __init__(self, message: str, stderr: str = "", **kwargs):
        kwargs.setdefault("component", "audio_source")
        super().__init__(message, **kwargs)
        self.stderr = stderr


class ModelNotFoundError(ConfigurationError):
    """Speech recognition model directory is missing"""
    pass


class OperationCancelled(FocusBotException):
    """A blocking wait was released by cancellation"""
    pass


class AgentError(FocusBotException):
    """Base class for reasoning-engine session errors"""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("component", "agent_session")
        super().__init__(message, **kwargs)


class SessionNotInitializedError(AgentError):
    """send() was called before initialize() succeeded, or after the connection dropped"""
    pass


class AgentAuthorizationError(AgentError):
    """The reasoning engine rejected our credentials"""
    pass


class AgentBusyError(AgentError):
    """Another command is already awaiting a reply on this session"""
    pass


class AgentTurnError(AgentError):
    """The reasoning engine reported an error for the current turn"""

    def __init__(self, message: str, code: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.code = code


class AgentConnectionError(AgentError):
    """The transport to the reasoning engine failed or closed"""
    pass


__all__ = [
    "ErrorSeverity",
    "ErrorContext",
    "ErrorHandler",
    "get_error_handler",
    "handle_error",
    "FocusBotException",
    "ConfigurationError",
    "CaptureError",
    "ModelNotFoundError",
    "OperationCancelled",
    "AgentError",
    "SessionNotInitializedError",
    "AgentAuthorizationError",
    "AgentBusyError",
    "AgentTurnError",
    "AgentConnectionError",
]
