"""Context propagation for structured logging.

Fields pushed here (tick_id, queue_item_id, template, ...) are injected into
every log record emitted inside the scope by ``ContextualFilter``. Context is
stored in a ``ContextVar`` so each scheduler worker thread sees its own copy.
"""

from contextvars import ContextVar, Token
from typing import Any, Dict, Optional


LogContextVar: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the active logging context."""
    return LogContextVar.get().copy()


def push_log_context(**kwargs) -> Token:
    """Merge fields into the logging context.

    Args:
        **kwargs: Key-value pairs to add to the logging context

    Returns:
        Token for restoring the previous context with pop_log_context()

    Example:
        >>> token = push_log_context(tick_id="7f3a", queue_item_id="b1c2")
        >>> pop_log_context(token)
    """
    current = LogContextVar.get()
    return LogContextVar.set({**current, **kwargs})


def pop_log_context(token: Token) -> None:
    """Restore the logging context saved by push_log_context()."""
    LogContextVar.reset(token)


def clear_log_context() -> None:
    """Drop every context field (used by tests)."""
    LogContextVar.set({})


class log_context:
    """Context manager for scoped logging context.

    Example:
        >>> with log_context(tick_id="7f3a"):
        ...     logger.info("Draining queue")  # record carries tick_id
    """

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.token: Optional[Token] = None

    def __enter__(self):
        self.token = push_log_context(**self.kwargs)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.token is not None:
            pop_log_context(self.token)
            self.token = None
        return False
