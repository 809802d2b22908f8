"""
Structured logging utilities for tool calls.
"""

import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional
from loguru import logger

# Context variable for correlation ID
correlation_id_var: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)

_REDACTED_KEYS = {"api_key", "apikey", "password", "token", "secret", "credentials"}


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from context."""
    return correlation_id_var.get()


def set_correlation_id(cid: Optional[str] = None) -> str:
    """
    Set correlation ID in context.

    Args:
        cid: Correlation ID to set. If None, generates a new UUID.

    Returns:
        The correlation ID that was set.
    """
    if cid is None:
        cid = str(uuid.uuid4())
    correlation_id_var.set(cid)
    return cid


def summarize_args(args: Dict[str, Any]) -> Dict[str, Any]:
    """Shallow summary of tool arguments safe for logs."""
    summary: Dict[str, Any] = {}
    for key, value in (args or {}).items():
        if key.lower() in _REDACTED_KEYS:
            summary[key] = "***"
        elif isinstance(value, (dict, list)):
            summary[key] = f"<{type(value).__name__}:{len(value)}>"
        else:
            summary[key] = value
    return summary


def log_tool_call(tool_name: str, args: Dict[str, Any], correlation_id: Optional[str] = None) -> None:
    """Log an incoming tool invocation."""
    if correlation_id is None:
        correlation_id = get_correlation_id() or set_correlation_id()

    logger.bind(correlation_id=correlation_id).info(
        f"Tool call: {tool_name} args={summarize_args(args)}"
    )


def log_tool_result(
    tool_name: str,
    success: bool,
    elapsed_ms: float,
    error: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> None:
    """
    Log the outcome of a tool invocation.

    Args:
        tool_name: Name of the tool that ran
        success: Whether the tool returned a success envelope
        elapsed_ms: Wall time spent in the tool
        error: Error message for failed calls
        correlation_id: Correlation ID (uses context if not provided)
    """
    if correlation_id is None:
        correlation_id = get_correlation_id()

    bound = logger.bind(correlation_id=correlation_id)
    if success:
        bound.info(f"Tool {tool_name} completed in {elapsed_ms:.1f}ms")
    else:
        bound.warning(f"Tool {tool_name} failed in {elapsed_ms:.1f}ms: {error}")
