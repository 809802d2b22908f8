"""
Custom exception classes for FlowGraph.
"""

from typing import Optional


class FlowGraphException(Exception):
    """Base exception for all FlowGraph errors."""

    code = "internal_error"

    def __init__(self, message: str, detail: Optional[str] = None):
        self.message = message
        self.detail = detail
        super().__init__(self.message)


class ValidationError(FlowGraphException):
    """Raised when input validation fails."""

    code = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None, detail: Optional[str] = None):
        if field:
            message = f"Validation error for field '{field}': {message}"
        super().__init__(message, detail)
        self.field = field


class NotFoundError(FlowGraphException):
    """Raised when a workflow, node or execution cannot be found."""

    code = "not_found"

    def __init__(self, resource: str, identifier: str, detail: Optional[str] = None):
        super().__init__(f"{resource} not found: {identifier}", detail)
        self.resource = resource
        self.identifier = identifier


class StructuralError(FlowGraphException):
    """Raised when an operation requires a structurally valid graph and gets a broken one."""

    code = "structural_error"

    def __init__(self, message: str, issues: Optional[list] = None, detail: Optional[str] = None):
        super().__init__(message, detail)
        self.issues = issues or []


class ExecutionTimeoutError(FlowGraphException):
    """Raised when polling for a result exceeds its bound."""

    code = "timeout"

    def __init__(self, operation: str, elapsed_seconds: float, detail: Optional[str] = None):
        super().__init__(f"{operation} timed out after {elapsed_seconds:.1f}s", detail)
        self.operation = operation
        self.elapsed_seconds = elapsed_seconds


class WorkflowStoreError(FlowGraphException):
    """Raised when the n8n API call fails."""

    code = "store_error"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None,
        detail: Optional[str] = None,
    ):
        prefix = f"n8n API error ({status_code})" if status_code else "n8n API error"
        super().__init__(f"{prefix}: {message}", detail)
        self.status_code = status_code
        self.endpoint = endpoint


class BatchAbortedError(FlowGraphException):
    """Raised when a batch stops early; carries the partial result built so far."""

    code = "batch_aborted"

    def __init__(self, message: str, result: dict, cause: Optional[Exception] = None):
        super().__init__(message)
        self.result = result
        self.cause = cause
        self.cause_code = getattr(cause, "code", "internal_error")
