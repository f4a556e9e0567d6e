"""
Shared error handling for the Rule Graph service.
"""

from typing import Dict, Any, List, Optional
from pydantic import BaseModel
from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class RuleGraphException(Exception):
    """Base exception for Rule Graph components."""

    http_status = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        # Ids collected by a graph evaluation before it was aborted
        self.matched_ids: List[Any] = []
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class MalformedInputError(RuleGraphException):
    """Document bytes are not valid JSON."""

    def __init__(self, message: str = "Malformed input document", details: Optional[Dict[str, Any]] = None):
        super().__init__("MALFORMED_INPUT", message, details)


class MalformedRuleSetError(RuleGraphException):
    """Rule set could not be decoded or failed validation."""

    def __init__(self, message: str = "Malformed rule set", details: Optional[Dict[str, Any]] = None):
        super().__init__("MALFORMED_RULE_SET", message, details)


class CoercionError(RuleGraphException):
    """Left and right values cannot be brought into a comparable form."""

    http_status = 422

    def __init__(self, message: str = "Values are not comparable", details: Optional[Dict[str, Any]] = None):
        super().__init__("COERCION_ERROR", message, details)


class UnknownOperationError(RuleGraphException):
    """Rule names an operation the comparator does not implement."""

    http_status = 422

    def __init__(self, operation: Any, details: Optional[Dict[str, Any]] = None):
        details = details or {}
        details.setdefault("operation", str(operation))
        super().__init__("UNKNOWN_OPERATION", f"Unknown operation: {operation}", details)
