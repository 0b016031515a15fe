"""
Analytics Error Taxonomy

Every error raised by the analytics core derives from AnalyticsError and
carries a stable ``code`` plus a ``details`` dict. The HTTP layer maps the
classes onto status codes (see shop_analytics.serving.api.errors).
"""

from typing import Any, Dict, Optional


class AnalyticsError(Exception):
    """Base class for analytics engine errors"""

    code = "ANALYTICS_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "code": self.code,
            "detail": self.message,
            "details": self.details,
        }


class DataUnavailable(AnalyticsError):
    """A facet fetch failed; nothing was cached for the bucket"""

    code = "DATA_UNAVAILABLE"

    def __init__(self, time_range: str, facet: str, cause: Optional[BaseException] = None):
        reason = f"{type(cause).__name__}: {cause}" if cause is not None else "unknown"
        super().__init__(
            f"Analytics facet '{facet}' unavailable for range '{time_range}'",
            {"time_range": time_range, "facet": facet, "reason": reason},
        )
        self.time_range = time_range
        self.facet = facet


class NotFound(AnalyticsError):
    """Report or dashboard id is absent"""

    code = "NOT_FOUND"

    def __init__(self, kind: str, identifier: str):
        super().__init__(f"{kind.capitalize()} {identifier} not found", {"kind": kind, "id": identifier})
        self.kind = kind
        self.identifier = identifier


class ValidationError(AnalyticsError):
    """Malformed bucket, format or request parameter"""

    code = "VALIDATION_ERROR"

    def __init__(self, field: str, value: Any, allowed: Optional[list] = None):
        message = f"Invalid value for '{field}': {value!r}"
        details: Dict[str, Any] = {"field": field, "value": value}
        if allowed is not None:
            message += f" (expected one of: {', '.join(allowed)})"
            details["allowed"] = allowed
        super().__init__(message, details)
        self.field = field


class ExportFailure(AnalyticsError):
    """Report artifact could not be generated"""

    code = "EXPORT_FAILED"

    def __init__(self, report_id: str, export_format: str, reason: str):
        super().__init__(
            f"Export of report {report_id} as {export_format} failed: {reason}",
            {"report_id": report_id, "format": export_format, "reason": reason},
        )
