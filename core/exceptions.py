"""
Custom exception classes and error handling.

Provides a consistent error structure for caller mistakes so the
hosting API layer can translate them into user-facing responses.
Numerical degeneracy is never an exception: components return
sentinel results instead.
"""
from typing import Optional


class AnalyticsError(Exception):
    """Base engine exception with consistent structure."""

    def __init__(self, detail: str, error_code: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        self.error_code = error_code or "ANALYTICS_ERROR"


class ValidationError(AnalyticsError, ValueError):
    """Validation error."""

    def __init__(self, detail: str, field: Optional[str] = None):
        error_code = f"VALIDATION_ERROR_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(detail=detail, error_code=error_code)
        self.field = field


class EmptySeriesError(ValidationError):
    """Empty dataset or series."""

    def __init__(self, detail: str = "Non-empty series required"):
        super().__init__(detail=detail, field="series")


class MissingValueError(ValidationError):
    """Required field missing or not a finite number."""

    def __init__(self, field: str, detail: Optional[str] = None):
        super().__init__(
            detail=detail or f"Missing numeric value for {field}",
            field=field
        )
