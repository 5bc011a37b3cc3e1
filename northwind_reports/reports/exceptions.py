"""
Report Errors

Every failure of a report run maps to one of these. None are retried; each
carries the report name and chains the underlying cause.
"""

from typing import Optional, Sequence


class ReportError(Exception):
    """Base exception for report catalog and runner errors."""

    exit_code: int = 1
    status_code: int = 500

    def __init__(self, message: str, report_name: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.report_name = report_name


class ReportNotFoundError(ReportError):
    """The requested report name is not in the catalog."""

    exit_code = 3
    status_code = 404

    def __init__(
        self,
        report_name: str,
        available: Sequence[str] = (),
        suggestion: Optional[str] = None,
    ) -> None:
        message = f"Unknown report '{report_name}'"
        if suggestion:
            message += f" (did you mean '{suggestion}'?)"
        if available:
            message += f". Available: {', '.join(available)}"
        super().__init__(message, report_name)
        self.available = list(available)
        self.suggestion = suggestion


class StoreConnectionError(ReportError, ConnectionError):
    """The data store could not be reached."""

    exit_code = 4
    status_code = 503


class QueryError(ReportError):
    """The data store rejected or failed the report statement."""

    exit_code = 5
    status_code = 500


class QueryTimeoutError(ReportError, TimeoutError):
    """The report did not finish before its deadline."""

    exit_code = 6
    status_code = 504

    def __init__(self, report_name: str, timeout: float) -> None:
        super().__init__(f"Report '{report_name}' exceeded its {timeout:g}s deadline", report_name)
        self.timeout = timeout
