"""
Portal error taxonomy.

Every user-facing failure is one of these; main.py turns them into a JSON
notice ({"error", "notice", "fields"}). Realtime channel failures are not
here on purpose: they only ever change feed state.
"""
from typing import Optional


class PortalError(Exception):
    kind = "error"
    status_code = 400

    def __init__(self, notice: str, fields: Optional[dict[str, str]] = None) -> None:
        super().__init__(notice)
        self.notice = notice
        self.fields = fields or {}


class StorageError(PortalError):
    kind = "storage"
    status_code = 502


class ValidationFailed(PortalError):
    kind = "validation"
    status_code = 422

    def __init__(self, fields: dict[str, str], notice: str = "Please fix the highlighted fields") -> None:
        super().__init__(notice, fields)


class NotAuthenticated(PortalError):
    kind = "auth"
    status_code = 401


class AccessDenied(PortalError):
    kind = "access"
    status_code = 403


class NotFound(PortalError):
    kind = "not_found"
    status_code = 404


class ExportError(PortalError):
    kind = "export"
    status_code = 500


class EmptyReportError(ExportError):
    status_code = 404

    def __init__(self, notice: str = "No activities to export") -> None:
        super().__init__(notice)


class PrintContextUnavailable(ExportError):
    status_code = 503
