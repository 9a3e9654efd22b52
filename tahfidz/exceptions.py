"""Typed failures raised by the access layer, repositories and handlers.

Each class carries the HTTP status it maps to; ``tahfidz.main`` turns them
into ``{"detail": ...}`` responses.
"""
from fastapi import status


class TahfidzError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class Unauthenticated(TahfidzError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Not authenticated"


class AccessDenied(TahfidzError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Access denied"


class NotFound(TahfidzError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class InvalidRequest(TahfidzError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class InfrastructureError(TahfidzError):
    """A storage backend failed. Never to be read as an empty result."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Storage backend unavailable"
