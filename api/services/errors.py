"""
Service-layer exceptions.

Routes translate these into ``HTTPException`` so the error handlers render
them as ``{"error": {...}}`` bodies.
"""


class ServiceError(Exception):
    """A request that cannot be served, with the HTTP status to report."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class MemberPolicyError(ServiceError):
    """A membership change rejected by the organization's member rules."""


class ShortlistError(ServiceError):
    """A shortlisting request that cannot start (bad job, no candidates)."""
