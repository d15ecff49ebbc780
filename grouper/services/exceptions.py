"""Exceptions raised by the request-level services and mapped to HTTP statuses."""


class ServiceError(Exception):
    """Base exception for service errors."""
    status_code = 500


class AuthenticationError(ServiceError):
    """Missing, malformed or rejected bearer token."""
    status_code = 401


class ForbiddenError(ServiceError):
    """Caller is authenticated but not a member of the project."""
    status_code = 403


class ProjectNotFoundError(ServiceError):
    status_code = 404


class BundleClaimConflictError(ServiceError):
    """The bundle already has an owner."""
    status_code = 409


class JoinCodeAllocationError(ServiceError):
    """No collision-free join code could be found."""
    pass
