"""Exceptions raised by the store layer."""


class DatabaseError(Exception):
    """Base exception for store errors."""
    pass


class DatabaseConnectionError(DatabaseError):
    """The store is not configured or could not be reached."""
    pass


class DatabaseConstraintError(DatabaseError):
    """Constraint violation (duplicate label, duplicate member, bad foreign key)."""
    pass


class DatabaseOperationError(DatabaseError):
    """A read or write failed for any other reason."""
    pass


class EntityNotFoundError(DatabaseError):
    """Requested project, bundle or member does not exist."""
    pass
