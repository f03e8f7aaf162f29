"""Exception classes for the SportyGo core.

Policy rejections (voting closed, invite expired, ...) and not-found states
are returned as typed results and never raised. Only the failures below
cross the service boundary.
"""


class SportyGoError(Exception):
    """Base exception for all SportyGo core errors."""

    pass


class TransientStoreError(SportyGoError):
    """Raised when the document store fails to complete an operation.

    Covers network errors, timeouts and aborted transactions. Callers decide
    whether to retry; a failed transaction has written nothing.
    """

    pass


class DocumentExistsError(SportyGoError):
    """Raised when an insert collides with an existing unique key."""

    def __init__(self, collection: str, key: str):
        """Initialize the exception.

        Args:
            collection: Name of the collection the insert targeted.
            key: The colliding key.
        """
        self.collection = collection
        self.key = key
        super().__init__(f"Document '{key}' already exists in '{collection}'")


class InviteValidationError(SportyGoError):
    """Raised when invite creation arguments are invalid."""

    pass


class ConfigurationError(SportyGoError):
    """Raised when there is a configuration error."""

    pass
