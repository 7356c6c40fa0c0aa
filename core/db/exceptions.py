"""
Custom Database Exceptions for Networkk

- ConcurrentModificationError: Raised when optimistic locking fails
"""

from core.exceptions import ConflictError


class ConcurrentModificationError(ConflictError):
    """
    Exception raised when optimistic locking detects a concurrent modification.

    This occurs when two processes attempt to update the same record
    simultaneously, and the version number has changed since the record
    was read.

    Attributes:
        model_name: The name of the model class.
        object_id: The primary key of the object.
        expected_version: The version number expected by the updater.
        actual_version: The current version number in the database.

    Example:
        try:
            chain.compare_and_swap(head=proposal)
        except ConcurrentModificationError:
            # Re-read the chain and re-validate before retrying
            chain.refresh_from_db()
    """

    default_code = 'CONCURRENT_MODIFICATION'

    def __init__(
        self,
        model_name: str = None,
        object_id=None,
        expected_version: int = None,
        actual_version: int = None,
        message: str = None
    ):
        self.model_name = model_name
        self.object_id = object_id
        self.expected_version = expected_version
        self.actual_version = actual_version

        if not message:
            message = (
                f"Concurrent modification detected for {model_name} "
                f"(id={object_id}). Expected version {expected_version}, "
                f"but found version {actual_version}. "
                "The record was modified by another process."
            )

        super().__init__(
            message,
            extra={
                'model': model_name,
                'object_id': object_id,
                'expected_version': expected_version,
                'actual_version': actual_version,
            },
        )
