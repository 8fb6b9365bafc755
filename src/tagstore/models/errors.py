"""Custom exception classes for the group store."""

from typing import Any

from tagstore.utils.constants import (
    ERROR_CODE_DECODE_FAILED,
    ERROR_CODE_GROUP_EXISTS,
    ERROR_CODE_GROUP_NOT_EMPTY,
    ERROR_CODE_GROUP_NOT_FOUND,
    ERROR_CODE_IMAGE_NOT_FOUND,
    ERROR_CODE_INVALID_GROUP_NAME,
    ERROR_CODE_RESOURCE_NOT_FOUND,
    ERROR_CODE_STORAGE,
    ERROR_CODE_STORE_CLOSED,
    ERROR_CODE_STORE_LOCKED,
    ERROR_CODE_VALIDATION_FAILED,
)


class TagStoreError(Exception):
    """
    Base exception for all store errors.

    All custom errors must inherit from this class.
    Callers must explicitly provide a message and error code.
    Optional contextual information can be supplied via `details`.
    """

    message: str
    error_code: str
    details: dict[str, Any]

    def __init__(
        self,
        *,
        message: str,
        error_code: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.error_code = error_code
        self.details = details or {}

        super().__init__(self.message)


class ValidationError(TagStoreError):
    """Raised when an argument is rejected before touching storage."""

    def __init__(
        self,
        *,
        message: str,
        error_code: str = ERROR_CODE_VALIDATION_FAILED,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
        )


class InvalidGroupNameError(ValidationError):
    """Raised when a group name cannot be mapped to a storage namespace."""

    def __init__(
        self,
        *,
        message: str,
        error_code: str = ERROR_CODE_INVALID_GROUP_NAME,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
        )


class NotFoundError(TagStoreError):
    """Raised when a requested resource is not found."""

    def __init__(
        self,
        *,
        message: str,
        error_code: str = ERROR_CODE_RESOURCE_NOT_FOUND,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
        )


class GroupNotFoundError(NotFoundError):
    """Raised when the named group does not exist."""

    def __init__(
        self,
        *,
        message: str = "Group not found",
        error_code: str = ERROR_CODE_GROUP_NOT_FOUND,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
        )


class ImageNotFoundError(NotFoundError):
    """Raised when an image ID does not exist within its group."""

    def __init__(
        self,
        *,
        message: str = "Image not found",
        error_code: str = ERROR_CODE_IMAGE_NOT_FOUND,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
        )


class GroupExistsError(TagStoreError):
    """Raised when creating a group whose name is already taken."""

    def __init__(
        self,
        *,
        message: str = "Group already exists",
        error_code: str = ERROR_CODE_GROUP_EXISTS,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
        )


class GroupNotEmptyError(TagStoreError):
    """Raised when deleting a group that still holds images."""

    def __init__(
        self,
        *,
        message: str = "Group not empty",
        error_code: str = ERROR_CODE_GROUP_NOT_EMPTY,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
        )


class DecodeError(TagStoreError):
    """Raised when stored bytes do not match the expected record shape."""

    def __init__(
        self,
        *,
        message: str,
        error_code: str = ERROR_CODE_DECODE_FAILED,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
        )


class StorageError(TagStoreError):
    """Raised when the backing file or a transaction fails."""

    def __init__(
        self,
        *,
        message: str,
        error_code: str = ERROR_CODE_STORAGE,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
        )


class StoreLockedError(StorageError):
    """Raised when another process holds the store lock past the open timeout."""

    def __init__(
        self,
        *,
        message: str = "Store is locked by another process",
        error_code: str = ERROR_CODE_STORE_LOCKED,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
        )


class StoreClosedError(StorageError):
    """Raised when an operation is attempted on a closed store."""

    def __init__(
        self,
        *,
        message: str = "Store is closed",
        error_code: str = ERROR_CODE_STORE_CLOSED,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
        )
