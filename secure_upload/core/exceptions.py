from fastapi import HTTPException, status


class UploadServiceException(HTTPException):
    """Base class for errors raised by the stores and services."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(status_code=status_code, detail=detail)


class ValidationException(UploadServiceException):
    """Exception raised when input is malformed or missing required values."""

    def __init__(self, detail: str = "Invalid input"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail
        )


class NotFoundException(UploadServiceException):
    """Exception raised when a template, field, link, session or file id is unknown."""

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail
        )


class AccessDeniedException(UploadServiceException):
    """Exception raised when the caller is neither elevated nor the owner."""

    def __init__(self, detail: str = "Access denied"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )


class ConflictException(UploadServiceException):
    """Exception raised when a link already exists for a job number."""

    def __init__(self, detail: str = "Resource already exists"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail
        )


class StorageException(UploadServiceException):
    """
    Exception raised when the persistence layer fails.

    The detail is logged but never returned to clients.
    """

    def __init__(self, detail: str = "Storage operation failed"):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail
        )
