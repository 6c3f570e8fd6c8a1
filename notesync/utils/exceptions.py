"""Custom exception classes."""


class NoteSyncException(Exception):
    """Base exception for the notes store."""

    def __init__(self, detail: str = "Notes store error"):
        self.detail = detail
        super().__init__(detail)


class Unauthenticated(NoteSyncException):
    """Raised when a remote operation is attempted with no bound user."""

    def __init__(self, detail: str = "User is not authenticated"):
        super().__init__(detail)


class InvalidDocument(NoteSyncException):
    """Raised when a stored document cannot be decoded into an entity."""

    def __init__(self, detail: str = "Invalid data format"):
        super().__init__(detail)


class RemoteError(NoteSyncException):
    """Raised when the document backend cannot be reached or rejects a call."""

    def __init__(self, detail: str = "Network connection error"):
        super().__init__(detail)


class WriteError(RemoteError):
    """Raised when a write against the document backend fails."""

    def __init__(self, detail: str = "Failed to write document"):
        super().__init__(detail)


class ValidationError(NoteSyncException):
    """Raised when a value breaks a policy limit (title or content length)."""

    def __init__(self, detail: str = "Invalid value"):
        super().__init__(detail)


class NotFoundError(NoteSyncException):
    """Raised when a resource is not found."""

    def __init__(self, resource: str = "Resource", detail: str | None = None):
        super().__init__(detail or f"{resource} not found")


class ServiceError(NoteSyncException):
    """Raised when external service calls fail."""

    def __init__(self, detail: str = "External service error"):
        super().__init__(detail)


class NoAPIKey(ServiceError):
    """Raised when an external service is called without a configured key."""

    def __init__(self, service: str = "API"):
        super().__init__(f"{service} key not configured")


class NetworkError(ServiceError):
    """Raised when an external service is unreachable."""

    def __init__(self, detail: str = "Network error"):
        super().__init__(detail)


class ApiError(ServiceError):
    """Raised when an external service answers with an error."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"API Error: {message}")


class StorageError(NoteSyncException):
    """Base class for object storage failures."""

    def __init__(self, detail: str = "Storage error"):
        super().__init__(detail)


class InvalidURL(StorageError):
    """Raised when a URL does not point into the configured storage."""

    def __init__(self, url: str):
        super().__init__(f"Invalid file URL: {url}")


class FileTooLarge(StorageError):
    """Raised when a payload exceeds the size limit for its type."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"File is too large ({size} bytes, limit {limit})")


class UnsupportedFileType(StorageError):
    """Raised when a MIME type is not accepted for upload."""

    def __init__(self, mime_type: str):
        super().__init__(f"Unsupported file type: {mime_type}")


class UploadCancelled(StorageError):
    """Raised inside an upload whose progress entry was removed."""

    def __init__(self, path: str):
        super().__init__(f"Upload cancelled: {path}")
