"""WorkOS-specific exceptions for error handling."""


class WorkOSError(Exception):
    """Base exception for all WorkOS client operations."""
    pass


class WorkOSAPIError(WorkOSError):
    """Non-success HTTP response from the WorkOS API.

    Attributes:
        status_code: HTTP status code
        message: Error message from response
        endpoint: API endpoint that failed
        request_id: Value of the X-Request-ID response header (may be empty)
    """

    def __init__(self, status_code: int, message: str, endpoint: str, request_id: str = ""):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        self.request_id = request_id
        detail = f"[{status_code}] {endpoint}: {message}"
        if request_id:
            detail = f"{detail} (request_id={request_id})"
        super().__init__(detail)


class TransportError(WorkOSError):
    """Request never produced a usable response (network failure, bad body)."""
    pass


class MetadataLimitError(WorkOSError):
    """Audit event metadata would exceed the maximum number of keys."""
    pass


class SerializationError(WorkOSError):
    """Audit event could not be encoded to JSON."""
    pass


class IncompleteArgumentsError(WorkOSError, ValueError):
    """A call was made without the arguments the endpoint requires."""
    pass
