"""Error taxonomy for the notification sync layer.

NetworkError   -> no usable response reached us
ServerError    -> response received, non-2xx (or unusable 2xx body)
MalformedPayload     -> push payload could not be normalized
RemoteMutationFailed -> a mutation failed remotely; no local event was published
"""


class BloodLinkError(Exception):
    """Base class for all errors raised by this package."""


class NetworkError(BloodLinkError):
    def __init__(self, message: str = "Network request failed"):
        self.message = message
        super().__init__(message)


class ServerError(BloodLinkError):
    def __init__(self, status_code: int, message: str = "An error occurred", body=None):
        self.status_code = status_code
        self.message = message
        self.body = body
        super().__init__(f"HTTP {status_code}: {message}")


class AuthenticationError(ServerError):
    """401 from the backend. The client has already dropped its token."""

    def __init__(self, message: str = "Session expired", body=None):
        super().__init__(401, message, body)


class MalformedPayload(BloodLinkError):
    def __init__(self, message: str, payload=None):
        self.message = message
        self.payload = payload
        super().__init__(message)


class RemoteMutationFailed(BloodLinkError):
    """Raised when a mark-read / settings mutation failed on the server side.

    Args:
        operation: Name of the mutation (e.g., "mark_one_read")
        cause: The underlying NetworkError or ServerError
    """

    def __init__(self, operation: str, cause: BloodLinkError):
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed: {cause}")

    @property
    def retryable(self) -> bool:
        if isinstance(self.cause, NetworkError):
            return True
        if isinstance(self.cause, ServerError):
            return self.cause.status_code >= 500
        return False
