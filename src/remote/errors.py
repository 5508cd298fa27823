class RemoteError(Exception):
    """
    Failure reported by the storefront service.
    `status` follows HTTP conventions so callers can classify it.
    """

    status: int = 500

    def __init__(self, message: str = "", status: int = None):
        super().__init__(message or self.__class__.__name__)
        self.message = message
        if status is not None:
            self.status = status

    def __str__(self) -> str:
        return f"{self.status}: {self.message or self.__class__.__name__}"


class BadRequestError(RemoteError):
    status = 400


class UnauthorizedError(RemoteError):
    """The caller's session is missing, unknown or ended."""

    status = 401


class ForbiddenError(RemoteError):
    status = 403


class NotFoundError(RemoteError):
    status = 404


class ConflictError(RemoteError):
    status = 409


class ServiceUnavailableError(RemoteError):
    status = 503
