from __future__ import annotations

from typing import Literal, Protocol

from remote.errors import RemoteError, UnauthorizedError
from utils.logger import get_logger

_logger = get_logger(__name__)

# time for the notice to render before the sign-in screen replaces the view
SIGN_IN_REDIRECT_DELAY = 0.5
SIGN_IN_PROMPT_DELAY = 1.0

LOGGED_OUT_TITLE = "Unauthorized"
LOGGED_OUT_NOTICE = "You are logged out. Logging in again..."

Classification = Literal["unauthorized", "other"]


class Host(Protocol):
    """What the core needs from the UI. The Textual App satisfies it."""

    def notify(self, message: str, *, title: str = "", severity: str = "information") -> None:
        ...

    def set_timer(self, delay: float, callback=None):
        ...

    def request_sign_in(self) -> None:
        ...


def is_unauthorized(error: BaseException) -> bool:
    if isinstance(error, UnauthorizedError):
        return True
    return isinstance(error, RemoteError) and error.status == 401


class AuthGuard:
    """
    Failure policy shared by every component that calls the service.

    Session loss is checked before anything else so it is never reported as
    an ordinary operation failure. Exactly one notice is shown per failure.
    """

    def __init__(self, host: Host):
        self._host = host

    @staticmethod
    def classify(error: BaseException) -> Classification:
        return "unauthorized" if is_unauthorized(error) else "other"

    def handle(self, error: BaseException, failure_notice: str) -> Classification:
        kind = self.classify(error)
        if kind == "unauthorized":
            _logger.warning(f"Session rejected by service: {error}")
            self._host.notify(LOGGED_OUT_NOTICE, title=LOGGED_OUT_TITLE, severity="error")
            self._host.set_timer(SIGN_IN_REDIRECT_DELAY, self._host.request_sign_in)
        else:
            _logger.error(f"{failure_notice} ({error})")
            self._host.notify(failure_notice, title="Error", severity="error")
        return kind

    def prompt_sign_in(self, message: str = "Please sign in to continue.") -> None:
        """For a signed-out visitor attempting a signed-in action."""
        self._host.notify(message, title="Sign in required", severity="error")
        self._host.set_timer(SIGN_IN_PROMPT_DELAY, self._host.request_sign_in)
