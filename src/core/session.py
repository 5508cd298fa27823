from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import remote.crud as crud
from remote.models import Identity, Session
from utils.logger import get_logger

_logger = get_logger(__name__)

SIGN_IN_ENTRY = "sign_in"


@dataclass
class SessionContext:
    """
    Identity and session of the signed-in visitor.

    One instance is created by the app and handed to every component that
    talks to the service on the user's behalf.

    Fields:
      - identity: who is signed in, None when signed out
      - session: token the service checks on every call
      - sign_in_entry: where to send the user when the session is lost
    """

    identity: Optional[Identity] = None
    session: Optional[Session] = None
    sign_in_entry: str = SIGN_IN_ENTRY

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None and self.session is not None

    @property
    def is_admin(self) -> bool:
        return self.is_authenticated and self.identity.is_admin

    async def sign_in(self, uid: int, pwd: str) -> bool:
        """Open a session for uid/pwd. Returns False on bad credentials."""
        session = await crud.login(uid, pwd)
        if session is None:
            return False
        self.session = session
        self.identity = await crud.get_identity(session)
        _logger.info(f"Signed in as {self.identity.uid} (admin={self.identity.is_admin})")
        return True

    async def sign_out(self) -> None:
        """
        End the current session if one exists.
        The local state is cleared even when the service call fails.
        """
        session, self.session, self.identity = self.session, None, None
        if session is None:
            return
        try:
            await crud.end_session(session)
        finally:
            _logger.info(f"Signed out uid {session.uid}")

    def forget(self) -> None:
        """Drop the local identity without telling the service (session already invalid)."""
        self.session = None
        self.identity = None
