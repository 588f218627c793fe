"""
Session identifiers for PAM chat and reflection.

A session id correlates a sequence of chat turns. The CLI either generates a
fresh one or, with --continue, asks PAM for the user's most recent session.
"""

import secrets
from datetime import datetime, timezone
from typing import Callable, Optional
import logging

from .client.api_client import PamApiClient
from .errors import PamError

logger = logging.getLogger(__name__)

SESSION_PREFIX = "cli"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_session_id(now: Optional[datetime] = None) -> str:
    """Build a session id of the form cli_<YYYYmmdd_HHMMSS>_<8 hex digits>.

    Args:
        now: Timestamp to embed; defaults to the current UTC time
    """
    timestamp = (now or _utc_now()).astimezone(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"{SESSION_PREFIX}_{timestamp}_{secrets.randbits(32):08x}"


class SessionManager:
    """Produces and tracks the session id used for chat turns."""

    def __init__(self, api: PamApiClient, clock: Callable[[], datetime] = _utc_now):
        """Initialize the session manager.

        Args:
            api: Client used for the most-recent-session lookup
            clock: Source of the current UTC time
        """
        self._api = api
        self._clock = clock
        self._current: Optional[str] = None
        self.resumed = False

    @property
    def current(self) -> Optional[str]:
        """The session id in use, if one has been chosen."""
        return self._current

    def new_session(self) -> str:
        """Start a fresh session. Always succeeds."""
        self._current = generate_session_id(self._clock())
        self.resumed = False
        return self._current

    async def continue_or_new(self, user_email: str) -> str:
        """Resume the user's most recent session, or start a new one.

        Lookup failures are treated the same as "no previous session": the
        caller always gets a usable id and never sees the lookup error.
        """
        try:
            session_id = await self._api.latest_session(user_email)
        except PamError as e:
            logger.debug(f"Latest session lookup failed, starting a new session: {e}")
            session_id = None

        if not session_id:
            return self.new_session()

        self._current = session_id
        self.resumed = True
        return session_id

    def reset(self) -> str:
        """Drop the current session and start a new one."""
        return self.new_session()
