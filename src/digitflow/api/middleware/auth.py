"""Authentication: session tokens and the admin key.

A logged-in browser carries an explicit :class:`Session` in the
``dfp_session`` cookie: a base64url-encoded JSON object holding the access
key, the device fingerprint and the login time. The token is not signed;
it is only a carrier, and every protected request re-validates the key and
device server-side through ``VerificationService.check``.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import time
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING

from digitflow.errors.definitions import ErrAdminRequired, ErrInvalidSession, ErrUnauthorized

if TYPE_CHECKING:
    from digitflow.engine.client import DigitFlowEngine

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

AUTH_HEADER_ADMIN_KEY = "x-admin-key"


# ---------------------------------------------------------------------------
# Session: created on successful verification, dropped on logout
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Session:
    """The logged-in state of one browser."""

    access_key: str
    device_fingerprint: str
    login_time: float = field(default_factory=time.time)

    def encode(self) -> str:
        raw = json.dumps(asdict(self), separators=(",", ":")).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    @classmethod
    def decode(cls, token: str) -> Session:
        """Parse a cookie value.

        Raises:
            DFPError: 401 if the token is not a well-formed session.
        """
        padded = token + "=" * (-len(token) % 4)
        try:
            data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
            session = cls(
                access_key=data["access_key"],
                device_fingerprint=data["device_fingerprint"],
                login_time=float(data.get("login_time", 0.0)),
            )
        except (binascii.Error, UnicodeError, ValueError, KeyError, TypeError, AttributeError):
            raise ErrInvalidSession from None
        if not isinstance(session.access_key, str) or not isinstance(
            session.device_fingerprint, str
        ):
            raise ErrInvalidSession
        if not session.access_key or not session.device_fingerprint:
            raise ErrInvalidSession
        return session


# ---------------------------------------------------------------------------
# Authentication logic
# ---------------------------------------------------------------------------


async def authenticate_session(engine: DigitFlowEngine, token: str | None) -> Session:
    """Decode a session token and re-check its key and device.

    Raises:
        DFPError: 401 if the token is missing, malformed or no longer valid.
    """
    if not token:
        raise ErrUnauthorized
    session = Session.decode(token)
    if not await engine.verification_service.check(
        session.access_key, session.device_fingerprint
    ):
        raise ErrUnauthorized
    return session


def check_admin_key(engine: DigitFlowEngine, provided: str) -> None:
    """Compare the admin header with the configured secret in constant time.

    Raises:
        DFPError: 401 if no key was sent, 403 if it does not match or admin
            access is disabled.
    """
    if not provided:
        raise ErrUnauthorized
    expected = engine.config.auth.admin_key
    if not expected or not hmac.compare_digest(
        provided.encode("utf-8"), expected.encode("utf-8")
    ):
        raise ErrAdminRequired
