"""
Sessions - Who is calling, resolved once per request.

The HTTP layer reads ``Authorization: Bearer <token>`` and turns it into
an explicit Session through a SessionSerializer. The default serializer
signs a small JSON payload with HMAC-SHA256; an identity provider can be
plugged in by supplying another serializer.
"""

import base64
import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

from ...domain.enums import ActorRole
from ...domain.errors import AccessDenied
from ...domain.value_objects import Actor


@dataclass(frozen=True)
class Session:
    """An authenticated caller."""
    user_id: str
    role: ActorRole
    customer_id: str | None = None
    expires_at: datetime | None = None
    laundromat_id: str | None = None

    def to_actor(self) -> Actor:
        return Actor(
            role=self.role,
            actor_id=self.user_id,
            customer_id=self.customer_id,
            laundromat_id=self.laundromat_id,
        )


class SessionSerializer(Protocol):
    def dumps(self, session: Session) -> str:
        ...

    def loads(self, token: str) -> Session:
        """
        Decode a token.

        Raises:
            AccessDenied: Token is malformed, forged or expired
        """
        ...


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


class SignedSessionSerializer:
    """HMAC-SHA256 signed tokens of the form ``<payload>.<signature>``."""

    def __init__(
        self,
        secret: str,
        ttl: timedelta = timedelta(hours=12),
        clock: Callable[[], datetime] | None = None,
    ):
        if not secret:
            raise ValueError("Session secret cannot be empty")
        self._key = secret.encode("utf-8")
        self._ttl = ttl
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def dumps(self, session: Session) -> str:
        expires_at = session.expires_at or self._clock() + self._ttl
        body = {
            "sub": session.user_id,
            "role": session.role.value,
            "cid": session.customer_id,
            "lid": session.laundromat_id,
            "exp": int(expires_at.timestamp()),
        }
        payload = _b64encode(json.dumps(body, separators=(",", ":"), sort_keys=True).encode("utf-8"))
        return f"{payload}.{self._sign(payload)}"

    def loads(self, token: str) -> Session:
        try:
            payload, signature = token.split(".")
        except ValueError:
            raise AccessDenied("Malformed session token") from None

        if not hmac.compare_digest(signature, self._sign(payload)):
            raise AccessDenied("Invalid session token")

        try:
            body = json.loads(_b64decode(payload))
            expires_at = datetime.fromtimestamp(body["exp"], tz=timezone.utc)
            role = ActorRole(body["role"])
            user_id = body["sub"]
        except (ValueError, KeyError, TypeError):
            raise AccessDenied("Malformed session token") from None

        if self._clock() >= expires_at:
            raise AccessDenied("Session expired")

        return Session(
            user_id=user_id,
            role=role,
            customer_id=body.get("cid"),
            expires_at=expires_at,
            laundromat_id=body.get("lid"),
        )

    def _sign(self, payload: str) -> str:
        return _b64encode(hmac.new(self._key, payload.encode("ascii"), hashlib.sha256).digest())
