"""Token service for verifying identity-provider JWTs."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from django.conf import settings
from rest_framework.exceptions import AuthenticationFailed

from .identity import Identity


class TokenService:
    """Decode bearer tokens into identities, and mint them for development.

    Production tokens are issued by the external identity provider and signed
    with the shared ``IDENTITY_JWT_SECRET``; this service only needs the
    outcome, a stable ``sub`` and an ``email`` claim.
    """

    ACCESS_TTL = timedelta(hours=1)
    ALGORITHM = "HS256"

    @classmethod
    def issue_token(cls, identity: Identity, ttl: timedelta | None = None) -> str:
        """Sign a token for ``identity`` (seed command and tests)."""

        now = datetime.now(timezone.utc)
        payload: dict[str, Any] = {
            "sub": identity.id,
            "email": identity.email,
            "jti": str(uuid.uuid4()),
            "iat": int(now.timestamp()),
            "exp": int((now + (ttl or cls.ACCESS_TTL)).timestamp()),
        }
        if settings.IDENTITY_JWT_AUDIENCE:
            payload["aud"] = settings.IDENTITY_JWT_AUDIENCE
        return jwt.encode(payload, settings.IDENTITY_JWT_SECRET, algorithm=cls.ALGORITHM)

    @classmethod
    def decode_token(cls, token: str) -> dict[str, Any]:
        """Decode and validate a JWT; signature, expiry and audience are enforced."""

        options = {"require": ["sub", "exp"]}
        audience = settings.IDENTITY_JWT_AUDIENCE
        try:
            payload = jwt.decode(
                token,
                settings.IDENTITY_JWT_SECRET,
                algorithms=[cls.ALGORITHM],
                audience=audience,
                options=options if audience else {**options, "verify_aud": False},
            )
        except jwt.ExpiredSignatureError as exc:  # pragma: no cover - simple mapping
            raise AuthenticationFailed("Token has expired") from exc
        except jwt.InvalidTokenError as exc:  # pragma: no cover - simple mapping
            raise AuthenticationFailed("Invalid token") from exc

        if not payload.get("email"):
            raise AuthenticationFailed("Token carries no email claim")
        return payload

    @classmethod
    def identity_from_token(cls, token: str) -> Identity:
        """Return the identity a valid token speaks for."""

        payload = cls.decode_token(token)
        return Identity(id=str(payload["sub"]), email=payload["email"])


__all__ = ["TokenService"]
