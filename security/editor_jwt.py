from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from core.errors import SignatureError
from core.settings import JWT_PLACEHOLDER_SECRET, Settings

logger = logging.getLogger(__name__)

# Token lifetime (in seconds)
ACCESS_TOKEN_EXPIRE_SECONDS = 3600
MIN_SECRET_LENGTH = 10


def signing_enabled(secret: str | None) -> bool:
    return bool(secret) and secret != JWT_PLACEHOLDER_SECRET and len(secret) > MIN_SECRET_LENGTH


class EditorTokenIssuer:
    """Signs editor configurations for the document server.

    Tokens are stateless: expiry is the only way a token stops being valid.
    """

    def __init__(
        self,
        secret: str | None,
        algorithm: str = "HS256",
        expires_in: int = ACCESS_TOKEN_EXPIRE_SECONDS,
    ) -> None:
        self._secret = secret or ""
        self._algorithm = algorithm
        self._expires_in = expires_in
        self.enabled = signing_enabled(secret)

    @classmethod
    def from_settings(cls, settings: Settings) -> "EditorTokenIssuer":
        issuer = cls(settings.jwt_secret, settings.jwt_algorithm, settings.jwt_expires_in)
        if not issuer.enabled:
            logger.warning("JWT secret is missing, a placeholder or too short; editor tokens are disabled")
        return issuer

    def _sign(self, payload: dict[str, Any], expires_in: int) -> str:
        claims = dict(payload)
        claims["exp"] = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
        try:
            return jwt.encode(claims, self._secret, algorithm=self._algorithm, headers={"typ": "JWT"})
        except (jwt.PyJWTError, TypeError, ValueError) as exc:
            raise SignatureError(f"Signing editor token failed: {exc}") from exc

    def issue(self, payload: dict[str, Any], expires_in: int | None = None) -> str | None:
        if not self.enabled:
            return None
        try:
            return self._sign(payload, self._expires_in if expires_in is None else expires_in)
        except SignatureError:
            logger.exception("Editor token was not issued")
            return None

    def verify(self, token: str) -> dict[str, Any] | None:
        if not self.enabled or not token:
            return None
        try:
            decoded = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError:
            logger.info("Expired editor token")
            return None
        except jwt.InvalidSignatureError:
            logger.warning("Invalid editor token signature")
            return None
        except jwt.PyJWTError as exc:
            logger.warning("Malformed editor token: %s", exc)
            return None
        decoded.pop("exp", None)
        return decoded
