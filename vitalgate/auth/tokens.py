"""
Token Manager
=============
Stateless JWT session tokens (HS256) with issuer/audience binding.

Expiry is checked against the manager's own clock rather than PyJWT's so
that it can be controlled in tests; signature, structure, issuer and
audience failures map onto the authentication error taxonomy.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import jwt
import structlog

from ..config import TokenConfig
from ..errors import TokenExpired, TokenIssuerMismatch, TokenMalformed
from .models import TokenClaims

logger = structlog.get_logger(__name__)

REQUIRED_CLAIMS = ("sub", "email", "iat", "exp", "iss", "aud")


def _to_datetime(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


class TokenManager:
    """
    Issues and verifies signed session tokens.

    Example:
        tokens = TokenManager(settings.token)

        token = tokens.issue("user_123", "jane@example.com")
        claims = tokens.verify(token)
    """

    def __init__(
        self,
        config: TokenConfig,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Args:
            config: Secret, lifetime, issuer and audience settings
            clock: Returns the current Unix time in seconds
        """
        if not config.secret:
            raise ValueError("Token secret must be configured")
        self.config = config
        self._clock = clock or time.time

    def issue(self, subject_id: str, email: str) -> str:
        """
        Issue a signed token for a subject.

        Args:
            subject_id: Authenticated subject (user) id
            email: Subject email address

        Returns:
            Encoded JWT
        """
        now = int(self._clock())
        payload = {
            "sub": str(subject_id),
            "email": email,
            "iat": now,
            "exp": now + self.config.lifetime_seconds,
            "iss": self.config.issuer,
            "aud": self.config.audience,
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self.config.secret, algorithm=self.config.algorithm)

    def _decode(self, token: str) -> Dict[str, Any]:
        try:
            return jwt.decode(
                token,
                self.config.secret,
                algorithms=[self.config.algorithm],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "verify_aud": False,
                    "verify_iss": False,
                    "require": list(REQUIRED_CLAIMS),
                },
            )
        except jwt.PyJWTError as e:
            raise TokenMalformed(f"Invalid token: {e}") from e

    def verify(self, token: str) -> TokenClaims:
        """
        Verify a token and return its claims.

        Raises:
            TokenMalformed: Bad signature, structure or claim types
            TokenExpired: ``now >= exp``
            TokenIssuerMismatch: Issuer or audience differ from configuration
        """
        if not token:
            raise TokenMalformed("Token is empty")

        payload = self._decode(token)

        try:
            expires_at = float(payload["exp"])
            issued_at = float(payload["iat"])
        except (TypeError, ValueError) as e:
            raise TokenMalformed("Token timestamps are not numeric") from e

        if self._clock() >= expires_at:
            raise TokenExpired("Token has expired")

        audience = payload["aud"]
        audiences = audience if isinstance(audience, list) else [audience]
        if payload["iss"] != self.config.issuer or self.config.audience not in audiences:
            logger.warning(
                "token_issuer_mismatch",
                issuer=payload["iss"],
                audience=audience,
            )
            raise TokenIssuerMismatch("Token issuer or audience mismatch")

        return TokenClaims(
            subject_id=str(payload["sub"]),
            email=payload["email"],
            issued_at=_to_datetime(issued_at),
            expires_at=_to_datetime(expires_at),
            issuer=payload["iss"],
            audience=self.config.audience,
        )

    def extract_from_header(self, header_value: Optional[str]) -> Optional[str]:
        """
        Extract the token from an ``Authorization`` header value.

        Returns None unless the value is exactly ``"<Scheme> <token>"``.
        """
        if not header_value:
            return None

        parts = header_value.split(" ")
        if len(parts) != 2 or parts[0] != self.config.header_scheme:
            return None

        return parts[1] or None

    def get_expiration_time(self, token: str) -> Optional[datetime]:
        """Decode ``exp`` without verifying the signature; None if absent."""
        try:
            payload = jwt.decode(token, options={"verify_signature": False})
            return _to_datetime(float(payload["exp"]))
        except (jwt.PyJWTError, KeyError, TypeError, ValueError):
            return None

    def should_refresh(self, token: str) -> bool:
        """True if the token has no decodable expiry or expires within the threshold."""
        expires_at = self.get_expiration_time(token)
        if expires_at is None:
            return True

        remaining = expires_at.timestamp() - self._clock()
        return remaining <= self.config.refresh_threshold_seconds

    def refresh(self, old_token: str) -> str:
        """
        Verify ``old_token`` and issue a fresh token for the same subject.

        Expired tokens are rejected rather than revived.
        """
        claims = self.verify(old_token)
        logger.info("token_refreshed", subject_id=claims.subject_id)
        return self.issue(claims.subject_id, claims.email)
