"""Signed access and refresh tokens (JWT)."""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

import jwt
import structlog

from vidtube.config import Settings, get_settings
from vidtube.errors import AuthenticationFailed
from vidtube.models.auth import TokenPair
from vidtube.models.user import User

logger = structlog.get_logger(__name__)

JWT_ALGORITHM = "HS256"


class TokenKind(str, Enum):
    """Which of the two token families a token belongs to."""

    ACCESS = "access"
    REFRESH = "refresh"


class TokenService:
    """Issues and verifies access and refresh tokens.

    Each kind is signed with its own secret, so a refresh token can never
    pass as an access token and vice versa. Every token carries a random
    ``jti`` so two tokens minted for the same user in the same second are
    still distinct strings.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def _secret(self, kind: TokenKind) -> str:
        if kind is TokenKind.ACCESS:
            return self.settings.access_token_secret
        return self.settings.refresh_token_secret

    def _lifetime(self, kind: TokenKind) -> timedelta:
        if kind is TokenKind.ACCESS:
            return timedelta(minutes=self.settings.access_token_expire_minutes)
        return timedelta(days=self.settings.refresh_token_expire_days)

    def _encode(self, kind: TokenKind, claims: dict) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            **claims,
            "type": kind.value,
            "iat": now,
            "exp": now + self._lifetime(kind),
            "jti": uuid4().hex,
        }
        return jwt.encode(payload, self._secret(kind), algorithm=JWT_ALGORITHM)

    def issue_access_token(self, user: User) -> str:
        """Create a signed access token carrying the user's identity claims.

        Args:
            user: User the token is issued to

        Returns:
            Encoded JWT string
        """
        token = self._encode(
            TokenKind.ACCESS,
            {
                "sub": str(user.id),
                "username": user.username,
                "email": user.email,
                "full_name": user.full_name,
            },
        )
        logger.debug(
            "access_token_issued",
            user_id=str(user.id),
            expires_minutes=self.settings.access_token_expire_minutes,
        )
        return token

    def issue_refresh_token(self, user: User) -> str:
        """Create a signed refresh token carrying only the user id.

        Args:
            user: User the token is issued to

        Returns:
            Encoded JWT string
        """
        token = self._encode(TokenKind.REFRESH, {"sub": str(user.id)})
        logger.debug(
            "refresh_token_issued",
            user_id=str(user.id),
            expires_days=self.settings.refresh_token_expire_days,
        )
        return token

    def issue_token_pair(self, user: User) -> TokenPair:
        """Create a fresh access/refresh pair for a user."""
        return TokenPair(
            access_token=self.issue_access_token(user),
            refresh_token=self.issue_refresh_token(user),
        )

    def verify_token(self, token: str, kind: TokenKind) -> dict:
        """Decode and validate a token of the given kind.

        Args:
            token: Encoded JWT string
            kind: Expected token kind

        Returns:
            Decoded claims

        Raises:
            AuthenticationFailed: If the token is malformed, expired, signed
                with the wrong key, or of the wrong kind. The reason is
                logged but not exposed.
        """
        try:
            claims = jwt.decode(
                token,
                self._secret(kind),
                algorithms=[JWT_ALGORITHM],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            logger.info("token_expired", kind=kind.value)
            raise AuthenticationFailed(f"Invalid {kind.value} token")
        except jwt.InvalidTokenError as e:
            logger.warning("token_invalid", kind=kind.value, reason=str(e))
            raise AuthenticationFailed(f"Invalid {kind.value} token")

        if claims.get("type") != kind.value:
            logger.warning(
                "token_kind_mismatch",
                expected=kind.value,
                actual=claims.get("type"),
            )
            raise AuthenticationFailed(f"Invalid {kind.value} token")

        return claims
