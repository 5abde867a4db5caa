"""Session lifecycle: registration, login, logout, refresh and password change."""

import asyncio
import secrets
from pathlib import Path
from typing import Optional, Union
from uuid import UUID

import structlog

from vidtube.errors import (
    AuthenticationFailed,
    ConflictError,
    InternalError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from vidtube.models.auth import LoginResult, TokenPair
from vidtube.models.user import User
from vidtube.services.media_service import MediaService
from vidtube.services.password_service import (
    PASSWORD_TOO_LONG,
    password_too_long,
    verify_password,
)
from vidtube.services.token_service import TokenKind, TokenService
from vidtube.services.user_store import UserStore

logger = structlog.get_logger(__name__)

TOKEN_ISSUE_FAILED = "Something went wrong while generating access and refresh tokens"
REFRESH_TOKEN_STALE = "Refresh token is expired or used"


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


class SessionService:
    """Orchestrates the credential store, password hasher and token issuer.

    A user holds at most one valid refresh token: the one stored on the
    record. Login and refresh overwrite it, logout clears it, and a refresh
    is accepted only for a token equal to the stored value.
    """

    def __init__(
        self,
        store: UserStore,
        tokens: TokenService,
        media: MediaService,
    ):
        self.store = store
        self.tokens = tokens
        self.media = media

    async def _issue_tokens(self, user: User, expected: Optional[str] = None) -> TokenPair:
        """Mint a token pair and persist its refresh token.

        With `expected`, the stored token is replaced only if it still
        equals that value, so concurrent refreshes of one token cannot
        both succeed.

        Raises:
            UnauthorizedError: If `expected` no longer matches
            InternalError: If the refresh token could not be persisted
        """
        try:
            pair = self.tokens.issue_token_pair(user)
            if expected is None:
                stored = await self.store.set_refresh_token(user.id, pair.refresh_token)
            else:
                stored = await self.store.swap_refresh_token(
                    user.id, expected, pair.refresh_token
                )
        except Exception as e:
            logger.error(
                "token_issue_failed",
                user_id=str(user.id),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise InternalError(TOKEN_ISSUE_FAILED) from e

        if not stored:
            if expected is not None:
                logger.warning("refresh_token_race_lost", user_id=str(user.id))
                raise UnauthorizedError(REFRESH_TOKEN_STALE)
            logger.error("token_issue_user_missing", user_id=str(user.id))
            raise InternalError(TOKEN_ISSUE_FAILED)

        return pair

    async def register(
        self,
        username: Optional[str],
        email: Optional[str],
        full_name: Optional[str],
        password: Optional[str],
        avatar_path: Optional[Union[str, Path]],
        cover_image_path: Optional[Union[str, Path]] = None,
    ) -> User:
        """Create an account.

        Args:
            username: Desired username
            email: Account email
            full_name: Display name
            password: Plain-text password (hashed before storage)
            avatar_path: Staged avatar file (required)
            cover_image_path: Staged cover image file (optional)

        Returns:
            The created user, without password or refresh token

        Raises:
            ValidationError: Blank field, password too long for bcrypt, or
                avatar missing or not uploaded
            ConflictError: Username or email already taken
            InternalError: The created record could not be read back
        """
        if any(_is_blank(f) for f in (username, email, full_name, password)):
            raise ValidationError("All fields are required")
        if password_too_long(password):
            raise ValidationError(PASSWORD_TOO_LONG)

        existing = await self.store.find_by_username_or_email(username=username, email=email)
        if existing is not None:
            raise ConflictError("User with email or username already exists")

        if not avatar_path:
            raise ValidationError("Avatar file is required")

        avatar_url = await self.media.upload(avatar_path)
        cover_image_url = await self.media.upload(cover_image_path) if cover_image_path else None

        if not avatar_url:
            raise ValidationError("Avatar file is required")

        created = await self.store.create(
            username=username,
            email=email,
            full_name=full_name,
            password=password,
            avatar=avatar_url,
            cover_image=cover_image_url or "",
        )

        user = await self.store.find_by_id(created.id) if created is not None else None
        if user is None:
            logger.error("user_register_readback_failed", username=username)
            raise InternalError("Something went wrong while registering the user")

        logger.info("user_registered", user_id=str(user.id), username=user.username)
        return user

    async def login(
        self,
        password: str,
        username: Optional[str] = None,
        email: Optional[str] = None,
    ) -> LoginResult:
        """Verify credentials and start a session.

        Any refresh token issued earlier to this user stops being valid.

        Raises:
            ValidationError: Neither username nor email supplied
            NotFoundError: No such user
            UnauthorizedError: Wrong password
            InternalError: Token persistence failed
        """
        if _is_blank(username) and _is_blank(email):
            raise ValidationError("Username or email is required")

        record = await self.store.find_by_username_or_email(
            username=username, email=email, include_credentials=True
        )
        if record is None:
            raise NotFoundError("User does not exist")

        if not await asyncio.to_thread(verify_password, password or "", record.password_hash):
            logger.info("login_rejected", user_id=str(record.id))
            raise UnauthorizedError("Invalid user credentials")

        user = record.sanitized()
        pair = await self._issue_tokens(user)

        logger.info("user_logged_in", user_id=str(user.id), username=user.username)
        return LoginResult(user=user, **pair.model_dump())

    async def logout(self, user_id: UUID) -> None:
        """End the session by removing the stored refresh token.

        Logging out an already logged-out user is not an error.
        """
        await self.store.clear_refresh_token(user_id)
        logger.info("user_logged_out", user_id=str(user_id))

    async def refresh_access_token(self, incoming: Optional[str]) -> TokenPair:
        """Exchange the current refresh token for a new pair.

        Raises:
            UnauthorizedError: Token absent, invalid, expired, for an unknown
                user, or not the one currently stored (already used)
            InternalError: Token persistence failed
        """
        if not incoming:
            raise UnauthorizedError("Unauthorized request")

        try:
            claims = self.tokens.verify_token(incoming, TokenKind.REFRESH)
            user_id = UUID(claims["sub"])
        except (AuthenticationFailed, ValueError):
            raise UnauthorizedError("Invalid refresh token")

        record = await self.store.find_by_id(user_id, include_credentials=True)
        if record is None:
            logger.warning("refresh_token_user_missing", user_id=str(user_id))
            raise UnauthorizedError("Invalid refresh token")

        if record.refresh_token is None or not secrets.compare_digest(
            incoming, record.refresh_token
        ):
            logger.warning("refresh_token_reused", user_id=str(user_id))
            raise UnauthorizedError(REFRESH_TOKEN_STALE)

        pair = await self._issue_tokens(record.sanitized(), expected=incoming)

        logger.info("access_token_refreshed", user_id=str(user_id))
        return pair

    async def change_password(
        self, user_id: UUID, old_password: str, new_password: str
    ) -> None:
        """Replace the password of the authenticated user.

        Raises:
            ValidationError: New password blank or too long
            NotFoundError: No such user
            UnauthorizedError: Old password does not match
        """
        if _is_blank(new_password):
            raise ValidationError("New password is required")
        if password_too_long(new_password):
            raise ValidationError(PASSWORD_TOO_LONG)

        record = await self.store.find_by_id(user_id, include_credentials=True)
        if record is None:
            raise NotFoundError("User does not exist")

        if not await asyncio.to_thread(verify_password, old_password or "", record.password_hash):
            logger.info("password_change_rejected", user_id=str(user_id))
            raise UnauthorizedError("Invalid old password")

        await self.store.update_fields(user_id, fields={"password": new_password})
        logger.info("password_changed", user_id=str(user_id))
