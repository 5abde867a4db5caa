"""FastAPI dependencies for services and authentication."""

from functools import lru_cache
from typing import Optional
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from vidtube.errors import AuthenticationFailed, UnauthorizedError
from vidtube.models.user import User
from vidtube.services.account_service import AccountService
from vidtube.services.media_service import MediaService
from vidtube.services.session_service import SessionService
from vidtube.services.token_service import TokenKind, TokenService
from vidtube.services.user_store import UserStore

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"

bearer_scheme = HTTPBearer(auto_error=False)


@lru_cache
def get_user_store() -> UserStore:
    """Shared credential store bound to the global pool."""
    return UserStore()


@lru_cache
def get_token_service() -> TokenService:
    return TokenService()


@lru_cache
def get_media_service() -> MediaService:
    return MediaService()


def get_session_service(
    store: UserStore = Depends(get_user_store),
    tokens: TokenService = Depends(get_token_service),
    media: MediaService = Depends(get_media_service),
) -> SessionService:
    return SessionService(store, tokens, media)


def get_account_service(
    store: UserStore = Depends(get_user_store),
    media: MediaService = Depends(get_media_service),
) -> AccountService:
    return AccountService(store, media)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    store: UserStore = Depends(get_user_store),
    tokens: TokenService = Depends(get_token_service),
) -> User:
    """Resolve the caller from an access token.

    The token is read from the Authorization bearer header, falling back
    to the accessToken cookie.

    Raises:
        UnauthorizedError: If no token is present, it fails verification,
            or its user no longer exists
    """
    token = credentials.credentials if credentials else request.cookies.get(ACCESS_TOKEN_COOKIE)
    if not token:
        raise UnauthorizedError("Unauthorized request")

    try:
        claims = tokens.verify_token(token, TokenKind.ACCESS)
        user_id = UUID(claims["sub"])
    except (AuthenticationFailed, ValueError):
        raise UnauthorizedError("Invalid access token")

    user = await store.find_by_id(user_id)
    if user is None:
        raise UnauthorizedError("Invalid access token")

    return user
