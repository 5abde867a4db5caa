"""User account API endpoints."""

from typing import Optional

import structlog
from fastapi import APIRouter, Body, Depends, File, Form, Query, Request, Response, UploadFile, status

from vidtube.api.dependencies import (
    ACCESS_TOKEN_COOKIE,
    REFRESH_TOKEN_COOKIE,
    get_account_service,
    get_current_user,
    get_session_service,
)
from vidtube.api.uploads import discard_staged, stage_upload
from vidtube.config import get_settings
from vidtube.models.auth import (
    ChangePasswordRequest,
    LoginRequest,
    RefreshRequest,
    TokenPair,
    UpdateAccountRequest,
)
from vidtube.models.response import ApiResponse
from vidtube.models.user import User
from vidtube.services.account_service import AccountService
from vidtube.services.session_service import SessionService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


def _set_session_cookies(response: Response, pair: TokenPair) -> None:
    """Deliver both tokens as HTTP-only cookies."""
    secure = get_settings().cookie_secure
    response.set_cookie(ACCESS_TOKEN_COOKIE, pair.access_token, httponly=True, secure=secure)
    response.set_cookie(REFRESH_TOKEN_COOKIE, pair.refresh_token, httponly=True, secure=secure)


def _clear_session_cookies(response: Response) -> None:
    secure = get_settings().cookie_secure
    response.delete_cookie(ACCESS_TOKEN_COOKIE, httponly=True, secure=secure)
    response.delete_cookie(REFRESH_TOKEN_COOKIE, httponly=True, secure=secure)


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    username: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    full_name: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    cover_image: Optional[UploadFile] = File(None),
    sessions: SessionService = Depends(get_session_service),
) -> ApiResponse:
    """Create an account from a multipart form.

    The avatar file is required; the cover image is optional.

    Raises:
        ValidationError 400: Blank field or missing avatar
        ConflictError 409: Username or email already taken
    """
    upload_dir = get_settings().upload_dir
    avatar_path = cover_image_path = None

    try:
        avatar_path = await stage_upload(avatar, upload_dir)
        cover_image_path = await stage_upload(cover_image, upload_dir)
        user = await sessions.register(
            username=username,
            email=email,
            full_name=full_name,
            password=password,
            avatar_path=avatar_path,
            cover_image_path=cover_image_path,
        )
    finally:
        discard_staged(avatar_path, cover_image_path)

    return ApiResponse.of(201, user.model_dump(mode="json"), "User registered successfully")


@router.post("/login")
async def login(
    request: LoginRequest,
    response: Response,
    sessions: SessionService = Depends(get_session_service),
) -> ApiResponse:
    """Login with username or email and password.

    Tokens are returned in the body and also set as cookies.
    """
    result = await sessions.login(
        password=request.password,
        username=request.username,
        email=request.email,
    )
    _set_session_cookies(response, result)

    return ApiResponse.of(200, result.model_dump(mode="json"), "User logged in successfully")


@router.post("/logout")
async def logout(
    response: Response,
    current_user: User = Depends(get_current_user),
    sessions: SessionService = Depends(get_session_service),
) -> ApiResponse:
    """Invalidate the stored refresh token and clear session cookies."""
    await sessions.logout(current_user.id)
    _clear_session_cookies(response)

    return ApiResponse.of(200, {}, "User logged out")


@router.post("/refresh-token")
async def refresh_token(
    request: Request,
    response: Response,
    body: Optional[RefreshRequest] = Body(default=None),
    sessions: SessionService = Depends(get_session_service),
) -> ApiResponse:
    """Rotate the refresh token and issue a new access token.

    The refresh token is read from the refreshToken cookie, falling back
    to the request body.
    """
    incoming = request.cookies.get(REFRESH_TOKEN_COOKIE) or (body.refresh_token if body else None)

    pair = await sessions.refresh_access_token(incoming)
    _set_session_cookies(response, pair)

    return ApiResponse.of(200, pair.model_dump(), "Access token refreshed")


@router.patch("/update-password")
async def update_password(
    request: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    sessions: SessionService = Depends(get_session_service),
) -> ApiResponse:
    """Change the authenticated user's password."""
    await sessions.change_password(
        current_user.id,
        old_password=request.old_password,
        new_password=request.new_password,
    )
    return ApiResponse.of(200, {}, "Password changed successfully")


@router.get("/me")
async def get_me(current_user: User = Depends(get_current_user)) -> ApiResponse:
    """Get the authenticated user."""
    return ApiResponse.of(200, current_user.model_dump(mode="json"), "User fetched successfully")


@router.patch("/update-user-data")
async def update_user_data(
    request: UpdateAccountRequest,
    current_user: User = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
) -> ApiResponse:
    """Update email and/or full name."""
    user = await accounts.update_account(
        current_user.id,
        email=request.email,
        full_name=request.full_name,
    )
    return ApiResponse.of(200, user.model_dump(mode="json"), "Account details updated successfully")


@router.patch("/avatar")
async def update_avatar(
    avatar: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
) -> ApiResponse:
    """Replace the avatar image."""
    avatar_path = None
    try:
        avatar_path = await stage_upload(avatar, get_settings().upload_dir)
        user = await accounts.update_avatar(current_user.id, avatar_path)
    finally:
        discard_staged(avatar_path)

    return ApiResponse.of(200, user.model_dump(mode="json"), "Avatar image updated successfully")


@router.patch("/cover-image")
async def update_cover_image(
    cover_image: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
) -> ApiResponse:
    """Replace the cover image."""
    cover_image_path = None
    try:
        cover_image_path = await stage_upload(cover_image, get_settings().upload_dir)
        user = await accounts.update_cover_image(current_user.id, cover_image_path)
    finally:
        discard_staged(cover_image_path)

    return ApiResponse.of(200, user.model_dump(mode="json"), "Cover image updated successfully")


@router.get("/user-profile")
async def user_profile(
    username: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
) -> ApiResponse:
    """Get a channel profile with subscriber counts."""
    profile = await accounts.get_channel_profile(username, viewer_id=current_user.id)
    return ApiResponse.of(200, profile.model_dump(mode="json"), "User channel fetched successfully")


@router.get("/watch-history")
async def watch_history(
    current_user: User = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
) -> ApiResponse:
    """Get the authenticated user's watch history."""
    history = await accounts.get_watch_history(current_user.id)
    return ApiResponse.of(
        200,
        [entry.model_dump(mode="json") for entry in history],
        "Watch history fetched successfully",
    )
