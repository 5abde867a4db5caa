"""Models package exports."""

from vidtube.models.auth import LoginRequest, LoginResult, TokenPair
from vidtube.models.response import ApiResponse, ErrorResponse
from vidtube.models.user import (
    ChannelProfile,
    User,
    UserCredentials,
    VideoOwner,
    WatchHistoryEntry,
)

__all__ = [
    "ApiResponse",
    "ChannelProfile",
    "ErrorResponse",
    "LoginRequest",
    "LoginResult",
    "TokenPair",
    "User",
    "UserCredentials",
    "VideoOwner",
    "WatchHistoryEntry",
]
