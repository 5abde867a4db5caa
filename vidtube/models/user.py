"""User, channel and watch-history models."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class User(BaseModel):
    """A registered user, sanitized for callers.

    Never carries the password hash or the refresh token.
    """

    id: UUID
    username: str
    email: str
    full_name: str
    avatar: str
    cover_image: str = ""
    created_at: datetime
    updated_at: datetime


class UserCredentials(User):
    """A user record together with its credential fields.

    Only the session layer sees this shape; it is never serialized out.
    """

    password_hash: str
    refresh_token: Optional[str] = None

    def sanitized(self) -> User:
        """Drop the credential fields."""
        return User(**self.model_dump(exclude={"password_hash", "refresh_token"}))


class ChannelProfile(BaseModel):
    """A user's public channel with subscription counts.

    Attributes:
        subscribers_count: Number of users subscribed to this channel
        channels_subscribed_to_count: Number of channels this user follows
        is_subscribed: Whether the requesting user subscribes to this channel
    """

    id: UUID
    username: str
    full_name: str
    email: str
    avatar: str
    cover_image: str = ""
    subscribers_count: int = 0
    channels_subscribed_to_count: int = 0
    is_subscribed: bool = False


class VideoOwner(BaseModel):
    """Projection of a video's owner."""

    id: UUID
    username: str
    full_name: str
    avatar: str


class WatchHistoryEntry(BaseModel):
    """A watched video with its owner expanded."""

    id: UUID
    title: str
    description: str = ""
    video_file: str
    thumbnail: str
    duration: float = 0
    views: int = 0
    created_at: datetime
    owner: Optional[VideoOwner] = None
