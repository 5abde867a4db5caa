"""Account profile updates and channel/watch-history reads."""

from pathlib import Path
from typing import Optional, Union
from uuid import UUID

import structlog

from vidtube.errors import NotFoundError, ValidationError
from vidtube.models.user import ChannelProfile, User, WatchHistoryEntry
from vidtube.services.media_service import MediaService
from vidtube.services.user_store import UserStore

logger = structlog.get_logger(__name__)


class AccountService:
    """Service for the authenticated user's profile and channel data."""

    def __init__(self, store: UserStore, media: MediaService):
        self.store = store
        self.media = media

    async def update_account(
        self,
        user_id: UUID,
        email: Optional[str] = None,
        full_name: Optional[str] = None,
    ) -> User:
        """Update email and/or full name.

        Only supplied, non-blank fields change.

        Raises:
            ValidationError: Neither field supplied
            ConflictError: Email already used by another account
            NotFoundError: No such user
        """
        fields = {}
        if email and email.strip():
            fields["email"] = email
        if full_name and full_name.strip():
            fields["full_name"] = full_name

        if not fields:
            raise ValidationError("Email or full name is required")

        user = await self.store.update_fields(user_id, fields=fields)
        if user is None:
            raise NotFoundError("User does not exist")
        return user

    async def _replace_image(
        self, user_id: UUID, field: str, local_path: Optional[Union[str, Path]], label: str
    ) -> User:
        if not local_path:
            raise ValidationError(f"{label} file is missing")

        url = await self.media.upload(local_path)
        if not url:
            raise ValidationError(f"Error while uploading {label.lower()}")

        user = await self.store.update_fields(user_id, fields={field: url})
        if user is None:
            raise NotFoundError("User does not exist")

        logger.info("user_image_updated", user_id=str(user_id), field=field)
        return user

    async def update_avatar(self, user_id: UUID, local_path: Optional[Union[str, Path]]) -> User:
        """Upload a new avatar and point the account at it."""
        return await self._replace_image(user_id, "avatar", local_path, "Avatar")

    async def update_cover_image(
        self, user_id: UUID, local_path: Optional[Union[str, Path]]
    ) -> User:
        """Upload a new cover image and point the account at it."""
        return await self._replace_image(user_id, "cover_image", local_path, "Cover image")

    async def get_channel_profile(
        self, username: Optional[str], viewer_id: Optional[UUID] = None
    ) -> ChannelProfile:
        """Load a channel's public profile and subscription counts.

        Args:
            username: Channel owner's username
            viewer_id: Requesting user; is_subscribed reports whether this
                user is among the channel's subscribers

        Raises:
            ValidationError: Username blank
            NotFoundError: No such channel
        """
        if not username or not username.strip():
            raise ValidationError("Username is missing")

        profile = await self.store.get_channel_profile(username, viewer_id)
        if profile is None:
            raise NotFoundError("Channel does not exist")
        return profile

    async def get_watch_history(self, user_id: UUID) -> list[WatchHistoryEntry]:
        """Return the user's watch history, oldest first."""
        return await self.store.get_watch_history(user_id)
