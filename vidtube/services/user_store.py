"""Credential store: user records in Postgres via asyncpg."""

import asyncio
from datetime import datetime, timezone
from typing import Iterable, Optional, Union
from uuid import UUID, uuid4

import asyncpg
import structlog

from vidtube.database import get_pool
from vidtube.errors import ConflictError
from vidtube.models.user import (
    ChannelProfile,
    User,
    UserCredentials,
    VideoOwner,
    WatchHistoryEntry,
)
from vidtube.services.password_service import hash_password

logger = structlog.get_logger(__name__)

USER_COLUMNS = "id, username, email, full_name, avatar, cover_image, created_at, updated_at"
CREDENTIAL_COLUMNS = f"{USER_COLUMNS}, password_hash, refresh_token"

# Fields callers may set through update_fields ("password" is hashed into password_hash)
SETTABLE_FIELDS = {"email", "full_name", "avatar", "cover_image", "password", "refresh_token"}
# Fields that may be removed (set to NULL)
UNSETTABLE_FIELDS = {"refresh_token"}


def normalize_username(username: str) -> str:
    """Usernames are stored trimmed and lower-cased."""
    return username.strip().lower()


def normalize_email(email: str) -> str:
    """Emails are stored trimmed and lower-cased."""
    return email.strip().lower()


def _row_to_user(row, include_credentials: bool = False) -> Union[User, UserCredentials]:
    fields = dict(
        id=row["id"],
        username=row["username"],
        email=row["email"],
        full_name=row["full_name"],
        avatar=row["avatar"],
        cover_image=row["cover_image"] or "",
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
    if include_credentials:
        return UserCredentials(
            **fields,
            password_hash=row["password_hash"],
            refresh_token=row["refresh_token"],
        )
    return User(**fields)


class UserStore:
    """Persistence for user records.

    Uniqueness of username and email is enforced by the database; any
    violation surfaces as ConflictError. All updates are single-statement
    and touch only the named columns.
    """

    def __init__(self, pool: Optional[asyncpg.Pool] = None):
        self._pool = pool

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is not None:
            return self._pool
        return await get_pool()

    async def find_by_username_or_email(
        self,
        username: Optional[str] = None,
        email: Optional[str] = None,
        include_credentials: bool = False,
    ) -> Optional[Union[User, UserCredentials]]:
        """Find the user matching either the username or the email.

        Args:
            username: Username to match (normalized before lookup)
            email: Email to match (normalized before lookup)
            include_credentials: Also return password hash and refresh token

        Returns:
            The matching user, or None
        """
        username = normalize_username(username) if username else None
        email = normalize_email(email) if email else None
        if username is None and email is None:
            return None

        columns = CREDENTIAL_COLUMNS if include_credentials else USER_COLUMNS
        pool = await self._get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {columns}
                FROM users
                WHERE ($1::text IS NOT NULL AND username = $1)
                   OR ($2::text IS NOT NULL AND email = $2)
                LIMIT 1
                """,
                username,
                email,
            )

        if row is None:
            return None
        return _row_to_user(row, include_credentials)

    async def find_by_id(
        self, user_id: UUID, include_credentials: bool = False
    ) -> Optional[Union[User, UserCredentials]]:
        """Get a user by id.

        Args:
            user_id: User UUID
            include_credentials: Also return password hash and refresh token

        Returns:
            The user, or None if not found
        """
        columns = CREDENTIAL_COLUMNS if include_credentials else USER_COLUMNS
        pool = await self._get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {columns} FROM users WHERE id = $1",
                user_id,
            )

        if row is None:
            return None
        return _row_to_user(row, include_credentials)

    async def create(
        self,
        username: str,
        email: str,
        full_name: str,
        password: str,
        avatar: str,
        cover_image: str = "",
    ) -> User:
        """Insert a new user, hashing the password first.

        Returns:
            The created user, sanitized

        Raises:
            ConflictError: If the username or email is already taken
        """
        user_id = uuid4()
        now = datetime.now(timezone.utc)
        password_hash = await asyncio.to_thread(hash_password, password)

        pool = await self._get_pool()

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO users (id, username, email, full_name, password_hash,
                                       avatar, cover_image, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    RETURNING {USER_COLUMNS}
                    """,
                    user_id,
                    normalize_username(username),
                    normalize_email(email),
                    full_name.strip(),
                    password_hash,
                    avatar,
                    cover_image or "",
                    now,
                    now,
                )
        except asyncpg.UniqueViolationError:
            logger.warning("user_create_conflict", username=normalize_username(username))
            raise ConflictError("User with email or username already exists")

        logger.info("user_created", user_id=str(user_id))
        return _row_to_user(row)

    async def update_fields(
        self,
        user_id: UUID,
        fields: Optional[dict] = None,
        unset: Iterable[str] = (),
    ) -> Optional[User]:
        """Atomically set and/or unset individual fields of one user.

        The password is hashed only when "password" is among the fields
        being set, so saving other fields never re-hashes it.

        Args:
            user_id: UUID of the user to update
            fields: Field name to new value
            unset: Field names to clear

        Returns:
            Updated user, or None if no such user

        Raises:
            ValueError: If a field name is not updatable
            ConflictError: If a new email collides with another user
        """
        fields = dict(fields or {})
        unset = list(unset)

        unknown = (fields.keys() - SETTABLE_FIELDS) | (frozenset(unset) - UNSETTABLE_FIELDS)
        if unknown:
            raise ValueError(f"Fields not updatable: {sorted(unknown)}")

        if "password" in fields:
            fields["password_hash"] = await asyncio.to_thread(hash_password, fields.pop("password"))
        if "email" in fields:
            fields["email"] = normalize_email(fields["email"])
        if "full_name" in fields:
            fields["full_name"] = fields["full_name"].strip()

        if not fields and not unset:
            return await self.find_by_id(user_id)

        set_clauses = []
        params = []
        param_idx = 1

        for column, value in fields.items():
            set_clauses.append(f"{column} = ${param_idx}")
            params.append(value)
            param_idx += 1

        for column in unset:
            set_clauses.append(f"{column} = NULL")

        now = datetime.now(timezone.utc)
        set_clauses.append(f"updated_at = ${param_idx}")
        params.append(now)
        param_idx += 1

        params.append(user_id)

        query = f"""
            UPDATE users
            SET {', '.join(set_clauses)}
            WHERE id = ${param_idx}
            RETURNING {USER_COLUMNS}
        """

        pool = await self._get_pool()

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(query, *params)
        except asyncpg.UniqueViolationError:
            logger.warning("user_update_conflict", user_id=str(user_id))
            raise ConflictError("User with email or username already exists")

        if row is None:
            return None

        logger.info(
            "user_updated",
            user_id=str(user_id),
            fields_set=sorted(fields.keys()),
            fields_unset=sorted(unset),
        )
        return _row_to_user(row)

    async def set_refresh_token(self, user_id: UUID, refresh_token: str) -> bool:
        """Overwrite the stored refresh token, invalidating any earlier one."""
        user = await self.update_fields(user_id, fields={"refresh_token": refresh_token})
        return user is not None

    async def clear_refresh_token(self, user_id: UUID) -> bool:
        """Remove the stored refresh token."""
        user = await self.update_fields(user_id, unset=("refresh_token",))
        return user is not None

    async def swap_refresh_token(
        self, user_id: UUID, expected: str, refresh_token: str
    ) -> bool:
        """Replace the stored refresh token only if it still equals `expected`.

        Returns:
            True if the swap happened, False if the stored value had
            already changed
        """
        pool = await self._get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE users
                SET refresh_token = $3, updated_at = $4
                WHERE id = $1 AND refresh_token = $2
                """,
                user_id,
                expected,
                refresh_token,
                datetime.now(timezone.utc),
            )

        return result == "UPDATE 1"

    async def get_channel_profile(
        self, username: str, viewer_id: Optional[UUID] = None
    ) -> Optional[ChannelProfile]:
        """Load a channel with its subscription counts.

        Args:
            username: Channel owner's username
            viewer_id: Requesting user, for the is_subscribed flag

        Returns:
            ChannelProfile, or None if no such user
        """
        pool = await self._get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT u.id, u.username, u.full_name, u.email, u.avatar, u.cover_image,
                       (SELECT COUNT(*) FROM subscriptions s
                         WHERE s.channel_id = u.id) AS subscribers_count,
                       (SELECT COUNT(*) FROM subscriptions s
                         WHERE s.subscriber_id = u.id) AS channels_subscribed_to_count,
                       EXISTS (SELECT 1 FROM subscriptions s
                                WHERE s.channel_id = u.id
                                  AND s.subscriber_id = $2) AS is_subscribed
                FROM users u
                WHERE u.username = $1
                """,
                normalize_username(username),
                viewer_id,
            )

        if row is None:
            return None

        return ChannelProfile(
            id=row["id"],
            username=row["username"],
            full_name=row["full_name"],
            email=row["email"],
            avatar=row["avatar"],
            cover_image=row["cover_image"] or "",
            subscribers_count=row["subscribers_count"],
            channels_subscribed_to_count=row["channels_subscribed_to_count"],
            is_subscribed=bool(row["is_subscribed"]),
        )

    async def get_watch_history(self, user_id: UUID) -> list[WatchHistoryEntry]:
        """Return a user's watched videos in order, each with its owner."""
        pool = await self._get_pool()

        async with pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT v.id, v.title, v.description, v.video_file, v.thumbnail,
                       v.duration, v.views, v.created_at,
                       o.id AS owner_id, o.username AS owner_username,
                       o.full_name AS owner_full_name, o.avatar AS owner_avatar
                FROM watch_history w
                JOIN videos v ON v.id = w.video_id
                LEFT JOIN users o ON o.id = v.owner_id
                WHERE w.user_id = $1
                ORDER BY w.position ASC
                """,
                user_id,
            )

        return [
            WatchHistoryEntry(
                id=row["id"],
                title=row["title"],
                description=row["description"] or "",
                video_file=row["video_file"],
                thumbnail=row["thumbnail"],
                duration=row["duration"],
                views=row["views"],
                created_at=row["created_at"],
                owner=(
                    VideoOwner(
                        id=row["owner_id"],
                        username=row["owner_username"],
                        full_name=row["owner_full_name"],
                        avatar=row["owner_avatar"],
                    )
                    if row["owner_id"] is not None
                    else None
                ),
            )
            for row in rows
        ]
