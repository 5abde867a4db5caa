"""Auth and account request/response models with validation."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from vidtube.models.user import User
from vidtube.services.password_service import PASSWORD_TOO_LONG, password_too_long


class LoginRequest(BaseModel):
    """Login credentials.

    Either username or email identifies the account.

    Attributes:
        username: Account username
        email: Account email
        password: Plain-text password
    """

    username: Optional[str] = None
    email: Optional[str] = None
    password: str = Field(..., min_length=1)


class TokenPair(BaseModel):
    """An access/refresh token pair.

    Attributes:
        access_token: Short-lived JWT for API access
        refresh_token: Longer-lived JWT for obtaining a new pair
    """

    access_token: str
    refresh_token: str


class LoginResult(TokenPair):
    """Successful login: the sanitized user plus a fresh token pair."""

    user: User


class RefreshRequest(BaseModel):
    """Request body for exchanging a refresh token.

    The token may instead arrive in the refreshToken cookie.
    """

    refresh_token: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    """Request to replace the current password."""

    old_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)

    @field_validator("new_password")
    @classmethod
    def password_not_blank(cls, v: str) -> str:
        """Ensure password is not blank and fits bcrypt's input limit."""
        if not v.strip():
            raise ValueError("Password cannot be empty or whitespace only")
        if password_too_long(v):
            raise ValueError(PASSWORD_TOO_LONG)
        return v


class UpdateAccountRequest(BaseModel):
    """Request to update account details.

    Only provided fields are updated; at least one is required.
    """

    email: Optional[str] = Field(default=None, max_length=255)
    full_name: Optional[str] = Field(default=None, max_length=255)

    @model_validator(mode="after")
    def at_least_one_field(self) -> "UpdateAccountRequest":
        """Require email or full_name."""
        if not self.email and not (self.full_name and self.full_name.strip()):
            raise ValueError("Email or full name is required")
        return self
