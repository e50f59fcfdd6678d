"""Authentication schemas."""
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

Role = Literal["unset", "Developer", "Project Manager", "Team Lead"]

DataT = TypeVar("DataT")

BCRYPT_MAX_BYTES = 72


def check_password_bytes(value: str) -> str:
    """bcrypt only accepts up to 72 bytes of input."""
    if len(value.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValueError(f"password must be at most {BCRYPT_MAX_BYTES} bytes")
    return value


class CamelModel(BaseModel):
    """Base for payloads exchanged in camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiResponse(CamelModel, Generic[DataT]):
    """Uniform response envelope."""

    status_code: int = 200
    data: DataT | None = None
    message: str


class UserRegister(CamelModel):
    """User registration request."""

    name: str = Field(..., min_length=1, max_length=100)
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)
    assigned_role: Role = "unset"

    @field_validator("password")
    @classmethod
    def validate_password_bytes(cls, value: str) -> str:
        return check_password_bytes(value)


class UserLogin(CamelModel):
    """User login request."""

    email_or_username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class TokenRefresh(CamelModel):
    """Token refresh request; the cookie takes precedence."""

    refresh_token: str | None = None


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class VerifyResetCodeRequest(CamelModel):
    otp: str = Field(..., min_length=1)
    email: EmailStr | None = None


class ResetPasswordRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)
    otp: str | None = None

    @field_validator("password")
    @classmethod
    def validate_password_bytes(cls, value: str) -> str:
        return check_password_bytes(value)


class RoleAssign(CamelModel):
    user_id: str
    role: Role


class UserResponse(CamelModel):
    """Public view of a user. Never carries the password hash."""

    id: str
    name: str
    username: str
    email: str
    assigned_role: str
    created_at: str


class TokenPairResponse(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class LoginResponse(TokenPairResponse):
    user: UserResponse


class ResetCodeResponse(CamelModel):
    email_sent: bool
