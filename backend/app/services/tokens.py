"""Access and refresh token issuance."""
from dataclasses import dataclass
from datetime import datetime, timedelta
import hashlib
import secrets

from jose import JWTError, jwt

from app.config import get_settings
from app.errors import InvalidToken, IssuanceError

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_BYTES = 32


@dataclass(frozen=True)
class TokenPair:
    """Access/refresh pair minted for one user."""

    access_token: str
    refresh_token: str


def create_access_token(user_id: str, expires_delta: timedelta | None = None) -> str:
    """Create a signed JWT access token for a user."""
    settings = get_settings()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode = {"sub": user_id, "exp": expire, "type": ACCESS_TOKEN_TYPE}
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def generate_refresh_token() -> str:
    """Create an opaque, URL-safe refresh token (256 bits of randomness)."""
    return secrets.token_urlsafe(REFRESH_TOKEN_BYTES)


def hash_token(value: str) -> str:
    """Hash a token or code before persisting or looking it up."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def issue_tokens(user_id: str) -> TokenPair:
    """Mint an access/refresh pair, or raise IssuanceError.

    Either both tokens are produced or neither is returned.
    """
    settings = get_settings()
    if not settings.secret_key:
        raise IssuanceError("signing key unavailable")

    try:
        access_token = create_access_token(user_id)
        refresh_token = generate_refresh_token()
    except Exception as exc:
        raise IssuanceError(f"token generation failed: {exc}") from exc

    if not access_token or not refresh_token:
        raise IssuanceError("access token or refresh token generation failed")

    return TokenPair(access_token=access_token, refresh_token=refresh_token)


def decode_access_token(token: str, verify_exp: bool = True) -> str:
    """Return the user id claimed by an access token.

    With ``verify_exp=False`` an expired but correctly signed token is still
    accepted, which lets the refresh flow learn who is asking.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
            options={"verify_exp": verify_exp},
        )
    except JWTError:
        raise InvalidToken("Invalid or expired access token")

    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise InvalidToken("Invalid token type")

    user_id = payload.get("sub")
    if not user_id:
        raise InvalidToken("Invalid access token")
    return user_id
