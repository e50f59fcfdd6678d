"""Authentication API endpoints."""
from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.deps import get_access_token, get_current_user, get_db
from app.config import get_settings
from app.errors import Conflict, InvalidToken
from app.models.user import User
from app.schemas.auth import (
    ApiResponse,
    ForgotPasswordRequest,
    LoginResponse,
    ResetCodeResponse,
    ResetPasswordRequest,
    TokenPairResponse,
    TokenRefresh,
    UserLogin,
    UserRegister,
    UserResponse,
    VerifyResetCodeRequest,
)
from app.services import password_reset, session_store, sessions
from app.services.passwords import get_password_hash
from app.services.tokens import TokenPair, decode_access_token

router = APIRouter(prefix="/auth", tags=["auth"])
settings = get_settings()


def set_auth_cookies(response: Response, tokens: TokenPair) -> None:
    """Issue secure HttpOnly access and refresh cookies."""
    response.set_cookie(
        key=settings.access_cookie_name,
        value=tokens.access_token,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
        max_age=settings.access_token_expire_minutes * 60,
    )
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=tokens.refresh_token,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
        path=settings.refresh_cookie_path,
        max_age=settings.refresh_token_expire_days * 24 * 60 * 60,
    )


def clear_auth_cookies(response: Response) -> None:
    """Clear access and refresh cookies."""
    response.delete_cookie(
        key=settings.access_cookie_name,
        secure=settings.cookie_secure,
        httponly=True,
        samesite=settings.cookie_samesite,
    )
    response.delete_cookie(
        key=settings.refresh_cookie_name,
        path=settings.refresh_cookie_path,
        secure=settings.cookie_secure,
        httponly=True,
        samesite=settings.cookie_samesite,
    )


def get_request_ip(request: Request) -> str | None:
    """Extract best-effort client IP for session metadata."""
    xff = request.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


def resolve_claimed_user(db: Session, access_token: str | None, refresh_token: str) -> str | None:
    """Work out which user a refresh request speaks for.

    An access token (expired or not) names the user; without one, the user
    the refresh token was issued to is used.
    """
    if access_token:
        try:
            return decode_access_token(access_token, verify_exp=False)
        except InvalidToken:
            pass
    return session_store.find_session_owner(db, refresh_token)


@router.post("/register", response_model=ApiResponse[UserResponse], status_code=status.HTTP_201_CREATED)
def register(user_data: UserRegister, db: Session = Depends(get_db)):
    """Register a new user."""
    existing = db.query(User).filter(
        (User.username == user_data.username) | (User.email == user_data.email)
    ).first()
    if existing:
        raise Conflict()

    user = User(
        name=user_data.name,
        username=user_data.username,
        email=user_data.email,
        password_hash=get_password_hash(user_data.password),
        assigned_role=user_data.assigned_role,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict()
    db.refresh(user)

    return ApiResponse[UserResponse](
        status_code=status.HTTP_201_CREATED,
        data=UserResponse.model_validate(user),
        message="User registered successfully",
    )


@router.post("/login", response_model=ApiResponse[LoginResponse])
def login(
    credentials: UserLogin,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    """Login and get tokens."""
    user, tokens = sessions.login(
        db,
        credentials.email_or_username,
        credentials.password,
        user_agent=request.headers.get("user-agent"),
        ip_address=get_request_ip(request),
    )
    set_auth_cookies(response, tokens)

    return ApiResponse[LoginResponse](
        data=LoginResponse(
            user=UserResponse.model_validate(user),
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
        ),
        message="Login successful",
    )


@router.post("/refresh", response_model=ApiResponse[TokenPairResponse])
def refresh_tokens(
    request: Request,
    response: Response,
    payload: TokenRefresh | None = None,
    access_token: str | None = Depends(get_access_token),
    db: Session = Depends(get_db),
):
    """Rotate the refresh token presented in the cookie or request body."""
    presented = request.cookies.get(settings.refresh_cookie_name) or (
        payload.refresh_token if payload else None
    )
    claimed_user_id = resolve_claimed_user(db, access_token, presented) if presented else None

    _, tokens = sessions.refresh(
        db,
        presented,
        claimed_user_id,
        user_agent=request.headers.get("user-agent"),
        ip_address=get_request_ip(request),
    )
    set_auth_cookies(response, tokens)

    return ApiResponse[TokenPairResponse](
        data=TokenPairResponse(access_token=tokens.access_token, refresh_token=tokens.refresh_token),
        message="Access token refreshed successfully",
    )


@router.post("/logout", response_model=ApiResponse[dict])
def logout(
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Logout and revoke all refresh sessions for the current user."""
    sessions.logout(db, current_user.id)
    clear_auth_cookies(response)
    return ApiResponse[dict](data={}, message="User logged out successfully")


@router.post("/password/forgot", response_model=ApiResponse[ResetCodeResponse])
def forgot_password(body: ForgotPasswordRequest, db: Session = Depends(get_db)):
    """Email a six-digit reset code."""
    dispatch = password_reset.request_reset_code(db, body.email)
    message = (
        "Reset password code sent to your email address"
        if dispatch.email_sent
        else "Reset password code issued, but the email could not be delivered"
    )
    return ApiResponse[ResetCodeResponse](
        data=ResetCodeResponse(email_sent=dispatch.email_sent),
        message=message,
    )


@router.post("/password/verify", response_model=ApiResponse[dict])
def verify_reset_code(body: VerifyResetCodeRequest, db: Session = Depends(get_db)):
    """Check a reset code without consuming it."""
    password_reset.verify_reset_code(db, body.otp, body.email)
    return ApiResponse[dict](data={}, message="OTP verified successfully")


@router.post("/password/reset", response_model=ApiResponse[dict])
def reset_password(
    body: ResetPasswordRequest,
    response: Response,
    db: Session = Depends(get_db),
):
    """Set a new password and sign the account out everywhere."""
    password_reset.reset_password(db, body.email, body.password, body.otp)
    clear_auth_cookies(response)
    return ApiResponse[dict](data={}, message="Password reset successfully")
