"""User profile and role endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db
from app.errors import BadRequest, NotFound
from app.models.user import LEAD_ROLES, User
from app.schemas.auth import ApiResponse, RoleAssign, UserResponse

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=ApiResponse[UserResponse])
def get_profile(current_user: User = Depends(get_current_user)):
    """Get the current user's profile."""
    return ApiResponse[UserResponse](
        data=UserResponse.model_validate(current_user),
        message="User profile fetched successfully",
    )


@router.patch("/role", response_model=ApiResponse[UserResponse])
def assign_role(
    body: RoleAssign,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Assign a role to a user."""
    user = db.query(User).filter(User.id == body.user_id).first()
    if not user:
        raise NotFound()

    user.assigned_role = body.role
    db.commit()
    db.refresh(user)

    return ApiResponse[UserResponse](
        data=UserResponse.model_validate(user),
        message="Role updated successfully",
    )


@router.get("/leads", response_model=ApiResponse[list[UserResponse]])
def list_leads(
    role: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List project managers or team leads."""
    if role not in LEAD_ROLES:
        raise BadRequest("Invalid role")

    users = db.query(User).filter(User.assigned_role == role).order_by(User.username).all()
    return ApiResponse[list[UserResponse]](
        data=[UserResponse.model_validate(user) for user in users],
        message=f"{role} fetched successfully",
    )
