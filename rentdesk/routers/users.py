from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ..database import get_db
from ..errors import ConflictError
from ..models.audit_log import AuditAction
from ..models.user import User, UserRole
from ..schemas.user import UserCreate, UserResponse
from ..services.audit_service import log_activity
from ..utils.dependencies import require_admin, require_staff
from ..utils.security import hash_password

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("", response_model=List[UserResponse])
@router.get("/", response_model=List[UserResponse])
async def list_users(
    role: Optional[UserRole] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff)
):
    """Staff list, used to pick cleaners and maintenance assignees"""
    query = db.query(User).filter(User.is_active == True)  # noqa: E712
    if role:
        query = query.filter(User.role == role.value)
    return query.order_by(User.first_name).all()


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    email = user_data.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise ConflictError("Email already registered", {"email": email})

    user = User(
        email=email,
        hashed_password=hash_password(user_data.password),
        first_name=user_data.first_name,
        last_name=user_data.last_name,
        phone=user_data.phone,
        role=user_data.role.value,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    log_activity(db, current_user, AuditAction.CREATE, "users", user.id, {
        "email": user.email,
        "role": user.role,
    })
    return user
