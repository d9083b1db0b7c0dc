from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.orm import Session
from datetime import datetime
import logging

from ..database import get_db
from ..config import settings
from ..models.audit_log import AuditAction
from ..models.user import User
from ..schemas.user import LoginRequest, Token, RefreshTokenRequest, UserResponse
from ..services.audit_service import log_activity
from ..utils.security import verify_password, create_access_token, create_refresh_token, verify_refresh_token
from ..utils.rate_limiter import limiter
from ..utils.dependencies import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


def _issue_tokens(user: User) -> Token:
    claims = {"sub": user.id, "role": user.role}
    return Token(
        access_token=create_access_token(claims),
        refresh_token=create_refresh_token({"sub": user.id}),
    )


@router.post("/login", response_model=Token)
@router.post("/login/", response_model=Token)
@limiter.limit(settings.login_rate_limit)
async def login(
    request: Request,
    credentials: LoginRequest,
    db: Session = Depends(get_db)
):
    """Exchange email and password for an access / refresh token pair"""
    email = credentials.email.strip().lower()
    user = db.query(User).filter(User.email == email).first()

    if not user or not verify_password(credentials.password, user.hashed_password):
        logger.warning(f"Failed login for {email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is disabled",
        )

    user.last_login = datetime.utcnow()
    db.commit()

    log_activity(db, user, AuditAction.LOGIN, "users", user.id, request=request)
    return _issue_tokens(user)


@router.post("/refresh", response_model=Token)
async def refresh_token(
    token_data: RefreshTokenRequest,
    db: Session = Depends(get_db)
):
    payload = verify_refresh_token(token_data.refresh_token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        )

    user = db.query(User).filter(User.id == payload.get("sub")).first()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return _issue_tokens(user)


@router.get("/me", response_model=UserResponse)
async def read_current_user(current_user: User = Depends(get_current_user)):
    return current_user
