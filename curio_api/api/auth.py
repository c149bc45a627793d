"""
Authentication API endpoints and the caller dependencies used by every router.

- get_current_user: any valid, active account
- get_optional_caller: anonymous allowed
- get_active_caller: like get_current_user, but banned accounts are refused
- require_admin: active admin only
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel, EmailStr
from sqlalchemy.orm import Session

from ..core.caller import Caller
from ..core.config import settings
from ..core.database import get_db
from ..core.exceptions import AuthenticationError, ForbiddenError
from ..core.security import create_access_token, decode_token
from ..models.user import User, UserRole
from ..services.user_service import UserService

router = APIRouter()
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class RegisterRequest(BaseModel):
    email: EmailStr
    username: str
    password: str
    full_name: str
    role: UserRole = UserRole.USER


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


class UserResponse(BaseModel):
    id: int
    email: str
    username: str
    full_name: str
    bio: Optional[str] = None
    profile_image: Optional[str] = None
    role: UserRole
    is_banned: bool
    is_active: bool
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True


def _resolve_user(token: Optional[str], db: Session) -> Optional[User]:
    if not token:
        return None
    payload = decode_token(token)
    if not payload:
        return None
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        return None
    return db.query(User).filter(User.id == user_id).first()


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> Caller:
    """Resolve the bearer token into a Caller."""
    if not token:
        raise AuthenticationError("Not authenticated")
    user = _resolve_user(token, db)
    if user is None:
        raise AuthenticationError("Invalid or expired token")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")
    return Caller.from_user(user)


async def get_optional_caller(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> Optional[Caller]:
    """Caller when a valid token is present, otherwise None."""
    user = _resolve_user(token, db)
    if user is None or not user.is_active:
        return None
    return Caller.from_user(user)


async def get_active_caller(caller: Caller = Depends(get_current_user)) -> Caller:
    """Banned accounts can still read but cannot change anything."""
    if caller.is_banned:
        raise ForbiddenError("Your account has been banned")
    return caller


async def require_admin(caller: Caller = Depends(get_active_caller)) -> Caller:
    if not caller.is_admin:
        raise ForbiddenError("Admin access required")
    return caller


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, user_service: UserService = Depends()):
    """Register a new account as a reader or an author."""
    return await user_service.register(
        email=request.email,
        username=request.username,
        password=request.password,
        full_name=request.full_name,
        role=request.role
    )


@router.post("/login", response_model=LoginResponse)
async def login(request: LoginRequest, user_service: UserService = Depends()):
    """Authenticate with email and password."""
    user = await user_service.authenticate(request.email, request.password)
    access_token = create_access_token(data={"sub": str(user.id), "role": UserRole(user.role).value})
    return LoginResponse(
        access_token=access_token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    )


@router.get("/me", response_model=UserResponse)
async def get_me(
    caller: Caller = Depends(get_current_user),
    user_service: UserService = Depends()
):
    """Get the authenticated user's profile."""
    return await user_service.get_by_id(caller.id)


@router.put("/change-password")
async def change_password(
    request: ChangePasswordRequest,
    caller: Caller = Depends(get_active_caller),
    user_service: UserService = Depends()
):
    await user_service.change_password(caller, request.current_password, request.new_password)
    return {"message": "Password changed successfully"}
