"""Authentication routes."""

from datetime import datetime

from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel, Field

from gigboard.api.auth import (
    AUTH_COOKIE_NAME,
    CurrentUser,
    create_access_token,
    hash_password,
    verify_password,
)
from gigboard.api.context import AppContext, Context
from gigboard.api import rate_limit
from gigboard.errors import NotFoundError, UnauthorizedError
from gigboard.logging_config import get_logger, log_auth_event
from gigboard.market.common import new_id
from gigboard.market.users import User

logger = get_logger("gigboard.api.auth")
router = APIRouter(prefix="/auth", tags=["auth"])

INVALID_CREDENTIALS = "Invalid email or password"


class UserRegister(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=6, max_length=64)


class UserLogin(BaseModel):
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1, max_length=64)


class UserInfo(BaseModel):
    id: str
    name: str
    email: str
    role: str
    created_at: datetime


class LoginResponse(BaseModel):
    """Token plus profile; the token is also set as an httpOnly cookie."""

    user: UserInfo
    access_token: str
    token_type: str = "bearer"


def to_user_info(user: User) -> UserInfo:
    return UserInfo(id=user.id, name=user.name, email=user.email, role=user.role, created_at=user.created_at)


def _set_auth_cookie(response: Response, token: str, ctx: AppContext) -> None:
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=token,
        max_age=ctx.settings.jwt_expire_minutes * 60,
        httponly=True,
        secure=ctx.settings.cookie_secure,
        samesite="strict",
        path="/",
    )


@router.post("/register", response_model=LoginResponse, status_code=status.HTTP_201_CREATED)
@rate_limit.limit("5/minute")
async def register(request: Request, response: Response, body: UserRegister, ctx: Context):
    """Create an account and sign in."""
    user = User(
        id=new_id(),
        name=body.name,
        email=body.email,
        password_hash=hash_password(body.password),
    )
    try:
        await ctx.users.save(user)
    except Exception:
        log_auth_event("register", None, success=False, email=user.email)
        raise

    token = create_access_token(user, ctx.settings)
    _set_auth_cookie(response, token, ctx)
    log_auth_event("register", user.id, email=user.email)
    return LoginResponse(user=to_user_info(user), access_token=token)


@router.post("/login", response_model=LoginResponse)
@rate_limit.limit("10/minute")
async def login(request: Request, response: Response, body: UserLogin, ctx: Context):
    user = await ctx.users.get_by_email(body.email)
    if user is None or not verify_password(body.password, user.password_hash):
        log_auth_event("login", user.id if user else None, success=False, reason="bad_credentials")
        raise UnauthorizedError(INVALID_CREDENTIALS)

    token = create_access_token(user, ctx.settings)
    _set_auth_cookie(response, token, ctx)
    log_auth_event("login", user.id)
    return LoginResponse(user=to_user_info(user), access_token=token)


@router.post("/logout")
async def logout(response: Response, auth: CurrentUser, ctx: Context):
    """Clear the auth cookie. Bearer tokens simply expire."""
    response.delete_cookie(
        key=AUTH_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=ctx.settings.cookie_secure,
        samesite="strict",
    )
    log_auth_event("logout", auth.user_id)
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserInfo)
async def me(auth: CurrentUser, ctx: Context):
    """Profile of the signed-in user."""
    user = await ctx.users.get(auth.user_id)
    if user is None:
        raise NotFoundError("User not found")
    return to_user_info(user)
