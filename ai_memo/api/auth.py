"""Google sign-in and session users.

The session cookie stores the signed-in user; ``id`` is the Google account
id (``sub``) and owns notes, drafts and the onboarding profile. Sign-in can be
limited with ``ALLOWED_EMAILS``, and admin routes with ``ADMIN_EMAILS``.
"""

import logging
from functools import lru_cache
from typing import Any

from authlib.integrations.starlette_client import OAuth, OAuthError
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, ValidationError
from starlette.status import HTTP_401_UNAUTHORIZED, HTTP_403_FORBIDDEN

from ai_memo.config import get_settings

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])

SESSION_KEY = "user"
GOOGLE_METADATA_URL = "https://accounts.google.com/.well-known/openid-configuration"


class AuthenticatedUser(BaseModel):
    """User stored in the session."""

    id: str
    email: str
    name: str = ""
    picture: str | None = None


@lru_cache
def get_oauth() -> OAuth:
    settings = get_settings()
    oauth = OAuth()
    oauth.register(
        name="google",
        client_id=settings.google_oauth_client_id,
        client_secret=settings.google_oauth_client_secret,
        server_metadata_url=GOOGLE_METADATA_URL,
        client_kwargs={"scope": "openid email profile"},
    )
    return oauth


def get_current_user(request: Request) -> AuthenticatedUser | None:
    """Session user, or None when nobody (or a malformed session) is signed in."""
    data = request.session.get(SESSION_KEY)
    if not data:
        return None
    try:
        return AuthenticatedUser.model_validate(data)
    except ValidationError:
        logger.warning("Discarding malformed session user")
        return None


def require_auth(request: Request) -> AuthenticatedUser:
    """Dependency for routes that need a signed-in user.

    Raises:
        HTTPException: 401 if not authenticated.
    """
    user = get_current_user(request)
    if user is None:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return user


def require_admin(user: AuthenticatedUser = Depends(require_auth)) -> AuthenticatedUser:
    """Dependency for admin routes.

    Raises:
        HTTPException: 401 if not authenticated, 403 if not an admin.
    """
    if user.email.lower() not in get_settings().admin_emails_list:
        raise HTTPException(status_code=HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


def is_email_allowed(email: str) -> bool:
    """Whether ``email`` may sign in. An empty allow-list admits everyone."""
    allowed = get_settings().allowed_emails_list
    return not allowed or email.lower() in allowed


def _user_from_token(token: dict[str, Any]) -> AuthenticatedUser:
    userinfo = token.get("userinfo") or {}
    if not userinfo.get("sub"):
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Failed to get user info")
    if not userinfo.get("email"):
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Email not provided")
    return AuthenticatedUser(
        id=userinfo["sub"],
        email=userinfo["email"],
        name=userinfo.get("name", ""),
        picture=userinfo.get("picture"),
    )


@router.get("/login")
async def login(request: Request):
    redirect_uri = request.url_for("auth_callback")
    return await get_oauth().google.authorize_redirect(request, redirect_uri)


@router.get("/callback")
async def auth_callback(request: Request):
    """Finish Google sign-in and store the user in the session."""
    try:
        token = await get_oauth().google.authorize_access_token(request)
    except OAuthError as e:
        logger.error(f"OAuth error: {e}")
        raise HTTPException(
            status_code=HTTP_401_UNAUTHORIZED,
            detail=f"Authentication failed: {e.description}",
        ) from e

    user = _user_from_token(token)
    if not is_email_allowed(user.email):
        logger.warning(f"Sign-in refused for {user.email}")
        raise HTTPException(
            status_code=HTTP_403_FORBIDDEN,
            detail="접근이 거부되었습니다. 허용된 이메일 주소가 아닙니다.",
        )

    request.session[SESSION_KEY] = user.model_dump()
    logger.info(f"User signed in: id={user.id}")
    return RedirectResponse(url="/", status_code=302)


@router.get("/logout")
async def logout(request: Request):
    request.session.clear()
    return RedirectResponse(url="/auth/login", status_code=302)


@router.get("/me", response_model=AuthenticatedUser)
async def get_me(user: AuthenticatedUser = Depends(require_auth)) -> AuthenticatedUser:
    return user
