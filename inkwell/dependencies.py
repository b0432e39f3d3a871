"""
FastAPI dependencies: backend accessors and the session auth gate.

The backends live on app.state so an application instance can be built
against any storage / session / file backend (see inkwell.main.create_app).
"""
from typing import Optional

from fastapi import Depends, HTTPException, Request, Response, status

from inkwell.config import Settings
from inkwell.sessions import SessionStore
from inkwell.storage import Storage
from inkwell.uploads import FileStorage


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_file_storage(request: Request) -> FileStorage:
    return request.app.state.file_storage


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.session_cookie_name,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )


async def get_session(
    request: Request,
    settings: Settings = Depends(get_settings),
    sessions: SessionStore = Depends(get_session_store),
) -> Optional[tuple[str, int]]:
    """(token, user id) of a live session cookie, or None. Does not touch the cookie."""
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        return None
    user_id = await sessions.resolve(token)
    if user_id is None:
        return None
    return token, user_id


async def get_current_user_id(
    response: Response,
    session: Optional[tuple[str, int]] = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> Optional[int]:
    """Resolve the session cookie to a user id, renewing it; None if anonymous."""
    if session is None:
        return None
    token, user_id = session
    set_session_cookie(response, token, settings)
    return user_id


async def require_session(session: Optional[tuple[str, int]] = Depends(get_session)) -> tuple[str, int]:
    """Like require_auth, for routes that end the session instead of renewing it."""
    if session is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return session


async def require_auth(user_id: Optional[int] = Depends(get_current_user_id)) -> int:
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user_id
