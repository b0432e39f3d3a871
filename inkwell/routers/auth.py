"""
Account and session endpoints:
  POST /auth/register — create an account and sign in
  POST /auth/login    — sign in
  POST /auth/logout   — end the current session
  GET  /auth/me       — the signed-in user
  PUT  /auth/profile  — update profile settings
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.concurrency import run_in_threadpool
from opentelemetry import trace

from inkwell.config import Settings
from inkwell.dependencies import (
    clear_session_cookie,
    get_session_store,
    get_settings,
    get_storage,
    require_auth,
    require_session,
    set_session_cookie,
)
from inkwell.schemas import (
    LoginRequest,
    MessageResponse,
    ProfileUpdate,
    RegisterRequest,
    UserResponse,
)
from inkwell.security import hash_password, verify_password
from inkwell.sessions import SessionStore
from inkwell.storage import Storage
from inkwell.telemetry import AUTH_ATTEMPTS_TOTAL

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    response: Response,
    storage: Storage = Depends(get_storage),
    sessions: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings),
):
    """Create an account and immediately sign the new user in."""
    with tracer.start_as_current_span("register"):
        if await storage.get_user_by_email(body.email):
            AUTH_ATTEMPTS_TOTAL.labels(action="register", outcome="conflict").inc()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

        password_hash = await run_in_threadpool(hash_password, body.password)
        user = await storage.create_user(
            email=body.email,
            password_hash=password_hash,
            username=body.username,
            name=body.name,
        )
        token = await sessions.create(user.id)
        set_session_cookie(response, token, settings)

        AUTH_ATTEMPTS_TOTAL.labels(action="register", outcome="success").inc()
        logger.info("Registered user %s", user.id)
        return user


@router.post("/login", response_model=UserResponse)
async def login(
    body: LoginRequest,
    response: Response,
    storage: Storage = Depends(get_storage),
    sessions: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings),
):
    with tracer.start_as_current_span("login"):
        user = await storage.get_user_by_email(body.email)
        # Same answer for unknown email and wrong password.
        if user is None or not await run_in_threadpool(verify_password, body.password, user.password_hash):
            AUTH_ATTEMPTS_TOTAL.labels(action="login", outcome="failure").inc()
            logger.info("Failed login attempt")
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

        token = await sessions.create(user.id)
        set_session_cookie(response, token, settings)
        AUTH_ATTEMPTS_TOTAL.labels(action="login", outcome="success").inc()
        return user


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    session: tuple[str, int] = Depends(require_session),
    sessions: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings),
):
    token, user_id = session
    await sessions.revoke(token)
    clear_session_cookie(response, settings)
    logger.info("User %s logged out", user_id)
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserResponse)
async def me(user_id: int = Depends(require_auth), storage: Storage = Depends(get_storage)):
    user = await storage.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    body: ProfileUpdate,
    user_id: int = Depends(require_auth),
    storage: Storage = Depends(get_storage),
):
    """Update only the profile fields present in the request body."""
    user = await storage.update_user(user_id, body.model_dump(exclude_unset=True))
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user
