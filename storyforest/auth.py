"""
Local session authentication.

Passwords are stored as salted werkzeug hashes. A successful register or
login creates a row in ``sessions`` and hands its random id to the
browser as an HttpOnly cookie; API clients may send the same token as
``Authorization: Bearer <token>``.

Endpoints under /api:
- POST  /register      : create an account and log in
- POST  /login         : log in
- POST  /logout        : drop the current session
- GET   /user          : the logged-in account
- PATCH /user/privacy  : toggle whether the account's libraries are public
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from . import storage
from .config import get_settings
from .database import get_db
from .models import LoginRequest, PrivacyUpdate, SuccessResponse, UserCreate, UserOut
from .tables import Session as SessionRow
from .tables import User


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return check_password_hash(password_hash, password)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def create_session(db: Session, user: User) -> SessionRow:
    """Open a new session for ``user``, pruning every expired one."""
    now = datetime.now(timezone.utc)
    db.execute(
        delete(SessionRow)
        .where(SessionRow.expires_at <= now)
        .execution_options(synchronize_session=False)
    )
    row = SessionRow(
        sid=secrets.token_urlsafe(32),
        user_id=user.id,
        expires_at=now + timedelta(days=get_settings().session_ttl_days),
    )
    db.add(row)
    db.commit()
    return row


def _set_session_cookie(response: Response, session_row: SessionRow) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.session_cookie_name,
        value=session_row.sid,
        max_age=settings.session_ttl_days * 24 * 60 * 60,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )


def _session_token(request: Request) -> Optional[str]:
    token = request.cookies.get(get_settings().session_cookie_name)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    """The user behind the request's session, or ``None``.

    Expired sessions are deleted when they are seen.
    """
    token = _session_token(request)
    if not token:
        return None
    row = db.get(SessionRow, token)
    if row is None:
        return None
    if _as_utc(row.expires_at) <= datetime.now(timezone.utc):
        db.delete(row)
        db.commit()
        return None
    return storage.get_user(db, row.user_id)


def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user


@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register(req: UserCreate, response: Response, db: Session = Depends(get_db)):
    if storage.get_user_by_username(db, req.username.strip()) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already exists")
    try:
        user = storage.create_user(db, req, hash_password(req.password))
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already exists")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    _set_session_cookie(response, create_session(db, user))
    return user


@router.post("/login", response_model=UserOut)
def login(req: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = storage.get_user_by_username(db, req.username.strip())
    if user is None or not verify_password(req.password, user.password):
        logger.info("Failed login for %r", req.username)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password")
    _set_session_cookie(response, create_session(db, user))
    return user


@router.post("/logout", response_model=SuccessResponse)
def logout(request: Request, response: Response, db: Session = Depends(get_db)):
    token = _session_token(request)
    if token:
        row = db.get(SessionRow, token)
        if row is not None:
            db.delete(row)
            db.commit()
    response.delete_cookie(get_settings().session_cookie_name)
    return SuccessResponse()


@router.get("/user", response_model=UserOut)
def current_user(user: User = Depends(get_current_user)):
    return user


@router.patch("/user/privacy", response_model=UserOut)
def update_privacy(
    req: PrivacyUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return storage.set_user_privacy(db, user, req.is_public)
