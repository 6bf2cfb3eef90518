import logging
import time
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request
from passlib.context import CryptContext

from . import config, schemas
from .storage import Storage, get_storage

logger = logging.getLogger(__name__)

# Use pbkdf2_sha256 as default to avoid bcrypt 72-byte limitation in some envs
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")

ALGORITHM = "HS256"
EXP_SECONDS = 60 * 60 * 24 * 7  # 7 days
SESSION_MAX_AGE = 60 * 60 * 24  # 1 day
SESSION_KEY = "user_id"


def create_access_token(user: schemas.UserRead, expires_delta: Optional[int] = None) -> str:
    now = int(time.time())
    exp = now + (expires_delta or EXP_SECONDS)
    payload = {
        "sub": str(user.id),
        "username": user.username,
        "isAdmin": user.is_admin,
        "iat": now,
        "exp": exp,
    }
    return jwt.encode(payload, config.state.jwt_secret, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Decode and verify a token; raises jwt.PyJWTError when invalid or expired."""
    return jwt.decode(token, config.state.jwt_secret, algorithms=[ALGORITHM])


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def authenticate(storage: Storage, username: str, password: str) -> Optional[schemas.UserRecord]:
    user = storage.get_user_by_username(username)
    if not user or not verify_password(password, user.password_hash):
        logger.info("failed login for username=%s", username)
        return None
    return user


def login_session(request: Request, user: schemas.UserRead) -> None:
    request.session[SESSION_KEY] = user.id


def logout_session(request: Request) -> None:
    request.session.clear()


def _bearer_token(request: Request) -> Optional[str]:
    auth = request.headers.get("authorization")
    if auth and auth.lower().startswith("bearer "):
        return auth.split(None, 1)[1]
    return None


def resolve_user(request: Request, storage: Storage) -> Optional[schemas.UserRecord]:
    """Resolve the principal: session cookie first, then a bearer token."""
    session_uid = request.session.get(SESSION_KEY)
    if session_uid is not None:
        user = storage.get_user(int(session_uid))
        if user:
            return user
        # stale session (user gone or store reset)
        request.session.pop(SESSION_KEY, None)

    token = _bearer_token(request)
    if token is None:
        return None
    try:
        payload = decode_access_token(token)
        user_id = int(payload.get("sub"))
    except (jwt.PyJWTError, TypeError, ValueError):
        raise HTTPException(status_code=401, detail="invalid token")
    user = storage.get_user(user_id)
    if not user:
        raise HTTPException(status_code=401, detail="invalid token")
    return user


def current_user(request: Request, storage: Storage = Depends(get_storage)) -> Optional[schemas.UserRecord]:
    return resolve_user(request, storage)


def require_user(user: Optional[schemas.UserRecord] = Depends(current_user)) -> schemas.UserRecord:
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


def require_admin(user: schemas.UserRecord = Depends(require_user)) -> schemas.UserRecord:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Forbidden - Admin access required")
    return user
