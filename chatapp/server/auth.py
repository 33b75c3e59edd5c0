"""Authentication and authorization utilities and routes."""
from datetime import datetime, timedelta
from typing import Dict, Optional

import bcrypt
import secrets
from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from . import schemas
from ..shared.logging_config import configure_logging
from ..shared.schemas import UserRecord
from ..shared.utils import is_valid_email
from .config import LOG_FILE, TOKEN_EXPIRY_MINUTES
from .database import get_db
from .models import User

router = APIRouter(prefix="/auth", tags=["auth"])
logger = configure_logging("chatapp.server", LOG_FILE)

# In-memory token store: token -> {"user_id": int, "expires": datetime}
TOKEN_STORE: Dict[str, Dict[str, datetime | int]] = {}


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def issue_token(user_id: int) -> str:
    token = secrets.token_urlsafe(32)
    TOKEN_STORE[token] = {"user_id": user_id, "expires": datetime.utcnow() + timedelta(minutes=TOKEN_EXPIRY_MINUTES)}
    return token


@router.post("/register", response_model=schemas.SessionResponse)
def register(payload: schemas.RegisterRequest, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    if not is_valid_email(email):
        raise HTTPException(status_code=400, detail="Invalid email")
    if db.query(User).filter(User.email == email).first():
        logger.info("REGISTER_FAIL email=%s reason=exists", email)
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        name=payload.name.strip(),
        last_name=payload.last_name.strip(),
        email=email,
        password_hash=hash_password(payload.password),
        image=payload.image,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("REGISTER_SUCCESS email=%s user_id=%s", email, user.id)
    return schemas.SessionResponse(token=issue_token(user.id), user=UserRecord.model_validate(user))


@router.post("/login", response_model=schemas.SessionResponse)
def login(payload: schemas.LoginRequest, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    user: Optional[User] = db.query(User).filter(User.email == email).first()
    if not user:
        logger.info("LOGIN_FAIL email=%s reason=not_found", email)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if not bcrypt.checkpw(payload.password.encode(), user.password_hash.encode()):
        logger.info("LOGIN_FAIL email=%s reason=bad_password", email)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    logger.info("LOGIN_SUCCESS email=%s user_id=%s", email, user.id)
    return schemas.SessionResponse(token=issue_token(user.id), user=UserRecord.model_validate(user))


def _validate_token(header: str | None) -> int:
    if not header or not header.startswith("Bearer "):
        logger.warning("UNAUTHORIZED_ACCESS reason=missing_token")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")
    token = header.split(" ", 1)[1]
    token_data = TOKEN_STORE.get(token)
    if not token_data:
        logger.warning("UNAUTHORIZED_ACCESS reason=unknown_token")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    if token_data["expires"] < datetime.utcnow():
        logger.warning("UNAUTHORIZED_ACCESS reason=expired_token")
        TOKEN_STORE.pop(token, None)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    return int(token_data["user_id"])


def get_current_user_id(authorization: str | None = Header(default=None)) -> int:
    """FastAPI dependency returning authenticated user's id."""
    return _validate_token(authorization)
