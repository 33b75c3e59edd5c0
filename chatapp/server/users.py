"""User listing and push token routes."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from . import schemas
from ..shared.logging_config import configure_logging
from ..shared.schemas import UserRecord
from .auth import get_current_user_id
from .config import LOG_FILE
from .database import get_db
from .models import User

router = APIRouter(prefix="/users", tags=["users"])
logger = configure_logging("chatapp.server", LOG_FILE)


def _get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("", response_model=List[UserRecord])
def list_users(db: Session = Depends(get_db), _: int = Depends(get_current_user_id)):
    return db.query(User).order_by(User.id).all()


@router.put("/me/push_token", response_model=UserRecord)
def update_push_token(
    payload: schemas.PushTokenRequest,
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    user = _get_user(db, current_user_id)
    user.push_token = payload.token
    db.commit()
    logger.info("PUSH_TOKEN_UPDATED user_id=%s", user.id)
    return user


@router.delete("/me/push_token", response_model=UserRecord)
def delete_push_token(db: Session = Depends(get_db), current_user_id: int = Depends(get_current_user_id)):
    user = _get_user(db, current_user_id)
    user.push_token = None
    db.commit()
    logger.info("PUSH_TOKEN_DELETED user_id=%s", user.id)
    return user
