"""Pydantic schemas for request and response bodies."""
from datetime import datetime

from pydantic import BaseModel, Field

from ..shared.schemas import UserRecord


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)
    image: str = ""


class LoginRequest(BaseModel):
    email: str
    password: str


class SessionResponse(BaseModel):
    token: str
    user: UserRecord


class PushTokenRequest(BaseModel):
    token: str = Field(..., min_length=1)


class MessageCreate(BaseModel):
    receiver_id: int
    body: str
    sent_at: datetime = Field(..., description="Client clock at send time")
