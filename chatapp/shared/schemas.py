"""Wire records shared by the server routes and the client store."""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from .dto import ChangeBatchDTO, ChangeDTO, ChangeType, MessageDTO, UserDTO, as_utc


class UserRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    last_name: str
    email: str
    image: str = ""
    push_token: Optional[str] = None

    def to_dto(self) -> UserDTO:
        return UserDTO(
            id=self.id,
            name=self.name,
            last_name=self.last_name,
            email=self.email,
            image=self.image,
            push_token=self.push_token,
        )


class MessageRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sender_id: int
    receiver_id: int
    body: str
    sent_at: datetime

    @field_validator("sent_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    def to_dto(self) -> MessageDTO:
        return MessageDTO(
            id=self.id,
            sender_id=self.sender_id,
            receiver_id=self.receiver_id,
            body=self.body,
            sent_at=self.sent_at,
        )


class ChangeRecord(BaseModel):
    type: ChangeType
    message: MessageRecord


class ChangeBatchRecord(BaseModel):
    changes: List[ChangeRecord] = []

    @classmethod
    def added(cls, messages: List[MessageRecord]) -> "ChangeBatchRecord":
        return cls(changes=[ChangeRecord(type=ChangeType.ADDED, message=m) for m in messages])

    def to_dto(self) -> ChangeBatchDTO:
        return ChangeBatchDTO(changes=tuple(ChangeDTO(type=c.type, message=c.message.to_dto()) for c in self.changes))
