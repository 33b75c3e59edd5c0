"""Shared data transfer objects for users, messages and change feeds."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple


@dataclass(frozen=True)
class UserDTO:
    id: int
    name: str
    last_name: str
    email: str
    image: str = ""
    push_token: Optional[str] = None

    @property
    def display_name(self) -> str:
        return f"{self.name} {self.last_name}".strip()


@dataclass(frozen=True)
class MessageDTO:
    sender_id: int
    receiver_id: int
    body: str
    sent_at: datetime
    id: Optional[int] = None

    def sort_key(self) -> Tuple[datetime, int]:
        # unstored messages sort before stored ones sharing the same timestamp
        return (as_utc(self.sent_at), self.id if self.id is not None else -1)


class ChangeType(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass(frozen=True)
class ChangeDTO:
    type: ChangeType
    message: MessageDTO


@dataclass(frozen=True)
class ChangeBatchDTO:
    changes: Tuple[ChangeDTO, ...] = field(default_factory=tuple)

    def added(self) -> Tuple[MessageDTO, ...]:
        return tuple(c.message for c in self.changes if c.type is ChangeType.ADDED)

    def last_id(self) -> Optional[int]:
        ids = [c.message.id for c in self.changes if c.message.id is not None]
        return max(ids) if ids else None


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
