import os
import tempfile
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Tuple

_TMP = tempfile.mkdtemp(prefix="chatapp-tests-")
os.environ.setdefault("CHATAPP_DATABASE_URL", "sqlite://")
os.environ.setdefault("CHATAPP_LOG_DIR", _TMP)
os.environ.setdefault("CHATAPP_STATE_FILE", os.path.join(_TMP, "state.json"))

import pytest  # noqa: E402

from chatapp.shared.dto import ChangeBatchDTO, ChangeDTO, ChangeType, MessageDTO  # noqa: E402


def at(minute: int, second: int = 0) -> datetime:
    return datetime(2024, 3, 5, 10, minute, second, tzinfo=timezone.utc)


def make_message(id: int, sender_id: int, receiver_id: int, sent_at: datetime, body: str = "") -> MessageDTO:
    return MessageDTO(id=id, sender_id=sender_id, receiver_id=receiver_id, body=body or f"m{id}", sent_at=sent_at)


def batch(*messages: MessageDTO, change_type: ChangeType = ChangeType.ADDED) -> ChangeBatchDTO:
    return ChangeBatchDTO(changes=tuple(ChangeDTO(type=change_type, message=m) for m in messages))


class FakeSubscription:
    def __init__(self):
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeStore:
    """In-memory MessageStore; tests push batches into the open watches by hand."""

    def __init__(self):
        self.watchers: Dict[Tuple[int, int], tuple] = {}
        self.inserted: List[MessageDTO] = []
        self.insert_gate = threading.Event()
        self.insert_gate.set()
        self.insert_attempted = threading.Event()
        self.fail_inserts = False
        self._next_id = 1

    def insert(self, message: MessageDTO) -> MessageDTO:
        self.insert_gate.wait(5)
        try:
            if self.fail_inserts:
                raise ConnectionError("store unreachable")
            stored = replace(message, id=self._next_id)
            self._next_id += 1
            self.inserted.append(stored)
            return stored
        finally:
            self.insert_attempted.set()

    def watch(self, sender_id, receiver_id, on_batch, on_error):
        subscription = FakeSubscription()
        self.watchers[(sender_id, receiver_id)] = (on_batch, on_error, subscription)
        return subscription

    def get_all(self, sender_id, receiver_id):
        return [m for m in self.inserted if (m.sender_id, m.receiver_id) == (sender_id, receiver_id)]

    def push(self, sender_id: int, receiver_id: int, change_batch: ChangeBatchDTO) -> None:
        on_batch, _, _ = self.watchers[(sender_id, receiver_id)]
        on_batch(change_batch)

    def fail(self, sender_id: int, receiver_id: int, exc: Exception) -> None:
        _, on_error, _ = self.watchers[(sender_id, receiver_id)]
        on_error(exc)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture(autouse=True)
def state_file(tmp_path, monkeypatch):
    from chatapp.client import config

    path = tmp_path / "state.json"
    monkeypatch.setattr(config, "STATE_FILE", path)
    return path
