"""Message store interface used by the conversation synchronizer."""
from typing import List, Protocol

from .api import APIClient
from .watch import BatchCallback, ErrorCallback, Watch
from ..shared.dto import MessageDTO
from ..shared.schemas import MessageRecord


class Subscription(Protocol):
    def cancel(self) -> None:
        ...


class MessageStore(Protocol):
    def insert(self, message: MessageDTO) -> MessageDTO:
        ...

    def watch(
        self, sender_id: int, receiver_id: int, on_batch: BatchCallback, on_error: ErrorCallback
    ) -> Subscription:
        ...

    def get_all(self, sender_id: int, receiver_id: int) -> List[MessageDTO]:
        ...


class RemoteMessageStore:
    """MessageStore backed by the chat server's REST routes and change feed."""

    def __init__(self, api: APIClient):
        self.api = api

    def insert(self, message: MessageDTO) -> MessageDTO:
        # the server takes the sender from the session token
        data = self.api.send_message(message.receiver_id, message.body, message.sent_at)
        return MessageRecord.model_validate(data).to_dto()

    def watch(self, sender_id: int, receiver_id: int, on_batch: BatchCallback, on_error: ErrorCallback) -> Watch:
        return Watch(self.api, sender_id, receiver_id, on_batch, on_error).start()

    def get_all(self, sender_id: int, receiver_id: int) -> List[MessageDTO]:
        return [MessageRecord.model_validate(m).to_dto() for m in self.api.get_messages(sender_id, receiver_id)]
