"""Conversation synchronizer: a live, time-ordered view of one two-party chat.

A conversation is the union of two directed message streams, local -> remote
and remote -> local. Each direction is watched separately; both watches feed
one serialized event queue, so batches are applied one at a time and the view
needs no locking.

After every batch the whole view is re-sorted by ``(sent_at, id)``. Batches may
arrive out of timestamp order or interleaved between the two watches; the full
re-sort keeps the view equal to the sorted union of everything observed. The
server-assigned ``id`` breaks timestamp ties.

Only additions are applied. Modified and removed changes are ignored, and a
view never goes back from populated to empty.

Errors on the conversation path are logged and dropped: a failed batch leaves
the view untouched, a failed send is not retried, and the watches reconnect on
their own.
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Tuple

from . import config
from .dispatch import EventQueue
from .store import MessageStore, Subscription
from ..shared.dto import ChangeBatchDTO, MessageDTO, utc_now
from ..shared.logging_config import configure_logging

logger = configure_logging("chatapp.client", config.LOG_FILE)


class ViewState(str, Enum):
    EMPTY = "empty"
    POPULATED = "populated"


@dataclass(frozen=True)
class ViewUpdate:
    messages: Tuple[MessageDTO, ...]
    added: int
    first_population: bool


Listener = Callable[[ViewUpdate], None]


class ConversationSynchronizer:
    def __init__(
        self,
        store: MessageStore,
        local_user_id: int,
        remote_user_id: int,
        listener: Optional[Listener] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        if local_user_id == remote_user_id:
            raise ValueError("Cannot open a conversation with yourself")
        self.store = store
        self.local_user_id = local_user_id
        self.remote_user_id = remote_user_id
        self.listener = listener
        self.clock = clock
        self.state = ViewState.EMPTY
        self._messages: List[MessageDTO] = []
        self._subscriptions: List[Subscription] = []
        self._events: Optional[EventQueue] = None
        self._sender: Optional[ThreadPoolExecutor] = None
        self._closed = False

    @property
    def messages(self) -> Tuple[MessageDTO, ...]:
        return tuple(self._messages)

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self) -> "ConversationSynchronizer":
        if self._closed:
            raise RuntimeError("Conversation is closed")
        if self._events is not None:
            raise RuntimeError("Conversation is already subscribed")
        pair = f"{self.local_user_id}-{self.remote_user_id}"
        self._events = EventQueue(name=f"conversation-{pair}")
        self._sender = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"send-{pair}")
        for sender_id, receiver_id in (
            (self.local_user_id, self.remote_user_id),
            (self.remote_user_id, self.local_user_id),
        ):
            self._subscriptions.append(
                self.store.watch(sender_id, receiver_id, self._deliver_batch, self._deliver_error)
            )
        logger.info("CONVERSATION_OPENED local_id=%s remote_id=%s", self.local_user_id, self.remote_user_id)
        return self

    def _deliver_batch(self, batch: ChangeBatchDTO) -> None:
        if self._events is not None:
            self._events.submit(self.on_change_event, batch)

    def _deliver_error(self, exc: Exception) -> None:
        if self._events is not None:
            self._events.submit(self.on_error, exc)

    def on_change_event(self, batch: ChangeBatchDTO) -> ViewUpdate:
        """Apply one batch from either watch and notify the listener."""
        if self._closed:
            return ViewUpdate(messages=tuple(self._messages), added=0, first_population=False)
        added = batch.added()
        if added:
            # built aside and swapped in, so a failure leaves the view as it was
            merged = sorted(self._messages + list(added), key=MessageDTO.sort_key)
            self._messages = merged
        first_population = bool(added) and self.state is ViewState.EMPTY
        if first_population:
            self.state = ViewState.POPULATED
        update = ViewUpdate(messages=tuple(self._messages), added=len(added), first_population=first_population)
        listener = self.listener
        if listener is not None:
            listener(update)
        return update

    def on_error(self, exc: Exception) -> None:
        logger.warning(
            "BATCH_DROPPED local_id=%s remote_id=%s error=%s", self.local_user_id, self.remote_user_id, exc
        )

    def send(self, body: str) -> None:
        """Queue a new message for the remote store and return without waiting."""
        message = MessageDTO(
            sender_id=self.local_user_id,
            receiver_id=self.remote_user_id,
            body=body,
            sent_at=self.clock(),
        )
        if self._closed or self._sender is None:
            logger.info("SEND_DROPPED local_id=%s remote_id=%s reason=not_open", self.local_user_id, self.remote_user_id)
            return
        self._sender.submit(self._insert, message)

    def _insert(self, message: MessageDTO) -> None:
        try:
            stored = self.store.insert(message)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "SEND_FAILED sender_id=%s receiver_id=%s error=%s", message.sender_id, message.receiver_id, exc
            )
            return
        logger.info("MESSAGE_SENT sender_id=%s receiver_id=%s message_id=%s", stored.sender_id, stored.receiver_id, stored.id)

    def flush(self) -> None:
        """Block until every batch delivered so far has been applied."""
        if self._events is not None:
            self._events.join()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.listener = None
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []
        if self._events is not None:
            self._events.stop()
        if self._sender is not None:
            self._sender.shutdown(wait=False)
        logger.info("CONVERSATION_CLOSED local_id=%s remote_id=%s", self.local_user_id, self.remote_user_id)

    def __enter__(self) -> "ConversationSynchronizer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def open_conversation(
    store: MessageStore, local_user_id: int, remote_user_id: int, listener: Optional[Listener] = None
) -> ConversationSynchronizer:
    """Start watching a conversation; the returned handle keeps its view current."""
    return ConversationSynchronizer(store, local_user_id, remote_user_id, listener=listener).subscribe()


def close_conversation(handle: ConversationSynchronizer) -> None:
    handle.close()
