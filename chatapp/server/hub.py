"""In-process change notification for open watch streams."""
import asyncio
from collections import defaultdict
from typing import DefaultDict, Set, Tuple

Key = Tuple[int, int]


class ChangeHub:
    """Wakes every watch stream whose (sender, receiver) filter matches an insert.

    Streams re-query the database when woken, so a wake-up carries no payload
    and several inserts may collapse into one batch.
    """

    def __init__(self) -> None:
        self._waiters: DefaultDict[Key, Set[asyncio.Event]] = defaultdict(set)

    def subscribe(self, sender_id: int, receiver_id: int) -> asyncio.Event:
        event = asyncio.Event()
        self._waiters[(sender_id, receiver_id)].add(event)
        return event

    def unsubscribe(self, sender_id: int, receiver_id: int, event: asyncio.Event) -> None:
        key = (sender_id, receiver_id)
        waiters = self._waiters.get(key)
        if waiters is None:
            return
        waiters.discard(event)
        if not waiters:
            del self._waiters[key]

    def publish(self, sender_id: int, receiver_id: int) -> int:
        waiters = self._waiters.get((sender_id, receiver_id), ())
        for event in waiters:
            event.set()
        return len(waiters)

    def watcher_count(self, sender_id: int, receiver_id: int) -> int:
        return len(self._waiters.get((sender_id, receiver_id), ()))


hub = ChangeHub()
