"""Change feed consumer: reads the server-sent event stream on a background thread."""
import json
import threading
from typing import Callable, Iterable, Iterator, List, Optional, Tuple, Union

import requests
from pydantic import ValidationError

from . import config
from ..shared.dto import ChangeBatchDTO
from ..shared.logging_config import configure_logging
from ..shared.schemas import ChangeBatchRecord

logger = configure_logging("chatapp.client", config.LOG_FILE)

BatchCallback = Callable[[ChangeBatchDTO], None]
ErrorCallback = Callable[[Exception], None]


class WatchError(Exception):
    """Error reported by the server on an open change feed."""


def iter_events(lines: Iterable[Union[str, bytes, None]]) -> Iterator[Tuple[str, str]]:
    """Group text/event-stream lines into (event, data) pairs."""
    event = "message"
    data: List[str] = []
    for line in lines:
        if line is None:
            continue
        if isinstance(line, bytes):
            line = line.decode("utf-8")
        if line == "":
            if data:
                yield event, "\n".join(data)
            event, data = "message", []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            event = value
        elif field == "data":
            data.append(value)


class Watch:
    """A live query over one (sender, receiver) direction of the chat collection.

    The watch owns reconnection: after a dropped connection it reports the
    error, waits ``retry_seconds`` and resumes after the highest message id it
    has delivered, so records are never delivered twice. A 4xx answer ends the
    watch for good.
    """

    def __init__(
        self,
        api,
        sender_id: int,
        receiver_id: int,
        on_batch: BatchCallback,
        on_error: ErrorCallback,
        retry_seconds: float = config.WATCH_RETRY_SECONDS,
    ):
        self.api = api
        self.sender_id = sender_id
        self.receiver_id = receiver_id
        self.on_batch = on_batch
        self.on_error = on_error
        self.retry_seconds = retry_seconds
        self.cursor = 0
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._response: Optional[requests.Response] = None
        self._thread = threading.Thread(
            target=self._run, name=f"watch-{sender_id}-{receiver_id}", daemon=True
        )

    @property
    def active(self) -> bool:
        return self._thread.is_alive() and not self._cancelled.is_set()

    def start(self) -> "Watch":
        self._thread.start()
        return self

    def cancel(self) -> None:
        self._cancelled.set()
        with self._lock:
            response, self._response = self._response, None
        if response is not None:
            response.close()

    def join(self, timeout: Optional[float] = None) -> None:
        self._thread.join(timeout)

    def _run(self) -> None:
        while not self._cancelled.is_set():
            try:
                response = self.api.open_watch(self.sender_id, self.receiver_id, after=self.cursor)
            except requests.HTTPError as exc:
                status = exc.response.status_code if exc.response is not None else None
                self.on_error(exc)
                if status is not None and 400 <= status < 500:
                    logger.warning(
                        "WATCH_REJECTED sender_id=%s receiver_id=%s status=%s", self.sender_id, self.receiver_id, status
                    )
                    return
                self._cancelled.wait(self.retry_seconds)
                continue
            except requests.RequestException as exc:
                self.on_error(exc)
                self._cancelled.wait(self.retry_seconds)
                continue

            with self._lock:
                if self._cancelled.is_set():
                    response.close()
                    return
                self._response = response
            try:
                self._consume(response)
            except Exception as exc:  # noqa: BLE001
                if self._cancelled.is_set():
                    return
                self.on_error(exc)
            else:
                if not self._cancelled.is_set():
                    self.on_error(WatchError("Change feed closed by server"))
            finally:
                with self._lock:
                    self._response = None
                response.close()

            if not self._cancelled.is_set():
                logger.info(
                    "WATCH_RECONNECT sender_id=%s receiver_id=%s cursor=%s", self.sender_id, self.receiver_id, self.cursor
                )
                self._cancelled.wait(self.retry_seconds)

    def _consume(self, response: requests.Response) -> None:
        for event, data in iter_events(response.iter_lines(decode_unicode=True)):
            if self._cancelled.is_set():
                return
            if event == "error":
                try:
                    detail = json.loads(data).get("detail", data)
                except (ValueError, AttributeError):
                    detail = data
                self.on_error(WatchError(detail))
                continue
            if event != "changes":
                continue
            try:
                batch = ChangeBatchRecord.model_validate_json(data).to_dto()
            except ValidationError as exc:
                self.on_error(exc)
                continue
            last_id = batch.last_id()
            if last_id is not None:
                self.cursor = max(self.cursor, last_id)
            self.on_batch(batch)
