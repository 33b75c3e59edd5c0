"""Application controller logic shared by the GUI and console clients."""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import requests

from .. import api, config
from ..storage import clear_auth, get_device_token, get_server_url, get_user, store_auth, store_server_url
from ..store import RemoteMessageStore
from ..sync import ConversationSynchronizer, Listener, open_conversation
from ...shared.dto import UserDTO
from ...shared.logging_config import configure_logging
from ...shared.schemas import UserRecord
from ...shared.utils import validate_sign_in, validate_sign_up

logger = configure_logging("chatapp.client", config.LOG_FILE)

Notifier = Callable[[str], None]


def describe_error(exc: Exception) -> str:
    """Turn a failed API call into a short message for the user."""
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        try:
            detail = exc.response.json().get("detail")
        except ValueError:
            detail = None
        if isinstance(detail, str):
            return detail
    return str(exc)


class ChatController:
    """Encapsulates network calls and session state for the clients.

    Account operations report their outcome through ``notify``, one message
    per remote call. Sign up and sign in raise on failure so the caller can
    keep the form open.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        notify: Optional[Notifier] = None,
        api_factory: Callable[[str], Any] = api.APIClient,
    ):
        self.api_factory = api_factory
        self.base_url = base_url or get_server_url() or ""
        self.api = api_factory(self.base_url) if self.base_url else None
        self.user: Optional[Dict[str, Any]] = get_user()
        self.notify: Notifier = notify or (lambda message: None)

    def set_base_url(self, url: str) -> None:
        self.base_url = url.rstrip("/")
        store_server_url(self.base_url)
        self.api = self.api_factory(self.base_url)

    def ensure_ready(self) -> None:
        if not self.api:
            raise RuntimeError("Server URL not configured")

    @property
    def user_id(self) -> Optional[int]:
        return self.user["id"] if self.user else None

    def sign_up(
        self, name: str, last_name: str, email: str, password: str, confirm_password: str, image: Optional[str]
    ) -> Dict[str, Any]:
        problem = validate_sign_up(name, last_name, email, password, confirm_password, image)
        if problem:
            raise ValueError(problem)
        self.ensure_ready()
        payload = {
            "name": name.strip(),
            "last_name": last_name.strip(),
            "email": email.strip(),
            "password": password,
            "image": image,
        }
        response = self.api.register(payload)
        logger.info("REGISTER_SUCCESS user_id=%s", response["user"]["id"])
        self._start_session(response)
        return response

    def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        problem = validate_sign_in(email, password)
        if problem:
            raise ValueError(problem)
        self.ensure_ready()
        response = self.api.login(email.strip(), password)
        logger.info("LOGIN_SUCCESS user_id=%s", response["user"]["id"])
        self._start_session(response)
        return response

    def _start_session(self, response: Dict[str, Any]) -> None:
        store_auth(response["token"], response["user"])
        self.user = response["user"]
        self.update_push_token()

    def update_push_token(self) -> bool:
        try:
            self.ensure_ready()
            self.api.update_push_token(get_device_token())
        except (requests.RequestException, RuntimeError) as exc:
            logger.warning("PUSH_TOKEN_UPDATE_FAIL user_id=%s error=%s", self.user_id, exc)
            self.notify("Unable to update Token")
            return False
        self.notify("Token update successful")
        return True

    def sign_out(self) -> bool:
        """Drop the push token remotely, then forget the session; keep it if the call fails."""
        self.notify("Signing Out ...")
        try:
            self.ensure_ready()
            self.api.delete_push_token()
        except (requests.RequestException, RuntimeError) as exc:
            logger.warning("SIGN_OUT_FAIL user_id=%s error=%s", self.user_id, exc)
            self.notify("Unable to sign out")
            return False
        logger.info("SIGN_OUT user_id=%s", self.user_id)
        clear_auth()
        self.user = None
        return True

    def list_users(self) -> List[UserDTO]:
        """Everyone but the signed-in user."""
        self.ensure_ready()
        users = [UserRecord.model_validate(u).to_dto() for u in self.api.list_users()]
        return [u for u in users if u.id != self.user_id]

    def open_conversation(self, peer_id: int, listener: Optional[Listener] = None) -> ConversationSynchronizer:
        self.ensure_ready()
        if self.user_id is None:
            raise RuntimeError("Not signed in")
        return open_conversation(RemoteMessageStore(self.api), self.user_id, peer_id, listener)


__all__ = ["ChatController", "describe_error"]
