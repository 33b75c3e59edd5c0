"""HTTP API client for interacting with the chat server."""
from datetime import datetime
from typing import Any, Dict, List

import requests

from . import config
from .storage import get_token


class APIClient:
    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip("/")

    def _headers(self) -> Dict[str, str]:
        token = get_token()
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def register(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        resp = requests.post(f"{self.base_url}/auth/register", json=payload, timeout=config.REQUEST_TIMEOUT)
        resp.raise_for_status()
        return resp.json()

    def login(self, email: str, password: str) -> Dict[str, Any]:
        resp = requests.post(
            f"{self.base_url}/auth/login",
            json={"email": email, "password": password},
            timeout=config.REQUEST_TIMEOUT,
        )
        resp.raise_for_status()
        return resp.json()

    def list_users(self) -> List[Dict[str, Any]]:
        resp = requests.get(f"{self.base_url}/users", headers=self._headers(), timeout=config.REQUEST_TIMEOUT)
        resp.raise_for_status()
        return resp.json()

    def update_push_token(self, token: str) -> Dict[str, Any]:
        resp = requests.put(
            f"{self.base_url}/users/me/push_token",
            json={"token": token},
            headers=self._headers(),
            timeout=config.REQUEST_TIMEOUT,
        )
        resp.raise_for_status()
        return resp.json()

    def delete_push_token(self) -> Dict[str, Any]:
        resp = requests.delete(
            f"{self.base_url}/users/me/push_token", headers=self._headers(), timeout=config.REQUEST_TIMEOUT
        )
        resp.raise_for_status()
        return resp.json()

    def send_message(self, receiver_id: int, body: str, sent_at: datetime) -> Dict[str, Any]:
        payload = {"receiver_id": receiver_id, "body": body, "sent_at": sent_at.isoformat()}
        resp = requests.post(
            f"{self.base_url}/chat", json=payload, headers=self._headers(), timeout=config.REQUEST_TIMEOUT
        )
        resp.raise_for_status()
        return resp.json()

    def get_messages(self, sender_id: int, receiver_id: int) -> List[Dict[str, Any]]:
        resp = requests.get(
            f"{self.base_url}/chat",
            params={"sender_id": sender_id, "receiver_id": receiver_id},
            headers=self._headers(),
            timeout=config.REQUEST_TIMEOUT,
        )
        resp.raise_for_status()
        return resp.json()

    def open_watch(self, sender_id: int, receiver_id: int, after: int = 0) -> requests.Response:
        """Open the change feed stream; the caller owns and closes the response."""
        headers = self._headers()
        headers["Accept"] = "text/event-stream"
        resp = requests.get(
            f"{self.base_url}/chat/watch",
            params={"sender_id": sender_id, "receiver_id": receiver_id, "after": after},
            headers=headers,
            stream=True,
            timeout=(config.REQUEST_TIMEOUT, config.WATCH_READ_TIMEOUT),
        )
        try:
            resp.raise_for_status()
        except requests.HTTPError:
            resp.close()
            raise
        return resp
