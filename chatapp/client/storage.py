"""Local client storage for the session and device settings."""
import json
import secrets
from typing import Any, Dict, Optional

from . import config


def load_state() -> Dict[str, Any]:
    if config.STATE_FILE.exists():
        with config.STATE_FILE.open("r", encoding="utf-8") as f:
            return json.load(f)
    return {}


def save_state(data: Dict[str, Any]) -> None:
    config.STATE_FILE.parent.mkdir(parents=True, exist_ok=True)
    with config.STATE_FILE.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def store_auth(token: str, user: Dict[str, Any]) -> None:
    state = load_state()
    state["token"] = token
    state["user"] = user
    state["is_signed_in"] = True
    save_state(state)


def clear_auth() -> None:
    state = load_state()
    for key in ["token", "user", "is_signed_in"]:
        state.pop(key, None)
    save_state(state)


def get_token() -> Optional[str]:
    return load_state().get("token")


def get_user() -> Optional[Dict[str, Any]]:
    return load_state().get("user")


def is_signed_in() -> bool:
    return bool(load_state().get("is_signed_in"))


def store_server_url(url: str) -> None:
    state = load_state()
    state["server_url"] = url
    save_state(state)


def get_server_url() -> Optional[str]:
    return load_state().get("server_url")


def get_device_token() -> str:
    """Return this installation's push registration token, creating it once."""
    state = load_state()
    token = state.get("device_token")
    if not token:
        token = secrets.token_urlsafe(24)
        state["device_token"] = token
        save_state(state)
    return token
