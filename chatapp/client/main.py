"""Console client for the chat application."""
import base64
import sys
from pathlib import Path
from typing import Dict, List, Optional, Set

import requests

from .config import DEFAULT_SERVER_URL
from .gui.app import ChatController, describe_error
from .storage import is_signed_in
from .sync import ViewUpdate
from ..shared.dto import MessageDTO, UserDTO
from ..shared.utils import readable_datetime


def encode_image_file(path: str) -> Optional[str]:
    file = Path(path).expanduser()
    if not path or not file.is_file():
        return None
    return base64.b64encode(file.read_bytes()).decode()


class ConsoleChat:
    """Interactive console front end over ChatController."""

    def __init__(self, controller: ChatController):
        self.controller = controller
        self.peer: Optional[UserDTO] = None
        self._shown: Set[Optional[int]] = set()

    def sign_up(self) -> bool:
        print("=== Sign up ===")
        name = input("First name: ").strip()
        last_name = input("Last name: ").strip()
        email = input("Email: ").strip()
        password = input("Password: ").strip()
        confirm = input("Confirm password: ").strip()
        image = encode_image_file(input("Profile image path: ").strip())
        try:
            self.controller.sign_up(name, last_name, email, password, confirm, image)
        except (ValueError, RuntimeError, requests.RequestException) as exc:
            print(describe_error(exc))
            return False
        print(f"Welcome, {name}!")
        return True

    def sign_in(self) -> bool:
        print("=== Sign in ===")
        email = input("Email: ").strip()
        password = input("Password: ").strip()
        try:
            response = self.controller.sign_in(email, password)
        except (ValueError, RuntimeError, requests.RequestException) as exc:
            print(describe_error(exc))
            return False
        print(f"Welcome, {response['user']['name']}!")
        return True

    def list_users(self) -> Dict[int, UserDTO]:
        try:
            users = self.controller.list_users()
        except (RuntimeError, requests.RequestException) as exc:
            print(f"Could not fetch users: {describe_error(exc)}")
            return {}
        if not users:
            print("No user available")
            return {}
        for u in users:
            print(f"- {u.id}: {u.display_name} ({u.email})")
        return {u.id: u for u in users}

    def _format(self, message: MessageDTO) -> str:
        peer_name = self.peer.name if self.peer else "them"
        who = "(you)" if message.sender_id == self.controller.user_id else peer_name
        return f"[{readable_datetime(message.sent_at)}] {who}: {message.body}"

    def _print_update(self, update: ViewUpdate) -> None:
        if update.first_population:
            self._shown = set()
        for message in update.messages:
            if message.id not in self._shown:
                self._shown.add(message.id)
                print(self._format(message))

    def start_chat(self) -> None:
        users = self.list_users()
        if not users:
            return
        raw = input("Chat with user id: ").strip()
        peer = users.get(int(raw)) if raw.isdigit() else None
        if not peer:
            print("User not found.")
            return
        self.peer = peer
        print(f"=== {peer.display_name} === (type a message, /b to go back)")
        handle = self.controller.open_conversation(peer.id, listener=self._print_update)
        try:
            while True:
                text = input()
                if text.strip() == "/b":
                    break
                if text.strip():
                    handle.send(text)
        finally:
            handle.close()
            self.peer = None
            self._shown = set()

    def sign_out(self) -> bool:
        return self.controller.sign_out()


def user_menu(chat: ConsoleChat) -> None:
    while True:
        print("\nUser menu: [u]sers, [c]hat, [o] sign out")
        sub = input("> ").strip().lower()
        if sub == "o":
            if chat.sign_out():
                return
        if sub == "u":
            chat.list_users()
        if sub == "c":
            chat.start_chat()


def main(argv: Optional[List[str]] = None) -> None:
    argv = sys.argv[1:] if argv is None else argv
    print("Chat Client")
    controller = ChatController(notify=print)
    if argv:
        controller.set_base_url(argv[0])
    elif not controller.base_url:
        server_url = input(f"Server URL [{DEFAULT_SERVER_URL}]: ").strip() or DEFAULT_SERVER_URL
        controller.set_base_url(server_url)
    chat = ConsoleChat(controller)

    if is_signed_in() and controller.user:
        controller.update_push_token()
        user_menu(chat)

    while True:
        print("\nMenu: sign [u]p, sign [i]n, [q]uit")
        choice = input("> ").strip().lower()
        if choice == "q":
            sys.exit(0)
        if choice == "u" and chat.sign_up():
            user_menu(chat)
        if choice == "i" and chat.sign_in():
            user_menu(chat)


if __name__ == "__main__":
    main()
