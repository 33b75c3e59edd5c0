import pytest
import requests

from chatapp.client import storage
from chatapp.client.gui.app import ChatController, describe_error

ADA = {"id": 1, "name": "Ada", "last_name": "Lovelace", "email": "ada@example.com", "image": "aW1n", "push_token": None}
BOB = {"id": 2, "name": "Bob", "last_name": "Builder", "email": "bob@example.com", "image": "", "push_token": "t"}


class FakeAPI:
    def __init__(self):
        self.calls = []
        self.fail = set()

    def _call(self, name, *args):
        self.calls.append((name, args))
        if name in self.fail:
            raise requests.ConnectionError(f"{name} failed")

    def register(self, payload):
        self._call("register", payload)
        return {"token": "tok-ada", "user": ADA}

    def login(self, email, password):
        self._call("login", email, password)
        return {"token": "tok-ada", "user": ADA}

    def update_push_token(self, token):
        self._call("update_push_token", token)
        return ADA

    def delete_push_token(self):
        self._call("delete_push_token")
        return ADA

    def list_users(self):
        self._call("list_users")
        return [ADA, BOB]


@pytest.fixture
def fake_api():
    return FakeAPI()


@pytest.fixture
def toasts():
    return []


@pytest.fixture
def controller(fake_api, toasts):
    return ChatController(base_url="http://chat.test", notify=toasts.append, api_factory=lambda url: fake_api)


def test_sign_up_validation_stops_before_any_request(controller, fake_api):
    with pytest.raises(ValueError, match="Please select your image"):
        controller.sign_up("Ada", "Lovelace", "ada@example.com", "pw", "pw", None)
    with pytest.raises(ValueError, match="Please Enter a valid Email"):
        controller.sign_up("Ada", "Lovelace", "ada-at-example", "pw", "pw", "aW1n")
    with pytest.raises(ValueError, match="must be the same"):
        controller.sign_up("Ada", "Lovelace", "ada@example.com", "pw", "other", "aW1n")

    assert fake_api.calls == []


def test_sign_up_stores_session_and_registers_push_token(controller, fake_api, toasts):
    controller.sign_up(" Ada ", "Lovelace", "ada@example.com", "pw", "pw", "aW1n")

    assert fake_api.calls[0][1][0]["name"] == "Ada"
    assert fake_api.calls[1] == ("update_push_token", (storage.get_device_token(),))
    assert storage.get_token() == "tok-ada"
    assert storage.is_signed_in()
    assert controller.user_id == 1
    assert toasts == ["Token update successful"]


def test_push_token_failure_is_reported_but_sign_in_succeeds(controller, fake_api, toasts):
    fake_api.fail.add("update_push_token")

    controller.sign_in("ada@example.com", "pw")

    assert controller.user == ADA
    assert toasts == ["Unable to update Token"]


def test_sign_in_failure_raises(controller, fake_api):
    fake_api.fail.add("login")

    with pytest.raises(requests.RequestException):
        controller.sign_in("ada@example.com", "pw")

    assert storage.get_token() is None


def test_sign_out_keeps_session_when_token_removal_fails(controller, fake_api, toasts):
    controller.sign_in("ada@example.com", "pw")
    fake_api.fail.add("delete_push_token")

    assert controller.sign_out() is False

    assert storage.get_token() == "tok-ada"
    assert toasts[-2:] == ["Signing Out ...", "Unable to sign out"]


def test_sign_out_clears_session(controller):
    controller.sign_in("ada@example.com", "pw")

    assert controller.sign_out() is True

    assert controller.user is None
    assert storage.get_token() is None
    assert not storage.is_signed_in()


def test_list_users_excludes_current_user(controller):
    controller.sign_in("ada@example.com", "pw")

    users = controller.list_users()

    assert [u.id for u in users] == [2]
    assert users[0].display_name == "Bob Builder"


def test_open_conversation_requires_sign_in(controller):
    with pytest.raises(RuntimeError):
        controller.open_conversation(2)


def test_controller_without_server_is_not_ready(toasts):
    controller = ChatController(notify=toasts.append, api_factory=lambda url: FakeAPI())

    with pytest.raises(RuntimeError):
        controller.list_users()
    assert controller.update_push_token() is False


def test_describe_error_prefers_server_detail():
    response = requests.Response()
    response.status_code = 400
    response._content = b'{"detail": "Email already registered"}'

    assert describe_error(requests.HTTPError(response=response)) == "Email already registered"
    assert describe_error(ValueError("Please Enter your Email")) == "Please Enter your Email"


def test_device_token_is_stable():
    assert storage.get_device_token() == storage.get_device_token()
