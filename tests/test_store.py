from datetime import datetime, timezone

from chatapp.client.store import RemoteMessageStore
from chatapp.shared.dto import MessageDTO


class FakeAPI:
    def __init__(self):
        self.sent = []

    def send_message(self, receiver_id, body, sent_at):
        self.sent.append((receiver_id, body, sent_at))
        return {"id": 11, "sender_id": 1, "receiver_id": receiver_id, "body": body, "sent_at": "2024-03-05T10:00:00"}

    def get_messages(self, sender_id, receiver_id):
        return [
            {"id": 3, "sender_id": sender_id, "receiver_id": receiver_id, "body": "x", "sent_at": "2024-03-05T09:00:00Z"}
        ]


def test_insert_returns_stored_copy_with_id():
    api = FakeAPI()
    sent_at = datetime(2024, 3, 5, 10, 0, tzinfo=timezone.utc)

    stored = RemoteMessageStore(api).insert(MessageDTO(sender_id=1, receiver_id=2, body="hi", sent_at=sent_at))

    assert api.sent == [(2, "hi", sent_at)]
    assert stored == MessageDTO(id=11, sender_id=1, receiver_id=2, body="hi", sent_at=sent_at)


def test_get_all_decodes_records():
    [message] = RemoteMessageStore(FakeAPI()).get_all(2, 1)

    assert (message.id, message.sender_id, message.receiver_id) == (3, 2, 1)
    assert message.sent_at.tzinfo is not None
