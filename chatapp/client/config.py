"""Client configuration values."""
import os
from pathlib import Path

STATE_FILE = Path(os.getenv("CHATAPP_STATE_FILE", str(Path.home() / ".chatapp_client.json")))
DEFAULT_SERVER_URL = "http://127.0.0.1:8000"
REQUEST_TIMEOUT = float(os.getenv("CHATAPP_REQUEST_TIMEOUT", "10"))
# read timeout for the change feed; must exceed the server keep-alive interval
WATCH_READ_TIMEOUT = float(os.getenv("CHATAPP_WATCH_READ_TIMEOUT", "60"))
WATCH_RETRY_SECONDS = float(os.getenv("CHATAPP_WATCH_RETRY_SECONDS", "2"))
LOG_FILE = "client.log"
