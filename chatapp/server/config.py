"""Server configuration values."""
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent
DATABASE_URL = os.getenv("CHATAPP_DATABASE_URL", f"sqlite:///{BASE_DIR / 'chatapp.db'}")
TOKEN_EXPIRY_MINUTES = int(os.getenv("CHATAPP_TOKEN_EXPIRY_MINUTES", str(60 * 24)))
WATCH_KEEPALIVE_SECONDS = float(os.getenv("CHATAPP_WATCH_KEEPALIVE_SECONDS", "15"))
LOG_FILE = "server.log"
