"""FastAPI application entrypoint for the chat server."""
import uvicorn
from fastapi import FastAPI

from . import auth, messages, users
from ..shared.logging_config import configure_logging
from .config import LOG_FILE
from .database import init_db

logger = configure_logging("chatapp.server", LOG_FILE)

# Create tables
init_db()

app = FastAPI(title="Chat Server", version="1.0.0")
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(messages.router)


@app.get("/")
def root():
    return {"status": "ok"}


def run() -> None:
    uvicorn.run("chatapp.server.main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    run()
