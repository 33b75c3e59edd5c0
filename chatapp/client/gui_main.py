"""Launch the desktop chat client: sign-in window first, then contacts and chat."""
from .gui.windows import ChatApplication


def main() -> None:
    ChatApplication().run()


if __name__ == "__main__":
    main()
