"""Shared utility functions."""
import re
from datetime import datetime
from typing import Optional

from .dto import as_utc

EMAIL_PATTERN = re.compile(r"[A-Za-z0-9._%+\-]+@[A-Za-z0-9\-]+(\.[A-Za-z0-9\-]+)*\.[A-Za-z]{2,}")


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.fullmatch(email.strip()))


def validate_sign_up(
    name: str,
    last_name: str,
    email: str,
    password: str,
    confirm_password: str,
    image: Optional[str],
) -> Optional[str]:
    """Return the first problem with the sign-up form, or None if it is complete."""
    if not image:
        return "Please select your image"
    if not name.strip():
        return "Please Enter your First Name"
    if not last_name.strip():
        return "Please Enter your Last Name"
    if not email.strip():
        return "Please Enter your Email"
    if not is_valid_email(email):
        return "Please Enter a valid Email"
    if not password.strip():
        return "Please Enter your Password"
    if not confirm_password.strip():
        return "Please Confirm Password"
    if password != confirm_password:
        return "Password and Confirm Password must be the same"
    return None


def validate_sign_in(email: str, password: str) -> Optional[str]:
    if not email.strip():
        return "Please Enter your Email"
    if not is_valid_email(email):
        return "Please Enter a valid Email"
    if not password.strip():
        return "Please Enter your Password"
    return None


def readable_datetime(value: datetime) -> str:
    """Format a message timestamp in local time, e.g. ``Mar 05, 2024 - 09:41 PM``."""
    return as_utc(value).astimezone().strftime("%b %d, %Y - %I:%M %p")
