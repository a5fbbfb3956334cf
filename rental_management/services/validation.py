from __future__ import annotations

import re

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9._-]{3,20}$")
EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9+_.-]+@(.+)$")
MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_LENGTH = 50


def is_blank(value: str | None) -> bool:
    return not (value or "").strip()


def is_valid_username(username: str | None) -> bool:
    return bool(username) and USERNAME_PATTERN.match(username.strip()) is not None


def is_valid_email(email: str | None) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email.strip()) is not None


def is_valid_password(password: str | None) -> bool:
    return password is not None and MIN_PASSWORD_LENGTH <= len(password) <= MAX_PASSWORD_LENGTH


def is_valid_full_name(full_name: str | None) -> bool:
    return full_name is not None and 2 <= len(full_name.strip()) <= 100


def is_valid_rent_days(days: int, max_days: int = 365) -> bool:
    return isinstance(days, int) and not isinstance(days, bool) and 1 <= days <= max_days


def is_valid_daily_rate(rate: float, max_rate: float = 10000.0) -> bool:
    return 0 < rate <= max_rate


def sanitize_input(value: str | None) -> str:
    """Collapse line breaks, commas and runs of whitespace into single spaces."""
    cleaned = re.sub(r"[,\r\n]", " ", (value or "").strip())
    return re.sub(r"\s+", " ", cleaned).strip()


def validate_registration(username: str, password: str, full_name: str, email: str) -> str | None:
    if not is_valid_username(username):
        return "Username must be 3-20 characters and contain only letters, numbers, dots, underscores, or hyphens."
    if not is_valid_password(password):
        return f"Password must be between {MIN_PASSWORD_LENGTH}-{MAX_PASSWORD_LENGTH} characters."
    if not is_valid_full_name(full_name):
        return "Full name must be 2-100 characters."
    if not is_valid_email(email):
        return "Invalid email format."
    return None
