from __future__ import annotations

from typing import Iterable, Optional

CUSTOMER_PREFIX = "C"
ADMIN_PREFIX = "A"
EQUIPMENT_PREFIX = "E"
RENTAL_PREFIX = "R"


def parse_sequence(identifier: str | None, prefix: str) -> Optional[int]:
    value = (identifier or "").strip()
    if not value.startswith(prefix):
        return None
    digits = value[len(prefix):]
    if not digits.isdigit():
        return None
    return int(digits)


def max_sequence(identifiers: Iterable[str], prefix: str, floor: int = 0) -> int:
    max_seq = floor
    for identifier in identifiers:
        seq = parse_sequence(identifier, prefix)
        if seq is not None and seq > max_seq:
            max_seq = seq
    return max_seq


def format_identifier(prefix: str, number: int) -> str:
    return f"{prefix}{number:03d}"


def next_identifier(identifiers: Iterable[str], prefix: str, floor: int = 0) -> str:
    return format_identifier(prefix, max_sequence(identifiers, prefix, floor) + 1)
