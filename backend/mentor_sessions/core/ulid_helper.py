"""ULID helpers for identifiers and caller identity checks."""

from typing import Optional

import ulid


def generate_ulid() -> str:
    return str(ulid.ULID())


def parse_ulid(ulid_str: str) -> Optional[ulid.ULID]:
    """Parse a ULID string; None when it is malformed."""
    try:
        return ulid.ULID.from_str(ulid_str)
    except (ValueError, TypeError):
        return None


def is_valid_ulid(ulid_str: str) -> bool:
    return parse_ulid(ulid_str) is not None
