"""Room ids, display names and shareable invite links."""

from __future__ import annotations

import secrets
import string
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

ROOM_ID_ALPHABET = string.ascii_uppercase + string.digits
ROOM_ID_LENGTH = 8
INVITE_PARAM = "id"

_ADJECTIVES = ("Happy", "Sleepy", "Grumpy", "Dopey", "Bashful", "Sneezy", "Doc")


def generate_room_id(length: int = ROOM_ID_LENGTH) -> str:
    """Return a random uppercase alphanumeric room id."""
    return "".join(secrets.choice(ROOM_ID_ALPHABET) for _ in range(length))


def generate_display_name() -> str:
    """Return a throwaway display name such as ``Sleepy4821``."""
    return f"{secrets.choice(_ADJECTIVES)}{1000 + secrets.randbelow(9000)}"


def build_invite_url(base_url: str, room_id: str) -> str:
    """Add the room id to *base_url* as the ``id`` query parameter.

    Existing query parameters are kept; an existing ``id`` is replaced.
    """
    if not room_id:
        raise ValueError("room_id must not be empty")
    parts = urlsplit(base_url)
    query = [
        (k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != INVITE_PARAM
    ]
    query.append((INVITE_PARAM, room_id))
    return urlunsplit(parts._replace(query=urlencode(query)))


def room_id_from_url(url: str) -> str | None:
    """Extract the room id from an invite link, or ``None`` if it has none."""
    for key, value in parse_qsl(urlsplit(url).query):
        if key == INVITE_PARAM and value.strip():
            return value.strip()
    return None
