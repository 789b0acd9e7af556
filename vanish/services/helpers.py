from __future__ import annotations
import re
import secrets
import string

from vanish.domain.models import PASTE_ID_LENGTH


# URL-safe alphabet, same 64 symbols nanoid uses.
ID_ALPHABET = string.ascii_letters + string.digits + "_-"

_ID_PATTERN = re.compile(rf"[A-Za-z0-9_-]{{{PASTE_ID_LENGTH}}}")


def generate_paste_id(length: int = PASTE_ID_LENGTH) -> str:
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(length))


def is_valid_paste_id(value: str) -> bool:
    return _ID_PATTERN.fullmatch(value) is not None


def build_share_url(base_url: str, paste_id: str) -> str:
    return f"{base_url.rstrip('/')}/?id={paste_id}"
