import secrets
import string
import time
from datetime import datetime, timezone

NONCE_ALPHABET = string.ascii_letters + string.digits


def random_string(length: int = 16) -> str:
    """Random alphanumeric string, used as the signature nonce."""
    return "".join(secrets.choice(NONCE_ALPHABET) for _ in range(length))


def get_timestamp_ms() -> int:
    return int(time.time() * 1000)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
