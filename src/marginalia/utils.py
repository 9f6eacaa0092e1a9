import hashlib
from datetime import UTC, datetime


def now() -> datetime:
    return datetime.now(UTC)


def sha256_hex(value: str | bytes) -> str:
    data = value.encode() if isinstance(value, str) else value
    return hashlib.sha256(data).hexdigest()
