import re
import unicodedata

from marginalia.core.modules.anchor.models import GENERAL_ANCHOR
from marginalia.errors import ValidationError

AUTHOR_NAME_MAX_LENGTH = 50
BODY_MAX_LENGTH = 2000
ANCHOR_ID_MAX_LENGTH = 120

ANCHOR_ID_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_author_name(author_name: str) -> str:
    """NFC-normalize, collapse whitespace runs and trim."""
    return _WHITESPACE_RE.sub(" ", unicodedata.normalize("NFC", author_name)).strip()


def validate_author_name(author_name: str) -> str:
    """Return the normalized author name.

    Raises:
        ValidationError: If the normalized name is empty or longer than 50 characters
    """
    normalized = normalize_author_name(author_name)
    if not 1 <= len(normalized) <= AUTHOR_NAME_MAX_LENGTH:
        raise ValidationError(f"author_name must be 1-{AUTHOR_NAME_MAX_LENGTH} characters")
    return normalized


def validate_body(body: str) -> str:
    """Return the trimmed body.

    Raises:
        ValidationError: If the trimmed body is empty or longer than 2000 characters
    """
    trimmed = body.strip()
    if not 1 <= len(trimmed) <= BODY_MAX_LENGTH:
        raise ValidationError(f"body must be 1-{BODY_MAX_LENGTH} characters")
    return trimmed


def validate_anchor_id(anchor_id: str | None) -> str:
    """Return the trimmed anchor id, defaulting blank ids to the general anchor.

    Anchor ids only ever contain lowercase letters, digits and single hyphens.

    Raises:
        ValidationError: If the id is too long or could never be produced by anchoring
    """
    trimmed = (anchor_id or "").strip()
    if not trimmed:
        return GENERAL_ANCHOR
    if len(trimmed) > ANCHOR_ID_MAX_LENGTH:
        raise ValidationError(f"anchor_id must be 1-{ANCHOR_ID_MAX_LENGTH} characters")
    if not ANCHOR_ID_RE.fullmatch(trimmed):
        raise ValidationError(f"Invalid anchor_id format: '{trimmed}'")
    return trimmed
