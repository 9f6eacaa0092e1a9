"""Text to anchor token normalization."""

import re

FALLBACK_SLUG = "node"
MAX_SOURCE_LENGTH = 80

_WHITESPACE_RE = re.compile(r"\s+")
_ENTITY_RE = re.compile(r"&[a-z0-9#]+;", re.IGNORECASE)
_DISALLOWED_RE = re.compile(r"[^a-z0-9\s-]")
_HYPHENS_RE = re.compile(r"-+")


def slugify(text: str, fallback: str = FALLBACK_SLUG) -> str:
    """Normalize text into a token of lowercase ASCII letters, digits and hyphens.

    The text is whitespace-collapsed and cut to MAX_SOURCE_LENGTH characters
    before normalization. Non-ASCII letters are dropped rather than transliterated.

    Args:
        text: Arbitrary source text
        fallback: Token returned when nothing survives normalization

    Returns:
        Slug such as "getting-started", or the fallback
    """
    source = _WHITESPACE_RE.sub(" ", text).strip()[:MAX_SOURCE_LENGTH]
    slug = source.lower()
    slug = _ENTITY_RE.sub(" ", slug)
    slug = _DISALLOWED_RE.sub(" ", slug)
    slug = _WHITESPACE_RE.sub("-", slug)
    slug = _HYPHENS_RE.sub("-", slug).strip("-")
    return slug or fallback
