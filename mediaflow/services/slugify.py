# mediaflow/services/slugify.py
import re
from typing import Callable, Optional

_INVALID_CHARS = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_HYPHENS = re.compile(r"-+")


def normalize_slug(name: str, max_length: Optional[int] = None) -> str:
    """Turn a display name into a URL-safe slug.

    Empty input gives an empty slug; callers pick their own fallback.
    """
    if not name:
        return ""
    slug = _INVALID_CHARS.sub("", name.lower())
    slug = _WHITESPACE.sub("-", slug)
    slug = _HYPHENS.sub("-", slug).strip("-")
    if max_length is not None:
        slug = slug[:max_length].strip("-")
    return slug


def ensure_unique_slug(base: str, exists_fn: Callable[[str], bool]) -> str:
    """Return ``base`` or the first free ``base-N`` (N >= 2).

    Only lowers the odds of a collision: the store's unique constraint
    has the final say at insert time.
    """
    if not exists_fn(base):
        return base

    counter = 2
    while True:
        candidate = f"{base}-{counter}"
        if not exists_fn(candidate):
            return candidate
        counter += 1
