"""Address normalization and cache fingerprinting.

Two renderings of an address that differ only in letter case, runs of
whitespace, or spacing around commas normalize to the same string and
therefore to the same fingerprint::

    >>> normalize_address("1234  Main St ,Montreal ")
    '1234 main st, montreal'

The fingerprint is the SHA-256 hex digest of the UTF-8 normalized string, so
cache keys are always 64 characters and stable across process restarts.
"""

import hashlib
import re
import unicodedata

from directory_api.lib.geocoder.base import InvalidAddressError


_WHITESPACE_RE = re.compile(r"\s+")
_COMMA_RE = re.compile(r"\s*,\s*")


def clean_address(raw: str) -> str:
    """Collapse whitespace and trim, preserving case.

    This is the form sent upstream: providers get the caller's text minus
    layout noise.

    Raises:
        InvalidAddressError: If ``raw`` is not a string or is blank.
    """
    if not isinstance(raw, str):
        msg = "Address must be a string"
        raise InvalidAddressError(msg)
    # NFKC folds full-width and compatibility characters (e.g. non-breaking spaces)
    cleaned = _WHITESPACE_RE.sub(" ", unicodedata.normalize("NFKC", raw)).strip()
    if not cleaned:
        msg = "Address must not be empty or whitespace-only"
        raise InvalidAddressError(msg)
    return cleaned


def normalize_address(raw: str) -> str:
    """Canonicalize an address for cache keying.

    Args:
        raw: Freeform address text.

    Returns:
        Case-folded address with single spaces and ``", "`` comma separators.

    Raises:
        InvalidAddressError: If the address is empty or whitespace-only.
    """
    cleaned = clean_address(raw).casefold()
    return _COMMA_RE.sub(", ", cleaned).strip(" ")


def address_fingerprint(normalized: str) -> str:
    """Return the SHA-256 hex digest of an already-normalized address."""
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def fingerprint_for(raw: str) -> str:
    """Normalize ``raw`` and return its fingerprint."""
    return address_fingerprint(normalize_address(raw))
