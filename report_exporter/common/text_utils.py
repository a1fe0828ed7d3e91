"""Label canonicalisation used for accent-insensitive UI matching."""
from __future__ import annotations

import unicodedata
from typing import Any

__all__ = ["fold_diacritics", "normalize_text"]


def fold_diacritics(value: Any) -> str:
    """Strip combining marks while keeping case and spacing intact."""

    if value is None:
        return ""
    decomposed = unicodedata.normalize("NFKD", str(value))
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_text(value: Any) -> str:
    """Return the canonical comparison form of a human-readable label.

    Accents are removed, runs of whitespace collapse to a single space, and
    the result is trimmed and case-folded, so ``"Conta de  Anúncio"`` and
    ``"conta de anuncio"`` compare equal.
    """

    return " ".join(fold_diacritics(value).split()).casefold()
