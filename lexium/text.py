from __future__ import annotations

import re
import unicodedata

_WHITESPACE = re.compile(r"\s+")


def normalize_text(value: object) -> str:
    """Lower-case, strip diacritics (NFD + combining marks) and collapse whitespace."""
    if value is None:
        return ""
    decomposed = unicodedata.normalize("NFD", str(value).lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WHITESPACE.sub(" ", stripped).strip()


def tokenize(value: object) -> list[str]:
    normalized = normalize_text(value)
    return normalized.split(" ") if normalized else []


def normalize_key(value: object) -> str:
    """Column-name key: normalized text with separators removed ("Nota_Final" -> "notafinal")."""
    return re.sub(r"[^a-z0-9]+", "", normalize_text(value))
