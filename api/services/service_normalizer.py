# api/services/service_normalizer.py
"""
Canonical form for free-text service labels, and the ingestion adapter that
turns a provider's services field into a flat list of labels.
"""

import re
import unicodedata
from typing import Any, List

_PUNCTUATION_RE = re.compile(r"[^\w\s]|_")
_WHITESPACE_RE = re.compile(r"\s+")
_SERVICE_SEPARATOR_RE = re.compile(r"[,;]")


def normalize(label: Any) -> str:
    """
    Normalize a service label for comparison.

    Lowercases, folds accents to ASCII ("Canalização" -> "canalizacao"),
    replaces punctuation with spaces and collapses whitespace. Never raises;
    None and blank input give "".
    """
    if label is None:
        return ""

    text = str(label)
    decomposed = unicodedata.normalize("NFKD", text)
    folded = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    folded = folded.lower()
    folded = _PUNCTUATION_RE.sub(" ", folded)
    return _WHITESPACE_RE.sub(" ", folded).strip()


def tokenize(normalized_label: str) -> List[str]:
    """Split an already-normalized label on whitespace"""
    return normalized_label.split() if normalized_label else []


def split_services_field(services_field: Any) -> List[str]:
    """
    Coerce a provider's services field into a list of raw labels.

    The field is either a comma/semicolon separated string or a list. Items
    are trimmed; blanks and None items are dropped.
    """
    if services_field is None:
        return []

    if isinstance(services_field, str):
        raw_items = _SERVICE_SEPARATOR_RE.split(services_field)
    elif isinstance(services_field, (list, tuple, set)):
        raw_items = [item for item in services_field if item is not None]
    else:
        raw_items = [services_field]

    labels = []
    for item in raw_items:
        text = str(item).strip()
        if text:
            labels.append(text)
    return labels
