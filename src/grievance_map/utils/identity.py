"""Join-key normalization for matching records across layers."""

import re
from typing import Any, Optional, Set

CODE_PREFIX = "code_"


def normalize(name: Optional[str]) -> str:
    """Normalize a place name into a join key.

    Args:
        name: Raw name as typed in a complaint or a census sheet.

    Returns:
        Lowercased, trimmed name with zero-width characters removed and
        whitespace collapsed. Empty string when there is nothing to key on.
    """
    if not name:
        return ""
    result = (
        str(name)
        .replace("\u200b", "")  # Zero-width space
        .replace("\u200c", "")  # Zero-width non-joiner
        .replace("\u200d", "")  # Zero-width joiner
        .replace("\ufeff", "")  # BOM/zero-width no-break space
        .replace("\u2060", "")  # Word joiner
    )
    return re.sub(r"\s+", " ", result.strip()).lower()


def code_key(code: Any) -> str:
    """Key for an administrative (LGD / ward) code, or "" when absent."""
    if code is None:
        return ""
    code = str(code).strip()
    return f"{CODE_PREFIX}{code}" if code else ""


def keys_for(name: Optional[str] = None, code: Any = None) -> Set[str]:
    """All join keys a record can be matched by.

    A record lacking both name and code yields an empty set and is left
    out of aggregation.
    """
    keys = set()
    name_key = normalize(name)
    if name_key:
        keys.add(name_key)
    c_key = code_key(code)
    if c_key:
        keys.add(c_key)
    return keys
