"""Count complaints per join key.

Counts are rebuilt from scratch for every composition; nothing here keeps
state between calls.
"""

from typing import Any, Callable, Dict, Iterable, Optional, Set, TypeVar

from ..models.schemas import POINT_LAYERS, ComplaintPoint
from ..utils.identity import code_key, keys_for, normalize

T = TypeVar("T")


def count_by_keys(
    points: Iterable[T], key_extractor: Callable[[T], Set[str]]
) -> Dict[str, int]:
    """
    Count points under every key they can be joined by.

    Each point increments each distinct key in its key set once, so a
    complaint naming both a village and its LGD code shows up under both.
    Points with an empty key set are not counted.
    """
    counts: Dict[str, int] = {}
    for point in points:
        for key in key_extractor(point):
            counts[key] = counts.get(key, 0) + 1
    return counts


def count_by_subdistrict(complaints: Iterable[ComplaintPoint]) -> Dict[str, int]:
    """Complaints per subdistrict, keyed on the raw ``subdistrict_name`` text."""
    counts: Dict[str, int] = {}
    for complaint in complaints:
        if complaint.subdistrict_name:
            counts[complaint.subdistrict_name] = counts.get(complaint.subdistrict_name, 0) + 1
    return counts


def complaint_keys(layer: str) -> Callable[[ComplaintPoint], Set[str]]:
    """Key extractor for a settlement layer (village / town / ward)."""

    def extract(complaint: ComplaintPoint) -> Set[str]:
        return keys_for(complaint.name_for(layer), complaint.code_for(layer))

    return extract


def count_by_layer(complaints: Iterable[ComplaintPoint]) -> Dict[str, Dict[str, int]]:
    """Per-layer key counts for every settlement layer in one pass."""
    complaints = list(complaints)
    return {layer: count_by_keys(complaints, complaint_keys(layer)) for layer in POINT_LAYERS}


def count_for(counts: Dict[str, int], name: Optional[str], code: Any = None) -> int:
    """
    Complaint count for one settlement point.

    The name key wins; the code key is only consulted when the name yields
    nothing, so a complaint carrying both is not counted twice.
    """
    count = 0
    name_key = normalize(name)
    if name_key:
        count = counts.get(name_key, 0)
    c_key = code_key(code)
    if count == 0 and c_key:
        count = counts.get(c_key, 0)
    return count
