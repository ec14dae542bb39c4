"""Settlement reference data with write-back of geocoded coordinates."""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from ..models.schemas import POINT_LAYERS, SettlementPoint

logger = logging.getLogger(__name__)


def check_entity_type(entity_type: str) -> str:
    if entity_type not in POINT_LAYERS:
        raise ValueError(
            f"Unknown entity type '{entity_type}', expected one of {', '.join(POINT_LAYERS)}"
        )
    return entity_type


class InMemorySettlementStore:
    """
    Villages, towns and wards keyed by entity type.

    Written by the geocode dispatcher, read by compositions. A settlement
    is identified by its position in its layer, so two villages sharing a
    name stay distinct.
    """

    def __init__(self, settlements: Optional[Iterable[SettlementPoint]] = None):
        self._lock = threading.Lock()
        self._items: Dict[str, List[SettlementPoint]] = {layer: [] for layer in POINT_LAYERS}
        if settlements:
            self.add_many(settlements)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "InMemorySettlementStore":
        """
        Load from a JSON file of settlement records.

        The file is either a list of records (each carrying ``entity_type``)
        or an object keyed by entity type.
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        records: List[Dict[str, Any]] = []
        if isinstance(data, dict):
            for entity_type, rows in data.items():
                records.extend({**row, "entity_type": entity_type} for row in rows)
        else:
            records = data

        store = cls(SettlementPoint.model_validate(r) for r in records)
        logger.info(f"Loaded {sum(len(v) for v in store._items.values())} settlements from {path}")
        return store

    def add(self, settlement: SettlementPoint) -> None:
        with self._lock:
            self._items[settlement.entity_type].append(settlement)

    def add_many(self, settlements: Iterable[SettlementPoint]) -> None:
        for settlement in settlements:
            self.add(settlement)

    def all(self, entity_type: str) -> List[SettlementPoint]:
        with self._lock:
            return list(self._items[check_entity_type(entity_type)])

    def select_ungeocoded(self, entity_type: str, limit: int) -> List[SettlementPoint]:
        """Up to ``limit`` settlements still waiting for coordinates, in load order."""
        check_entity_type(entity_type)
        if limit <= 0:
            return []
        with self._lock:
            pending = [s for s in self._items[entity_type] if not s.geocoded]
        return pending[:limit]

    def write_coordinates(
        self, settlement: SettlementPoint, latitude: float, longitude: float
    ) -> SettlementPoint:
        """
        Store coordinates and mark the settlement geocoded.

        Returns:
            The updated record; a settlement that is already geocoded is
            returned unchanged
        """
        with self._lock:
            items = self._items[settlement.entity_type]
            for i, existing in enumerate(items):
                if existing is settlement:
                    if existing.geocoded:
                        return existing
                    updated = existing.model_copy(
                        update={"latitude": latitude, "longitude": longitude, "geocoded": True}
                    )
                    items[i] = updated
                    return updated
        raise KeyError(f"{settlement.entity_type} '{settlement.name}' is not in the store")

    def features(self, entity_type: str) -> List[Dict[str, Any]]:
        """Point features for geocoded settlements of one type."""
        return [
            s.to_feature() for s in self.all(entity_type) if s.geocoded and s.has_coordinates
        ]

    def points_by_layer(self) -> Dict[str, List[Dict[str, Any]]]:
        return {layer: self.features(layer) for layer in POINT_LAYERS}

    def statistics(self, entity_type: str) -> Dict[str, Any]:
        """Geocoding progress for one entity type."""
        items = self.all(entity_type)
        total = len(items)
        geocoded = sum(1 for s in items if s.geocoded)
        return {
            "total": total,
            "geocoded": geocoded,
            "pending": total - geocoded,
            "percentage_complete": round(geocoded / total * 100, 2) if total else 0,
        }
