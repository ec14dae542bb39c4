# src/grievance_map/__init__.py
from .mapping.layer_composer import LayerComposer, CompositionSequencer, compose
from .services.geocode_dispatcher import BatchGeocodeDispatcher
from .services.settlement_store import InMemorySettlementStore

__all__ = [
    "LayerComposer",
    "CompositionSequencer",
    "compose",
    "BatchGeocodeDispatcher",
    "InMemorySettlementStore",
]
