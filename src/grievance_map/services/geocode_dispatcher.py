"""Batch geocoding of settlements that have no coordinates yet."""

import asyncio
import logging
from typing import Dict, Optional

from ..config.settings import GrievanceMapSettings, get_settings
from ..models.schemas import GeocodeBatchResult, GeocodeFailure, SettlementPoint
from ..utils.geocoding import BaseGeocoder, GeocodingError, build_query, get_geocoder
from .settlement_store import InMemorySettlementStore, check_entity_type

logger = logging.getLogger(__name__)


class BatchGeocodeDispatcher:
    """
    Pull un-geocoded settlements from the store, geocode them, write back.

    Batches for one entity type never overlap, so an entity is never
    geocoded twice. Within a batch, calls run concurrently up to
    ``GEOCODE_CONCURRENCY``.
    """

    def __init__(
        self,
        store: InMemorySettlementStore,
        geocoder: Optional[BaseGeocoder] = None,
        settings: Optional[GrievanceMapSettings] = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self._geocoder = geocoder
        self._locks: Dict[str, asyncio.Lock] = {}

    @property
    def geocoder(self) -> BaseGeocoder:
        if self._geocoder is None:
            self._geocoder = get_geocoder(self.settings)
        return self._geocoder

    def _lock_for(self, entity_type: str) -> asyncio.Lock:
        if entity_type not in self._locks:
            self._locks[entity_type] = asyncio.Lock()
        return self._locks[entity_type]

    async def request_batch(
        self, entity_type: str, batch_size: Optional[int] = None
    ) -> GeocodeBatchResult:
        """
        Geocode up to ``batch_size`` pending settlements of one type.

        Args:
            entity_type: "village", "town" or "ward"
            batch_size: Max settlements this call (default GEOCODE_BATCH_SIZE)

        Returns:
            Success / failure tally; individual failures never abort the batch

        Raises:
            ValueError: unknown entity type
        """
        check_entity_type(entity_type)
        if batch_size is None:
            batch_size = self.settings.GEOCODE_BATCH_SIZE
        result = GeocodeBatchResult(entity_type=entity_type)
        if batch_size <= 0:
            return result

        async with self._lock_for(entity_type):
            pending = self.store.select_ungeocoded(entity_type, batch_size)
            if not pending:
                logger.info(f"No {entity_type}s left to geocode")
                return result

            logger.info(f"Geocoding {len(pending)} {entity_type}s")
            sem = asyncio.Semaphore(max(1, min(batch_size, self.settings.GEOCODE_CONCURRENCY)))

            async def run(settlement: SettlementPoint) -> Optional[str]:
                async with sem:
                    try:
                        return await self._geocode_one(settlement)
                    finally:
                        if self.settings.GEOCODE_DELAY_MS > 0:
                            await asyncio.sleep(self.settings.GEOCODE_DELAY_MS / 1000)

            outcomes = await asyncio.gather(*(run(s) for s in pending))

        for settlement, error in zip(pending, outcomes):
            if error is None:
                result.success += 1
            else:
                result.failed += 1
                result.failures.append(GeocodeFailure(name=settlement.name, reason=error))

        logger.info(
            f"Geocoded {entity_type} batch: {result.success} succeeded, {result.failed} failed"
        )
        return result

    async def _geocode_one(self, settlement: SettlementPoint) -> Optional[str]:
        """Geocode and store one settlement; returns a failure reason or None."""
        query = build_query(
            settlement.name,
            settlement.subdistrict_name,
            settlement.district_name or self.settings.DISTRICT_NAME,
            settlement.state_name or self.settings.STATE_NAME,
        )
        try:
            location = await asyncio.wait_for(
                self.geocoder.geocode(query), timeout=self.settings.GEOCODE_TIMEOUT_SECONDS
            )
        except asyncio.TimeoutError:
            reason = f"timed out after {self.settings.GEOCODE_TIMEOUT_SECONDS}s"
            logger.warning(f"Geocoding '{query}' {reason}")
            return reason
        except GeocodingError as e:
            logger.warning(f"Geocoding '{query}' failed: {e}")
            return str(e)
        except Exception as e:
            # any other provider fault is recorded against this settlement only
            logger.warning(f"Geocoding '{query}' failed unexpectedly: {type(e).__name__}: {e}")
            return f"{type(e).__name__}: {e}"

        self.store.write_coordinates(settlement, location.latitude, location.longitude)
        logger.debug(f"Geocoded {settlement.name} -> {location.latitude}, {location.longitude}")
        return None
