# src/grievance_map/utils/geocoding.py
"""Forward geocoding of settlement names through Google Maps or Nominatim."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from ..config.settings import GrievanceMapSettings, get_settings

logger = logging.getLogger(__name__)


class GeocodingError(Exception):
    """A single lookup failed; the batch carries on."""


class GeocodingHTTPError(GeocodingError):
    """Transport failure or non-200 response from the provider."""


class GeocodingAPIError(GeocodingError):
    """Provider answered but refused the request (denied, quota, ...)."""


class NoResultsError(GeocodingError):
    """The provider found nothing for the query."""


class OutOfBoundsError(GeocodingError):
    """The hit lies outside the district (a same-name place elsewhere)."""


@dataclass
class GeocodeResult:
    """A successful lookup."""

    latitude: float
    longitude: float
    formatted_address: Optional[str] = None
    provider: str = ""


def build_query(
    name: str,
    subdistrict: Optional[str] = None,
    district: Optional[str] = None,
    state: Optional[str] = None,
) -> str:
    """
    Build the free-text search query.

    Example: "Bilsi, Bilsi, Budaun, Uttar Pradesh, India"
    """
    parts = [name, subdistrict, district, state, "India"]
    return ", ".join(p.strip() for p in parts if p and p.strip())


def validate_location(
    latitude: float, longitude: float, settings: Optional[GrievanceMapSettings] = None
) -> None:
    """
    Reject results outside the configured district bounds.

    Raises:
        OutOfBoundsError: for 0,0 or anything outside the bounding box
    """
    settings = settings or get_settings()
    if latitude == 0 and longitude == 0:
        raise OutOfBoundsError("Geocoder returned 0,0")
    inside = (
        settings.BOUNDS_SOUTH <= latitude <= settings.BOUNDS_NORTH
        and settings.BOUNDS_WEST <= longitude <= settings.BOUNDS_EAST
    )
    if not inside:
        raise OutOfBoundsError(
            f"{latitude:.5f}, {longitude:.5f} is outside {settings.DISTRICT_NAME}"
        )


class BaseGeocoder:
    """Shared HTTP plumbing for the providers."""

    provider = ""
    base_url = ""

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        settings: Optional[GrievanceMapSettings] = None,
    ):
        """
        Args:
            session: Reused aiohttp session; one is opened per call if omitted
            settings: Bounds and provider settings (defaults to env settings)
        """
        self.session = session
        self.settings = settings or get_settings()

    async def geocode(self, query: str) -> GeocodeResult:
        """
        Resolve ``query`` to a location inside the district.

        Raises:
            GeocodingError: any failure, including out-of-bounds hits
        """
        result = await self._lookup(query)
        validate_location(result.latitude, result.longitude, self.settings)
        return result

    async def _lookup(self, query: str) -> GeocodeResult:
        raise NotImplementedError

    def _headers(self) -> Dict[str, str]:
        return {}

    async def _get_json(self, params: Dict[str, Any]) -> Any:
        try:
            if self.session is not None:
                return await self._fetch(self.session, params)
            async with aiohttp.ClientSession() as session:
                return await self._fetch(session, params)
        except aiohttp.ClientError as e:
            raise GeocodingHTTPError(f"{self.provider} request failed: {e}") from e

    async def _fetch(self, session: aiohttp.ClientSession, params: Dict[str, Any]) -> Any:
        async with session.get(self.base_url, params=params, headers=self._headers()) as response:
            if response.status != 200:
                error_text = await response.text()
                raise GeocodingHTTPError(
                    f"{self.provider} API error {response.status}: {error_text[:200]}"
                )
            return await response.json()


class GoogleGeocoder(BaseGeocoder):
    """Google Maps Geocoding API."""

    provider = "google"
    base_url = "https://maps.googleapis.com/maps/api/geocode/json"

    def __init__(
        self,
        api_key: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        settings: Optional[GrievanceMapSettings] = None,
    ):
        super().__init__(session=session, settings=settings)
        self.api_key = api_key or self.settings.GOOGLE_MAPS_API_KEY
        if not self.api_key:
            raise ValueError("GOOGLE_MAPS_API_KEY is required for the google geocoder")

    async def _lookup(self, query: str) -> GeocodeResult:
        data = await self._get_json({"address": query, "key": self.api_key})
        status = data.get("status")

        if status == "OK" and data.get("results"):
            result = data["results"][0]
            location = result["geometry"]["location"]
            return GeocodeResult(
                latitude=float(location["lat"]),
                longitude=float(location["lng"]),
                formatted_address=result.get("formatted_address"),
                provider=self.provider,
            )

        if status == "ZERO_RESULTS":
            raise NoResultsError(f"No results found for: {query}")

        message = data.get("error_message") or "N/A"
        if status == "REQUEST_DENIED":
            logger.error(
                f"Google Maps REQUEST_DENIED: {message}. "
                "Check the API key and that the Geocoding API is enabled."
            )
        elif status == "OVER_QUERY_LIMIT":
            logger.error("Google Maps quota exceeded")
        raise GeocodingAPIError(f"Google status {status}: {message}")


class NominatimGeocoder(BaseGeocoder):
    """OpenStreetMap Nominatim search (no key; 1 request/second)."""

    provider = "nominatim"
    base_url = "https://nominatim.openstreetmap.org/search"

    def _headers(self) -> Dict[str, str]:
        return {"User-Agent": self.settings.NOMINATIM_USER_AGENT}

    async def _lookup(self, query: str) -> GeocodeResult:
        data = await self._get_json(
            {"q": query, "format": "json", "limit": 1, "countrycodes": "in"}
        )
        if not data:
            raise NoResultsError(f"No results found for: {query}")

        result = data[0]
        try:
            latitude = float(result["lat"])
            longitude = float(result["lon"])
        except (KeyError, TypeError, ValueError) as e:
            raise GeocodingAPIError(f"Malformed Nominatim result for: {query}") from e
        return GeocodeResult(
            latitude=latitude,
            longitude=longitude,
            formatted_address=result.get("display_name"),
            provider=self.provider,
        )


def get_geocoder(
    settings: Optional[GrievanceMapSettings] = None,
    session: Optional[aiohttp.ClientSession] = None,
) -> BaseGeocoder:
    """Geocoder for the configured provider."""
    settings = settings or get_settings()
    if settings.GEOCODER == "nominatim":
        return NominatimGeocoder(session=session, settings=settings)
    return GoogleGeocoder(session=session, settings=settings)
