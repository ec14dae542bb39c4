#!/usr/bin/env python3
"""
HTTP surface for the grievance heat map.

Usage:
    python -m grievance_map.api --port 8080

Endpoints:
    POST /api/map/compose          compose one FeatureCollection
    POST /api/map/heatmap          weighted points for a density heatmap
    POST /api/geocode/{entity_type} geocode one batch of villages/towns/wards
    GET  /api/geocode/stats        geocoding progress per entity type
    GET  /api/health
"""

import argparse
import logging
from typing import Any, Dict, List, Optional, Union

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config.settings import GrievanceMapSettings, get_settings
from .mapping.density_heatmap import (
    PopulationType,
    WeightBy,
    asset_heatmap,
    combine,
    complaint_heatmap,
    filter_heatmap,
    heatmap_stats,
    population_heatmap,
)
from .mapping.geometry_index import GeometryIndex
from .mapping.layer_composer import LayerComposer, flatten_features
from .models.schemas import POINT_LAYERS, FilterContext, LayerTag
from .services.geocode_dispatcher import BatchGeocodeDispatcher
from .services.settlement_store import InMemorySettlementStore, check_entity_type
from .utils.geocoding import BaseGeocoder

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


class ComposeRequest(BaseModel):
    """Inputs of one composition; omitted reference data comes from the server."""

    boundaries: Optional[Union[Dict[str, Any], List[Dict[str, Any]]]] = None
    points_by_layer: Optional[Dict[str, List[Dict[str, Any]]]] = None
    boundaries_by_layer: Dict[str, List[Dict[str, Any]]] = {}
    complaints: List[Dict[str, Any]] = []
    poi_layers: Dict[str, Any] = {}
    enabled_layers: Optional[List[LayerTag]] = None
    filter_context: FilterContext = Field(default_factory=FilterContext)


class HeatmapRequest(BaseModel):
    """
    Layers of a density heatmap plus the filters applied to the merged result.

    ``locations`` of None means the server's geocoded settlements.
    """

    complaints: List[Dict[str, Any]] = []
    weight_by: WeightBy = "priority"
    include_population: bool = False
    population_type: PopulationType = "total"
    locations: Optional[List[Dict[str, Any]]] = None
    assets: List[Dict[str, Any]] = []
    asset_weight_property: Optional[str] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    category: Optional[str] = None
    subdistrict: Optional[str] = None


class GeocodeBatchRequest(BaseModel):
    batch_size: Optional[int] = Field(default=None, ge=1)


def create_app(
    settings: Optional[GrievanceMapSettings] = None,
    store: Optional[InMemorySettlementStore] = None,
    geometry_index: Optional[GeometryIndex] = None,
    geocoder: Optional[BaseGeocoder] = None,
) -> FastAPI:
    """Build the app around a settlement store and an optional boundary index."""
    settings = settings or get_settings()

    if store is None:
        store = (
            InMemorySettlementStore.from_file(settings.SETTLEMENTS_PATH)
            if settings.SETTLEMENTS_PATH
            else InMemorySettlementStore()
        )
    if geometry_index is None and settings.BOUNDARIES_PATH:
        geometry_index = GeometryIndex.from_file(settings.BOUNDARIES_PATH)

    app = FastAPI(title="Grievance Heat Map API")
    app.state.settings = settings
    app.state.store = store
    app.state.geometry_index = geometry_index
    app.state.composer = LayerComposer(
        highlight_radius_deg=settings.HIGHLIGHT_RADIUS_DEG,
        highlight_num_points=settings.HIGHLIGHT_NUM_POINTS,
        precision=settings.COORDINATE_PRECISION,
    )
    app.state.dispatcher = BatchGeocodeDispatcher(store, geocoder=geocoder, settings=settings)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail, "status_code": exc.status_code},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={
                "error": "Invalid request",
                "detail": jsonable_errors(exc),
                "status_code": 422,
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "detail": str(exc), "status_code": 500},
        )

    @app.get("/api/health")
    async def health():
        """Health check endpoint."""
        index = app.state.geometry_index
        return {
            "status": "ok",
            "service": "Grievance Heat Map API",
            "boundaries_loaded": len(index) if index is not None else 0,
            "geocoder": settings.GEOCODER,
        }

    @app.post("/api/map/compose")
    def compose_map(body: ComposeRequest):
        """Compose boundaries, settlements, POIs and complaints into one layer."""
        if body.boundaries is not None:
            boundaries = flatten_features(body.boundaries)
        elif app.state.geometry_index is not None:
            boundaries = app.state.geometry_index
        else:
            boundaries = []

        points_by_layer = body.points_by_layer
        if points_by_layer is None:
            points_by_layer = app.state.store.points_by_layer()

        return app.state.composer.compose(
            body.enabled_layers,
            boundaries,
            points_by_layer,
            body.complaints,
            body.filter_context,
            boundaries_by_layer=body.boundaries_by_layer,
            poi_layers=body.poi_layers,
        )

    @app.post("/api/map/heatmap")
    def density_heatmap(body: HeatmapRequest):
        """Weighted complaint, population and asset points, filtered and summarized."""
        layers = [complaint_heatmap(body.complaints, body.weight_by)]
        if body.include_population:
            locations = body.locations
            if locations is None:
                locations = [s for layer in POINT_LAYERS for s in app.state.store.all(layer)]
            layers.append(population_heatmap(locations, body.population_type))
        if body.assets:
            layers.append(asset_heatmap(body.assets, body.asset_weight_property))

        collection = filter_heatmap(
            combine(layers),
            min_value=body.min_value,
            max_value=body.max_value,
            priority=body.priority,
            status=body.status,
            category=body.category,
            subdistrict=body.subdistrict,
        )
        collection["stats"] = heatmap_stats(collection)
        return collection

    @app.post("/api/geocode/{entity_type}")
    async def geocode_batch(entity_type: str, body: Optional[GeocodeBatchRequest] = None):
        """Geocode one batch of settlements still missing coordinates."""
        try:
            check_entity_type(entity_type)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        batch_size = body.batch_size if body is not None else None
        result = await app.state.dispatcher.request_batch(entity_type, batch_size)
        return result.model_dump()

    @app.get("/api/geocode/stats")
    async def geocode_stats():
        """Geocoding progress per entity type."""
        return {layer: app.state.store.statistics(layer) for layer in POINT_LAYERS}

    return app


def jsonable_errors(exc: RequestValidationError) -> List[Dict[str, Any]]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


def main():
    parser = argparse.ArgumentParser(description="Grievance heat map API server")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8080, help="Port to listen on")
    args = parser.parse_args()

    load_dotenv()
    settings = GrievanceMapSettings()
    logger.info(
        f"Starting Grievance Heat Map API on {args.host}:{args.port} "
        f"(geocoder={settings.GEOCODER}, district={settings.DISTRICT_NAME})"
    )
    uvicorn.run(create_app(settings), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
