"""ASGI application exposing dataset and facet search over HTTP.

Routes:
    GET /datasets                         dataset search
    GET /facets/{facet_type}/options      facet options with counts
    GET /health                           backend reachability
    GET /metrics                          Prometheus metrics

Usage:
    python -m opendata_search.app
"""

from contextlib import asynccontextmanager
from datetime import datetime
import logging

from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from opendata_search.adapters.search_backend import AbstractSearchBackend, create_backend
from opendata_search.config import Settings
from opendata_search.domain.model import Query, QueryRegion
from opendata_search.exceptions import BackendError, ConfigurationError
from opendata_search.observability import (
    configure_logging,
    configure_metrics_exporter,
    configure_trace_exporter,
    get_metrics,
    get_metrics_content_type,
    init_tracing,
    trace_request,
)
from opendata_search.service_layer.search_service import SearchService


logger = logging.getLogger(__name__)


class BadRequestError(ValueError):
    """A query parameter could not be parsed."""


def _parse_int(request: Request, name: str, default: int | None) -> int | None:
    raw = request.query_params.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise BadRequestError(f"{name} must be an integer") from exc
    if value < 0:
        raise BadRequestError(f"{name} must not be negative")
    return value


def _parse_date(request: Request, name: str) -> datetime | None:
    raw = request.query_params.get(name)
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError as exc:
        raise BadRequestError(f"{name} must be an ISO-8601 date") from exc


def _parse_region(raw: str) -> QueryRegion:
    region_type, sep, region_id = raw.partition(":")
    if not sep or not region_type or not region_id:
        raise BadRequestError(f"region must look like TYPE:ID, got {raw!r}")
    return QueryRegion(region_type=region_type, region_id=region_id)


def parse_query(request: Request) -> Query:
    """Build a ``Query`` from request query parameters."""
    params = request.query_params
    try:
        return Query(
            free_text=params.get("q") or None,
            regions=tuple(_parse_region(raw) for raw in params.getlist("region")),
            date_from=_parse_date(request, "dateFrom"),
            date_to=_parse_date(request, "dateTo"),
            publishers=tuple(value for value in params.getlist("publisher") if value),
            formats=tuple(value for value in params.getlist("format") if value),
        )
    except ValidationError as exc:
        raise BadRequestError(str(exc)) from exc


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


async def search_datasets(request: Request) -> JSONResponse:
    settings: Settings = request.app.state.settings
    service: SearchService = request.app.state.search_service
    try:
        query = parse_query(request)
        start = _parse_int(request, "start", 0) or 0
        limit = settings.clamp_limit(_parse_int(request, "limit", None))
        facet_size = _parse_int(request, "facetSize", settings.default_facet_size)
        result = await service.search(query, start, limit, facet_size)
    except BadRequestError as exc:
        return _error(str(exc), 400)
    except BackendError as exc:
        logger.error("Dataset search failed: %s", exc, exc_info=True)
        return _error("search unavailable", 503)
    return JSONResponse(result.model_dump(mode="json", by_alias=True))


async def search_facet_options(request: Request) -> JSONResponse:
    settings: Settings = request.app.state.settings
    service: SearchService = request.app.state.search_service
    facet_type = request.path_params["facet_type"]
    try:
        query = parse_query(request)
        start = _parse_int(request, "start", 0) or 0
        limit = settings.clamp_limit(_parse_int(request, "limit", None))
        result = await service.search_facets(
            facet_type, query, start, limit, request.query_params.get("facetQuery")
        )
    except BadRequestError as exc:
        return _error(str(exc), 400)
    except ConfigurationError as exc:
        logger.warning("Facet search for unknown facet type %r", facet_type)
        return _error(str(exc), 404)
    except BackendError as exc:
        logger.error("Facet search failed: %s", exc, exc_info=True)
        return _error("search unavailable", 503)
    return JSONResponse(result.model_dump(mode="json", by_alias=True))


async def health_check(request: Request) -> JSONResponse:
    backend: AbstractSearchBackend = request.app.state.backend
    reachable = await backend.ping()
    return JSONResponse(
        {"status": "healthy" if reachable else "degraded", "backend": reachable},
        status_code=200 if reachable else 503,
    )


def metrics_endpoint(request: Request) -> Response:
    return Response(get_metrics(), media_type=get_metrics_content_type())


def create_app(settings: Settings | None = None, backend: AbstractSearchBackend | None = None) -> Starlette:
    """Create the ASGI app. The backend is created in the lifespan unless one is supplied."""
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: Starlette):
        active_backend = backend or create_backend(settings)
        app.state.backend = active_backend
        app.state.search_service = SearchService.from_settings(active_backend, settings)
        logger.info("Search API ready (datasets index: %s)", settings.datasets_index_id)
        try:
            yield
        finally:
            await active_backend.close()
            logger.info("Search backend closed")

    app = Starlette(
        debug=settings.log_level.lower() == "debug",
        routes=[
            Route("/datasets", endpoint=search_datasets, methods=["GET"]),
            Route("/facets/{facet_type}/options", endpoint=search_facet_options, methods=["GET"]),
            Route("/health", endpoint=health_check, methods=["GET"]),
            Route("/metrics", endpoint=metrics_endpoint, methods=["GET"]),
        ],
        middleware=[
            Middleware(BaseHTTPMiddleware, dispatch=trace_request),
        ],
        lifespan=lifespan,
    )
    app.state.settings = settings
    return app


def main() -> None:
    """Entry point for the search API server."""
    import uvicorn

    try:
        settings = Settings()
    except ValidationError as exc:
        logging.basicConfig(level=logging.ERROR)
        logger.error("Configuration is invalid: %s", exc)
        return

    configure_logging(settings.log_level, json_output=settings.log_json)
    provider = init_tracing(resource_attributes=dict(settings.observability.resource_attributes))
    configure_trace_exporter(settings.observability, provider)
    configure_metrics_exporter(settings.observability)

    logger.info("Starting search API on %s:%d", settings.api_host, settings.api_port)
    uvicorn.run(
        create_app(settings),
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
        log_config=None,
    )


if __name__ == "__main__":
    main()
