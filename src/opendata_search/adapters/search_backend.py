"""Search backend abstraction and its Elasticsearch implementation.

The query compiler only ever needs one capability from the engine: run a
structured request body against a named index and hand back hits and
aggregations. Everything above this module deals in plain request dicts;
everything engine-specific (client construction, error types, response
shape differences between engine versions) stays here.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
import logging
from typing import Any

from elasticsearch import ApiError, AsyncElasticsearch, ConnectionError as ESConnectionError, TransportError
from opentelemetry.trace import SpanKind

from opendata_search.config import Settings
from opendata_search.exceptions import BackendError, BackendUnavailableError
from opendata_search.observability.metrics import BACKEND_ERRORS, BACKEND_LATENCY, track_latency
from opendata_search.observability.tracing import create_span


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackendResponse:
    """Normalized search response."""

    total_hits: int
    hits: list[dict[str, Any]] = field(default_factory=list)
    aggregations: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_body(cls, body: dict[str, Any]) -> "BackendResponse":
        hits_section = body.get("hits") or {}
        total = hits_section.get("total", 0)
        # Engines before 7.0 report a bare integer, later ones {"value": n, "relation": ...}
        if isinstance(total, dict):
            total = total.get("value", 0)
        return cls(
            total_hits=int(total or 0),
            hits=list(hits_section.get("hits") or []),
            aggregations=dict(body.get("aggregations") or {}),
        )

    def sources(self) -> list[dict[str, Any]]:
        return [hit.get("_source") or {} for hit in self.hits]

    def doc_count(self, aggregation_name: str) -> int:
        """Document count of a filter aggregation; absent buckets count as zero."""
        bucket = self.aggregations.get(aggregation_name) or {}
        return int(bucket.get("doc_count") or 0)


class AbstractSearchBackend(ABC):
    """Abstract capability for executing a structured query against a named index.

    Implementations must be safe to share across concurrent searches.
    """

    @abstractmethod
    async def execute(self, index: str, body: dict[str, Any]) -> BackendResponse:
        """Run ``body`` (query, aggs, from, size) against ``index``.

        Raises:
            BackendError: the request failed for any reason; never retried here.
        """
        raise NotImplementedError

    async def ping(self) -> bool:
        """Optional hook reporting whether the backend is reachable."""

        return True

    async def close(self) -> None:
        """Optional hook releasing pooled connections."""

        return


def _to_search_kwargs(body: dict[str, Any]) -> dict[str, Any]:
    kwargs = dict(body)
    if "from" in kwargs:
        kwargs["from_"] = kwargs.pop("from")
    return kwargs


class ElasticsearchBackend(AbstractSearchBackend):
    """``AbstractSearchBackend`` over a pooled ``AsyncElasticsearch`` client."""

    def __init__(self, client: AsyncElasticsearch):
        self._client = client

    async def execute(self, index: str, body: dict[str, Any]) -> BackendResponse:
        attributes = {"db.system": "elasticsearch", "db.elasticsearch.index": index}
        with create_span("search_backend.execute", kind=SpanKind.CLIENT, attributes=attributes):
            with track_latency(BACKEND_LATENCY, index=index):
                try:
                    response = await self._client.search(index=index, **_to_search_kwargs(body))
                except ESConnectionError as exc:
                    BACKEND_ERRORS.labels(index=index, error_type=type(exc).__name__).inc()
                    raise BackendUnavailableError(f"Search backend unreachable: {exc}", index=index) from exc
                except (ApiError, TransportError) as exc:
                    BACKEND_ERRORS.labels(index=index, error_type=type(exc).__name__).inc()
                    raise BackendError(f"Search request against {index!r} failed: {exc}", index=index) from exc

        result = BackendResponse.from_body(response.body)
        logger.debug("Backend search on %s returned %d total hits", index, result.total_hits)
        return result

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except (ApiError, TransportError) as exc:
            logger.warning("Search backend ping failed: %s", exc)
            return False

    async def close(self) -> None:
        await self._client.close()


def create_backend(settings: Settings) -> ElasticsearchBackend:
    """Construct the single shared backend for a process; callers own its lifecycle."""
    client = AsyncElasticsearch(
        settings.elasticsearch_url,
        request_timeout=settings.elasticsearch_request_timeout,
        max_retries=settings.elasticsearch_max_retries,
        retry_on_timeout=settings.elasticsearch_max_retries > 0,
    )
    logger.info("Search backend client created for %s", settings.elasticsearch_url)
    return ElasticsearchBackend(client)
