"""Dataset and facet search orchestration.

Wires the region resolver, dataset query composer and facet resolver
around one shared backend, and adds what a caller sees on top of the
raw query: strategy fallback and the temporal range of the results.
"""

from datetime import datetime, timezone
import logging
from typing import Any

from opendata_search.adapters.search_backend import AbstractSearchBackend, BackendResponse
from opendata_search.config import Settings
from opendata_search.domain.model import (
    FacetSearchResult,
    FacetType,
    PeriodOfTime,
    Query,
    SearchResult,
    SearchStrategy,
    Temporal,
)
from opendata_search.observability.metrics import SEARCH_STRATEGY
from opendata_search.observability.tracing import create_span
from opendata_search.search.facet_resolver import FacetResolver
from opendata_search.search.fields import TEMPORAL_END_FIELD, TEMPORAL_START_FIELD
from opendata_search.search.geo import RegionShapes
from opendata_search.search.query_composer import DatasetQueryComposer
from opendata_search.search.region_resolver import RegionResolver
from opendata_search.search.text_query import MATCH_ALL_TERMS, TextMatchOptions


logger = logging.getLogger(__name__)

TEMPORAL_AGGREGATIONS: dict[str, Any] = {
    "minDate": {"min": {"field": TEMPORAL_START_FIELD}},
    "maxDate": {"max": {"field": TEMPORAL_END_FIELD}},
}


def _period(aggregation: dict[str, Any] | None) -> PeriodOfTime | None:
    if not aggregation or aggregation.get("value") is None:
        return None
    moment = datetime.fromtimestamp(float(aggregation["value"]) / 1000, tz=timezone.utc)
    return PeriodOfTime(
        date=aggregation.get("value_as_string") or moment.isoformat(),
        text=moment.strftime("%d %B %Y"),
    )


def temporal_from_response(response: BackendResponse) -> Temporal:
    return Temporal(
        start=_period(response.aggregations.get("minDate")),
        end=_period(response.aggregations.get("maxDate")),
    )


class SearchService:
    """High-level search operations over a single shared backend.

    The backend is injected and owned by the caller; this service holds no
    per-request state, so one instance serves concurrent searches.
    """

    def __init__(
        self,
        backend: AbstractSearchBackend,
        *,
        datasets_index: str,
        regions_index: str,
        facet_indices: dict[FacetType, str],
        shapes: RegionShapes | None = None,
        region_candidate_limit: int = 50,
        facet_candidate_min_fetch: int = 10,
        relaxed_minimum_should_match: str = "50%",
    ):
        self.backend = backend
        self.datasets_index = datasets_index
        self.region_resolver = RegionResolver(backend, regions_index, region_candidate_limit)
        self.composer = DatasetQueryComposer(self.region_resolver, shapes or RegionShapes(regions_index))
        self.facet_resolver = FacetResolver(
            backend,
            self.composer,
            datasets_index,
            facet_indices,
            min_candidate_fetch=facet_candidate_min_fetch,
        )
        self.relaxed_options = TextMatchOptions(
            default_operator="or", minimum_should_match=relaxed_minimum_should_match
        )

    @classmethod
    def from_settings(cls, backend: AbstractSearchBackend, settings: Settings) -> "SearchService":
        return cls(
            backend,
            datasets_index=settings.datasets_index_id,
            regions_index=settings.regions_index_id,
            facet_indices={
                FacetType.PUBLISHER: settings.publishers_index_id,
                FacetType.FORMAT: settings.formats_index_id,
                FacetType.REGION: settings.regions_index_id,
            },
            shapes=RegionShapes(
                regions_index=settings.regions_index_id,
                spatial_field=settings.spatial_field,
                geometry_path=settings.geometry_path,
                mapping_type=settings.regions_mapping_type,
            ),
            region_candidate_limit=settings.region_boost_candidate_limit,
            facet_candidate_min_fetch=settings.facet_candidate_min_fetch,
            relaxed_minimum_should_match=settings.relaxed_minimum_should_match,
        )

    async def search(self, query: Query, start: int = 0, limit: int = 10, facet_size: int = 10) -> SearchResult:
        """Primary dataset search.

        Runs with every free-text term required ("match-all"). When that finds
        nothing and the text has several terms, retries once requiring only
        part of them ("match-part"). ``facet_size`` is accepted for API
        compatibility; facet options come from ``search_facets``.
        """
        with create_span("dataset_search.search", attributes={"search.start": start, "search.limit": limit}) as span:
            boost_regions = await self.region_resolver.resolve_boost_regions(query.free_text)

            strategy = SearchStrategy.MATCH_ALL
            response = await self._run_datasets_query(query, boost_regions, start, limit, MATCH_ALL_TERMS)
            if response.total_hits == 0 and self._can_relax(query):
                logger.info("No datasets matched every term, retrying with %s", SearchStrategy.MATCH_PART.value)
                strategy = SearchStrategy.MATCH_PART
                response = await self._run_datasets_query(query, boost_regions, start, limit, self.relaxed_options)

            span.set_attribute("search.strategy", strategy.value)
            span.set_attribute("search.hit_count", response.total_hits)
            SEARCH_STRATEGY.labels(strategy=strategy.value).inc()

            return SearchResult(
                query=query,
                hit_count=response.total_hits,
                datasets=[{**(hit.get("_source") or {}), "score": hit.get("_score")} for hit in response.hits],
                facets=[],
                strategy=strategy,
                temporal=temporal_from_response(response),
            )

    async def search_facets(
        self,
        facet_type: FacetType | str,
        general_query: Query,
        start: int = 0,
        limit: int = 10,
        facet_query_text: str | None = None,
    ) -> FacetSearchResult:
        attributes = {"facet.type": getattr(facet_type, "value", str(facet_type))}
        with create_span("dataset_search.search_facets", attributes=attributes):
            return await self.facet_resolver.search_facets(
                facet_type, general_query, start, limit, facet_query_text
            )

    async def _run_datasets_query(self, query, boost_regions, start, limit, text_options) -> BackendResponse:
        body = {
            "from": start,
            "size": limit,
            "query": self.composer.scoring_query(query, boost_regions, text_options),
            "aggs": TEMPORAL_AGGREGATIONS,
            "track_total_hits": True,
        }
        return await self.backend.execute(self.datasets_index, body)

    @staticmethod
    def _can_relax(query: Query) -> bool:
        return query.has_free_text and len(query.free_text.split()) > 1  # type: ignore[union-attr]
