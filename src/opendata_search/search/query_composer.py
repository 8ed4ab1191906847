"""Composes the scoring query sent for primary dataset search."""

from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
import logging
from typing import Any, Literal

from opendata_search.domain.facets import FacetDefinition, build_facet_definitions, get_facet_definition
from opendata_search.domain.model import FacetType, Query, Region
from opendata_search.search.fields import TEMPORAL_END_FIELD, TEMPORAL_START_FIELD
from opendata_search.search.geo import RegionShapes
from opendata_search.search.region_resolver import RegionResolver
from opendata_search.search.text_query import (
    MATCH_ALL_TERMS,
    TextMatchOptions,
    build_region_aware_text_query,
)


logger = logging.getLogger(__name__)

QUALITY_FACTOR: dict[str, Any] = {
    "filter": {"term": {"hasQuality": True}},
    "field_value_factor": {"field": "quality", "missing": 1},
}


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def date_bound_query(value: datetime, comparator: Literal["gte", "lte"]) -> dict[str, Any]:
    """A dataset satisfies a date bound when either end of its temporal coverage does."""
    date = _iso(value)
    return {
        "bool": {
            "should": [
                {"range": {TEMPORAL_END_FIELD: {comparator: date}}},
                {"range": {TEMPORAL_START_FIELD: {comparator: date}}},
            ],
            "minimum_should_match": 1,
        }
    }


class DatasetQueryComposer:
    """Turns a ``Query`` into one weighted ``function_score`` query.

    Explicit region filters and facet selections are hard constraints;
    regions inferred from free text only ever add score.
    """

    def __init__(
        self,
        region_resolver: RegionResolver,
        shapes: RegionShapes,
        facet_definitions: Mapping[FacetType, FacetDefinition] | None = None,
    ):
        self.region_resolver = region_resolver
        self.shapes = shapes
        self.facet_definitions = dict(
            facet_definitions if facet_definitions is not None else build_facet_definitions(shapes.for_id)
        )

    def facet_definition(self, facet_type: FacetType | str) -> FacetDefinition:
        return get_facet_definition(facet_type, self.facet_definitions)

    async def compose(
        self,
        query: Query,
        *,
        text_options: TextMatchOptions = MATCH_ALL_TERMS,
        boost_regions: Sequence[Region] | None = None,
    ) -> dict[str, Any]:
        """Build the scoring query, resolving boost regions first unless they are supplied."""
        if boost_regions is None:
            boost_regions = await self.region_resolver.resolve_boost_regions(query.free_text)
        return self.scoring_query(query, boost_regions, text_options)

    def scoring_query(
        self,
        query: Query,
        boost_regions: Sequence[Region],
        text_options: TextMatchOptions = MATCH_ALL_TERMS,
    ) -> dict[str, Any]:
        functions: list[dict[str, Any]] = [{"weight": 1}, dict(QUALITY_FACTOR)]
        if boost_regions:
            functions.append(
                {
                    "filter": {"bool": {"should": [self.shapes.for_region(region) for region in boost_regions]}},
                    "weight": 1,
                }
            )
        return {
            "function_score": {
                "query": self.base_query(query, boost_regions, text_options),
                "functions": functions,
                "score_mode": "sum",
            }
        }

    def base_query(
        self,
        query: Query,
        boost_regions: Sequence[Region],
        text_options: TextMatchOptions = MATCH_ALL_TERMS,
    ) -> dict[str, Any]:
        must: list[dict[str, Any]] = [
            build_region_aware_text_query(query.free_text, boost_regions, self.shapes.for_region, text_options)
        ]
        must.extend(self.shapes.for_query_region(region) for region in query.regions)
        if query.date_from is not None:
            must.append(date_bound_query(query.date_from, "gte"))
        if query.date_to is not None:
            must.append(date_bound_query(query.date_to, "lte"))
        for definition in self.facet_definitions.values():
            facet_filter = definition.filter_query(query)
            if facet_filter is not None:
                must.append(facet_filter)

        logger.debug(
            "Composed dataset query: %d clauses, %d boost regions, %d region filters",
            len(must),
            len(boost_regions),
            len(query.regions),
        )
        return {"bool": {"must": must}}
