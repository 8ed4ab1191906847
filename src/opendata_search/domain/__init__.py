"""Domain layer - search requests, results and facet strategies."""

from opendata_search.domain.facets import FacetDefinition, build_facet_definitions, get_facet_definition
from opendata_search.domain.model import (
    FacetOption,
    FacetSearchResult,
    FacetType,
    PeriodOfTime,
    Query,
    QueryRegion,
    Region,
    SearchResult,
    SearchStrategy,
    Temporal,
)


__all__ = [
    "FacetDefinition",
    "FacetOption",
    "FacetSearchResult",
    "FacetType",
    "PeriodOfTime",
    "Query",
    "QueryRegion",
    "Region",
    "SearchResult",
    "SearchStrategy",
    "Temporal",
    "build_facet_definitions",
    "get_facet_definition",
]
