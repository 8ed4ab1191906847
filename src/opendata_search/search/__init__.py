"""Search query construction: region lookup, text queries, dataset scoring, facet counts."""

from opendata_search.search.facet_resolver import FacetResolver
from opendata_search.search.geo import RegionShapes
from opendata_search.search.query_composer import DatasetQueryComposer
from opendata_search.search.region_resolver import RegionResolver
from opendata_search.search.text_query import (
    MATCH_ALL_TERMS,
    TextMatchOptions,
    build_region_aware_text_query,
    build_text_query,
    strip_region_names,
)


__all__ = [
    "MATCH_ALL_TERMS",
    "DatasetQueryComposer",
    "FacetResolver",
    "RegionResolver",
    "RegionShapes",
    "TextMatchOptions",
    "build_region_aware_text_query",
    "build_text_query",
    "strip_region_names",
]
