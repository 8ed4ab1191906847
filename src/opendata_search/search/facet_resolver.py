"""Facet option lookup with counts that respect every other active filter."""

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
import logging
from typing import Any

from opendata_search.adapters.search_backend import AbstractSearchBackend
from opendata_search.domain.facets import FacetDefinition
from opendata_search.domain.model import FacetOption, FacetSearchResult, FacetType, Query
from opendata_search.exceptions import ConfigurationError
from opendata_search.search.query_composer import DatasetQueryComposer


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FacetCandidate:
    value: str
    identifier: str | None = None


def candidate_query(
    facet_query_text: str | None, match_fields: Sequence[str] = ("value", "acronym")
) -> dict[str, Any]:
    """Best-of phrase-prefix match over ``match_fields``; blank text matches everything."""
    if not facet_query_text or not facet_query_text.strip():
        return {"match_all": {}}
    return {
        "dis_max": {
            "tie_breaker": 0,
            "queries": [{"match_phrase_prefix": {field: facet_query_text}} for field in match_fields],
        }
    }


def count_aggregations(
    definition: FacetDefinition, candidates: list[FacetCandidate]
) -> tuple[dict[str, Any], dict[str, str]]:
    """One filter aggregation per distinct candidate value.

    Aggregation names are positional because facet values may contain
    characters the engine does not allow in aggregation names.

    Returns:
        (aggregations, value -> aggregation name)
    """
    aggregations: dict[str, Any] = {}
    names: dict[str, str] = {}
    for candidate in candidates:
        if candidate.value in names:
            continue
        name = f"facet_{len(names)}"
        names[candidate.value] = name
        aggregations[name] = {"filter": definition.exact_match_query(candidate.value)}
    return aggregations, names


def rank_options(options: list[FacetOption], start: int, limit: int) -> list[FacetOption]:
    """Order by hit count (descending, stable for ties) then page in memory."""
    ordered = sorted(options, key=lambda option: -option.hit_count)
    return ordered[start : start + limit]


class FacetResolver:
    """Finds facet values matching typed text and counts datasets for each.

    The candidate lookup on the facet's own index runs alongside the boost
    region lookup for the general query's free text. A single zero-size
    dataset search then carries one count aggregation per candidate, so the
    call is two rounds of backend requests. The dataset search runs the
    general query with this facet's own selections removed.
    """

    def __init__(
        self,
        backend: AbstractSearchBackend,
        composer: DatasetQueryComposer,
        datasets_index: str,
        facet_indices: Mapping[FacetType, str],
        min_candidate_fetch: int = 10,
    ):
        self.backend = backend
        self.composer = composer
        self.datasets_index = datasets_index
        self.facet_indices = dict(facet_indices)
        self.min_candidate_fetch = min_candidate_fetch

    def candidate_index(self, facet_type: FacetType) -> str:
        try:
            return self.facet_indices[facet_type]
        except KeyError as exc:
            raise ConfigurationError(f"No candidate index configured for facet {facet_type.value!r}") from exc

    async def find_candidates(
        self, definition: FacetDefinition, facet_query_text: str | None, size: int
    ) -> tuple[int, list[FacetCandidate]]:
        body = {
            "query": candidate_query(facet_query_text, definition.candidate_match_fields),
            "from": 0,
            "size": size,
            "track_total_hits": True,
        }
        response = await self.backend.execute(self.candidate_index(definition.facet_type), body)
        candidates = []
        for source in response.sources():
            value = source.get(definition.candidate_value_field)
            if value is None:
                continue
            identifier = source.get(definition.candidate_identifier_field)
            candidates.append(
                FacetCandidate(value=str(value), identifier=None if identifier is None else str(identifier))
            )
        return response.total_hits, candidates

    async def search_facets(
        self,
        facet_type: FacetType | str,
        general_query: Query,
        start: int,
        limit: int,
        facet_query_text: str | None,
    ) -> FacetSearchResult:
        definition = self.composer.facet_definition(facet_type)
        # Fails before any backend request when the facet has no index
        self.candidate_index(definition.facet_type)

        # Candidates are re-ordered by count before paging, so fetch the whole window from the top
        fetch_size = max(start + limit, self.min_candidate_fetch)
        (total_candidates, candidates), boost_regions = await asyncio.gather(
            self.find_candidates(definition, facet_query_text, fetch_size),
            self.composer.region_resolver.resolve_boost_regions(general_query.free_text),
        )
        if total_candidates == 0 or not candidates:
            logger.debug("No %s candidates for %r", definition.facet_type.value, facet_query_text)
            return FacetSearchResult(hit_count=0, options=[])

        aggregations, names = count_aggregations(definition, candidates)
        body = {
            "from": 0,
            "size": 0,
            "query": await self.composer.compose(
                definition.remove_from_query(general_query), boost_regions=boost_regions
            ),
            "aggs": aggregations,
            "track_total_hits": True,
        }
        response = await self.backend.execute(self.datasets_index, body)

        options = [
            FacetOption(
                value=candidate.value,
                identifier=candidate.identifier,
                hit_count=response.doc_count(names[candidate.value]),
            )
            for candidate in candidates
        ]
        logger.debug(
            "Counted %d %s candidates against %d datasets",
            len(names),
            definition.facet_type.value,
            response.total_hits,
        )
        return FacetSearchResult(hit_count=response.total_hits, options=rank_options(options, start, limit))
