"""Finds regions named in free text so results near them can be boosted."""

import logging

from opendata_search.adapters.search_backend import AbstractSearchBackend
from opendata_search.domain.model import Region


logger = logging.getLogger(__name__)

REGION_SEARCH_FIELD = "regionSearchId"


class RegionResolver:
    """Looks up candidate boost regions for a piece of free text.

    Read-only: one match query against the regions index, results returned
    in the engine's relevance order. Backend errors propagate.
    """

    def __init__(self, backend: AbstractSearchBackend, regions_index: str, candidate_limit: int = 50):
        self.backend = backend
        self.regions_index = regions_index
        self.candidate_limit = candidate_limit

    async def resolve_boost_regions(self, free_text: str | None) -> list[Region]:
        if not free_text or not free_text.strip():
            return []

        body = {
            "query": {
                "match": {
                    REGION_SEARCH_FIELD: {
                        "query": free_text,
                        "operator": "or",
                    }
                }
            },
            "size": self.candidate_limit,
        }
        response = await self.backend.execute(self.regions_index, body)
        regions = [Region.model_validate(source) for source in response.sources()]
        logger.debug("Resolved %d boost regions for free text", len(regions))
        return regions
