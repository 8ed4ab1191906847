import pytest

from opendata_search.exceptions import BackendError
from opendata_search.search.region_resolver import RegionResolver
from tests.fixtures.fake_backend import hits_body


TASMANIA_SOURCE = {
    "regionType": "STE",
    "regionId": "6",
    "regionSearchId": "STE/6",
    "regionName": "Tasmania",
    "regionShortName": "TAS",
    "boundingBox": {"type": "envelope"},
}


class TestRegionResolver:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", [None, "", "  "])
    async def test_blank_text_needs_no_lookup(self, backend, text):
        resolver = RegionResolver(backend, "regions")

        assert await resolver.resolve_boost_regions(text) == []
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_disjunctive_match_capped_at_candidate_limit(self, backend):
        backend.queue("regions", hits_body([TASMANIA_SOURCE]))
        resolver = RegionResolver(backend, "regions")

        regions = await resolver.resolve_boost_regions("water in tasmania")

        [body] = backend.calls_for("regions")
        assert body == {
            "query": {"match": {"regionSearchId": {"query": "water in tasmania", "operator": "or"}}},
            "size": 50,
        }
        assert [region.region_search_id for region in regions] == ["STE/6"]
        assert regions[0].display_names == ["Tasmania", "TAS"]

    @pytest.mark.asyncio
    async def test_keeps_engine_relevance_order(self, backend):
        second = {**TASMANIA_SOURCE, "regionId": "7", "regionSearchId": "STE/7", "regionName": "Victoria"}
        backend.queue("regions", hits_body([second, TASMANIA_SOURCE]))
        resolver = RegionResolver(backend, "regions", candidate_limit=5)

        regions = await resolver.resolve_boost_regions("victoria tasmania")

        assert [region.region_search_id for region in regions] == ["STE/7", "STE/6"]
        assert backend.calls_for("regions")[0]["size"] == 5

    @pytest.mark.asyncio
    async def test_backend_errors_propagate(self, backend):
        backend.queue("regions", BackendError("boom", index="regions"))
        resolver = RegionResolver(backend, "regions")

        with pytest.raises(BackendError):
            await resolver.resolve_boost_regions("tasmania")
