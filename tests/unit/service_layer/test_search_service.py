"""Unit tests for SearchService orchestration."""

import pytest

from opendata_search.config import Settings
from opendata_search.domain.model import FacetType, Query, SearchStrategy
from opendata_search.exceptions import BackendError
from opendata_search.service_layer.search_service import SearchService
from tests.fixtures.fake_backend import hits_body


TEMPORAL_AGGS = {
    "minDate": {"value": 1577836800000.0, "value_as_string": "2020-01-01T00:00:00.000Z"},
    "maxDate": {"value": 1609372800000.0, "value_as_string": "2020-12-31T00:00:00.000Z"},
}


@pytest.fixture
def service(backend) -> SearchService:
    return SearchService.from_settings(backend, Settings())


def _language_clause(body: dict) -> dict:
    must = body["query"]["function_score"]["query"]["bool"]["must"]
    return must[0]["dis_max"]["queries"][0]["bool"]["should"][0]["simple_query_string"]


class TestSearch:
    @pytest.mark.asyncio
    async def test_no_text_returns_everything_with_match_all(self, backend, service):
        backend.queue(
            "datasets",
            hits_body(
                [{"identifier": "ds-1", "title": "Rainfall"}, {"identifier": "ds-2", "title": "Roads"}],
                total=2,
                aggregations=TEMPORAL_AGGS,
                scores=[3.5, 1.0],
            ),
        )

        result = await service.search(Query(), 0, 10, 10)

        assert result.hit_count == 2
        assert result.strategy is SearchStrategy.MATCH_ALL
        assert result.datasets[0] == {"identifier": "ds-1", "title": "Rainfall", "score": 3.5}
        assert result.facets == []
        assert result.query == Query()
        assert backend.calls_for("regions") == []
        assert _language_clause(backend.calls_for("datasets")[0])["query"] == "*"

    @pytest.mark.asyncio
    async def test_request_carries_paging_and_temporal_aggregations(self, backend, service):
        await service.search(Query(), 20, 5)

        [body] = backend.calls_for("datasets")
        assert body["from"] == 20
        assert body["size"] == 5
        assert body["aggs"] == {
            "minDate": {"min": {"field": "temporal.start.date"}},
            "maxDate": {"max": {"field": "temporal.end.date"}},
        }

    @pytest.mark.asyncio
    async def test_temporal_range_from_aggregations(self, backend, service):
        backend.queue("datasets", hits_body([{"identifier": "ds-1"}], aggregations=TEMPORAL_AGGS))

        result = await service.search(Query())

        assert result.temporal.start.date == "2020-01-01T00:00:00.000Z"
        assert result.temporal.start.text == "01 January 2020"
        assert result.temporal.end.date == "2020-12-31T00:00:00.000Z"

    @pytest.mark.asyncio
    async def test_temporal_range_empty_without_dates(self, backend, service):
        backend.queue("datasets", hits_body([], aggregations={"minDate": {"value": None}, "maxDate": {"value": None}}))

        result = await service.search(Query())

        assert result.temporal.start is None
        assert result.temporal.end is None

    @pytest.mark.asyncio
    async def test_relaxes_to_match_part_when_nothing_matches_every_term(self, backend, service):
        backend.queue("datasets", hits_body([], total=0))
        backend.queue("datasets", hits_body([{"identifier": "ds-9"}], total=1))

        result = await service.search(Query(free_text="water quality rivers"))

        strict, relaxed = backend.calls_for("datasets")
        assert _language_clause(strict)["default_operator"] == "and"
        assert _language_clause(relaxed)["default_operator"] == "or"
        assert _language_clause(relaxed)["minimum_should_match"] == "50%"
        assert result.strategy is SearchStrategy.MATCH_PART
        assert result.hit_count == 1
        # Boost regions are resolved once for both attempts
        assert len(backend.calls_for("regions")) == 1

    @pytest.mark.asyncio
    async def test_single_term_is_never_relaxed(self, backend, service):
        result = await service.search(Query(free_text="rainfall"))

        assert len(backend.calls_for("datasets")) == 1
        assert result.strategy is SearchStrategy.MATCH_ALL
        assert result.hit_count == 0

    @pytest.mark.asyncio
    async def test_backend_failure_is_not_retried(self, backend, service):
        backend.queue("datasets", BackendError("down", index="datasets"))

        with pytest.raises(BackendError):
            await service.search(Query(free_text="water quality"))

        assert len(backend.calls_for("datasets")) == 1


class TestSearchFacets:
    @pytest.mark.asyncio
    async def test_uses_configured_facet_index(self, backend, monkeypatch):
        monkeypatch.setenv("PUBLISHERS_INDEX_ID", "publishers-v3")
        service = SearchService.from_settings(backend, Settings())
        backend.queue("publishers-v3", hits_body([], total=0))

        result = await service.search_facets(FacetType.PUBLISHER, Query(), 0, 10, "bur")

        assert result.hit_count == 0
        assert [index for index, _ in backend.calls] == ["publishers-v3"]

    @pytest.mark.asyncio
    async def test_region_facet_searches_regions_index(self, backend, service):
        backend.queue("regions", hits_body([{"regionSearchId": "STE/6", "regionId": "6"}]))
        backend.queue("datasets", hits_body([], total=4, aggregations={"facet_0": {"doc_count": 4}}))

        result = await service.search_facets(FacetType.REGION, Query(), 0, 10, "tas")

        assert [index for index, _ in backend.calls] == ["regions", "datasets"]
        assert [(o.value, o.hit_count) for o in result.options] == [("STE/6", 4)]
