"""Domain models for dataset search.

Following Cosmic Python principles:
- Value Objects are immutable (frozen=True)
- No infrastructure dependencies

Field names are snake_case in Python and camelCase on the wire, matching
the documents stored in the search engine and the JSON returned to callers.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class FacetType(str, Enum):
    """Closed set of facet dimensions a dataset search can be narrowed by."""

    PUBLISHER = "publisher"
    FORMAT = "format"
    REGION = "region"


class SearchStrategy(str, Enum):
    """Which text matching strategy produced a dataset result."""

    MATCH_ALL = "match-all"
    MATCH_PART = "match-part"


class QueryRegion(_CamelModel):
    """A user-selected region filter, referenced by type and id."""

    region_type: str = Field(min_length=1)
    region_id: str = Field(min_length=1)

    @property
    def search_id(self) -> str:
        """Identifier of the region document in the regions index."""
        return f"{self.region_type}/{self.region_id}"


class Region(_CamelModel):
    """A region document as stored in the regions index.

    The geometry itself stays in the search engine and is only ever
    referenced by ``region_search_id``.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True, extra="ignore")

    region_type: str
    region_id: str
    region_search_id: str
    region_name: str | None = None
    region_short_name: str | None = None

    @property
    def display_names(self) -> list[str]:
        return [name for name in (self.region_name, self.region_short_name) if name]


class Query(_CamelModel):
    """Value object for a structured dataset search request.

    Immutable per search call. Facet filters are held per facet type so a
    facet strategy can remove its own filter without touching the others.
    """

    free_text: str | None = None
    regions: tuple[QueryRegion, ...] = ()
    date_from: datetime | None = None
    date_to: datetime | None = None
    publishers: tuple[str, ...] = ()
    formats: tuple[str, ...] = ()

    @property
    def has_free_text(self) -> bool:
        return bool(self.free_text and self.free_text.strip())


class FacetOption(_CamelModel):
    """A facet value together with the dataset count it would produce if selected."""

    value: str
    identifier: str | None = None
    hit_count: int = 0
    matched: bool = False
    count_error_upper_bound: int = 0


class FacetSearchResult(_CamelModel):
    hit_count: int
    options: list[FacetOption] = Field(default_factory=list)


class PeriodOfTime(_CamelModel):
    date: str
    text: str


class Temporal(_CamelModel):
    """Earliest start and latest end across all datasets matching a search."""

    start: PeriodOfTime | None = None
    end: PeriodOfTime | None = None


class SearchResult(_CamelModel):
    """Envelope returned by a primary dataset search."""

    query: Query
    hit_count: int
    datasets: list[dict[str, Any]] = Field(default_factory=list)
    facets: list[Any] = Field(default_factory=list)
    strategy: SearchStrategy = SearchStrategy.MATCH_ALL
    temporal: Temporal = Field(default_factory=Temporal)
