"""Facet strategies.

One ``FacetDefinition`` per ``FacetType``, registered in a static lookup.
Each definition knows how to test a dataset against one of its values and
how to strip its own selections from a query, which is what lets facet
counts be computed as if that facet had not been applied.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Any, ClassVar

from opendata_search.domain.model import FacetType, Query
from opendata_search.exceptions import ConfigurationError


class FacetDefinition(ABC):
    """Strategy for a single facet dimension.

    The ``candidate_*`` attributes name the fields of the facet's own index:
    the value handed back to ``exact_match_query``, an optional identifier,
    and the fields the typed facet text is prefix-matched against.
    """

    facet_type: ClassVar[FacetType]
    candidate_value_field: ClassVar[str] = "value"
    candidate_identifier_field: ClassVar[str] = "identifier"
    candidate_match_fields: ClassVar[tuple[str, ...]] = ("value", "acronym")

    @abstractmethod
    def exact_match_query(self, value: str) -> dict[str, Any]:
        """Query fragment matching datasets that carry ``value`` for this facet."""

    @abstractmethod
    def selected_values(self, query: Query) -> tuple[str, ...]:
        """Values of this facet currently applied in ``query``."""

    @abstractmethod
    def remove_from_query(self, query: Query) -> Query:
        """Copy of ``query`` with this facet's selections cleared and every other filter kept."""

    def filter_query(self, query: Query) -> dict[str, Any] | None:
        """Hard constraint for the selected values: a dataset must match at least one of them."""
        values = self.selected_values(query)
        if not values:
            return None
        return {
            "bool": {
                "should": [self.exact_match_query(value) for value in values],
                "minimum_should_match": 1,
            }
        }


class PublisherFacetDefinition(FacetDefinition):
    facet_type = FacetType.PUBLISHER

    def exact_match_query(self, value: str) -> dict[str, Any]:
        return {"term": {"publisher.name.keyword": value}}

    def selected_values(self, query: Query) -> tuple[str, ...]:
        return query.publishers

    def remove_from_query(self, query: Query) -> Query:
        return query.model_copy(update={"publishers": ()})


class FormatFacetDefinition(FacetDefinition):
    facet_type = FacetType.FORMAT

    def exact_match_query(self, value: str) -> dict[str, Any]:
        # Formats live on child distribution documents
        return {
            "nested": {
                "path": "distributions",
                "query": {"term": {"distributions.format.keyword": value}},
            }
        }

    def selected_values(self, query: Query) -> tuple[str, ...]:
        return query.formats

    def remove_from_query(self, query: Query) -> Query:
        return query.model_copy(update={"formats": ()})


class RegionFacetDefinition(FacetDefinition):
    """Regions match by geometry: datasets whose extent intersects the region's shape.

    Values are region search ids (``TYPE/ID``). Shapes live in the regions
    index, so the clause builder is supplied by whoever knows that index.
    """

    facet_type = FacetType.REGION
    candidate_value_field = "regionSearchId"
    candidate_identifier_field = "regionId"
    candidate_match_fields = ("regionName", "regionShortName")

    def __init__(self, shape_query: Callable[[str], dict[str, Any]]):
        self.shape_query = shape_query

    def exact_match_query(self, value: str) -> dict[str, Any]:
        return self.shape_query(value)

    def selected_values(self, query: Query) -> tuple[str, ...]:
        return tuple(region.search_id for region in query.regions)

    def remove_from_query(self, query: Query) -> Query:
        return query.model_copy(update={"regions": ()})

    def filter_query(self, query: Query) -> dict[str, Any] | None:
        # Selected regions are each required on their own by the dataset query
        return None


def build_facet_definitions(
    region_shape_query: Callable[[str], dict[str, Any]],
) -> dict[FacetType, FacetDefinition]:
    """The lookup of facet strategies, one per ``FacetType``."""
    definitions = (
        PublisherFacetDefinition(),
        FormatFacetDefinition(),
        RegionFacetDefinition(region_shape_query),
    )
    return {definition.facet_type: definition for definition in definitions}


def get_facet_definition(
    facet_type: FacetType | str, definitions: Mapping[FacetType, FacetDefinition]
) -> FacetDefinition:
    """Look up the strategy for ``facet_type``.

    Raises:
        ConfigurationError: if the facet type is not one of the registered kinds.
    """
    try:
        resolved = FacetType(facet_type)
    except ValueError as exc:
        raise ConfigurationError(f"Unknown facet type: {facet_type!r}") from exc
    try:
        return definitions[resolved]
    except KeyError as exc:
        raise ConfigurationError(f"No facet definition registered for {resolved.value!r}") from exc
