"""Service layer - the search operations exposed to the HTTP surface."""

from opendata_search.service_layer.search_service import SearchService


__all__ = ["SearchService"]
