"""Infrastructure adapters for the search core."""

from opendata_search.adapters.search_backend import (
    AbstractSearchBackend,
    BackendResponse,
    ElasticsearchBackend,
    create_backend,
)


__all__ = [
    "AbstractSearchBackend",
    "BackendResponse",
    "ElasticsearchBackend",
    "create_backend",
]
