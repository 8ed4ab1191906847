"""Error taxonomy for the dataset search core."""


class SearchError(Exception):
    """Base class for all search core failures."""


class BackendError(SearchError):
    """The search backend rejected or failed to answer a request."""

    def __init__(self, message: str, *, index: str | None = None) -> None:
        super().__init__(message)
        self.index = index


class BackendUnavailableError(BackendError):
    """The search backend could not be reached at all."""


class ConfigurationError(SearchError, ValueError):
    """A caller asked for something the core was never configured with (e.g. an unknown facet type)."""
