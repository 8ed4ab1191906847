"""Static field tables for dataset text matching."""

from dataclasses import dataclass


@dataclass(frozen=True)
class FieldWeight:
    path: str
    boost: float | None = None

    def to_es(self) -> str:
        if self.boost is None:
            return self.path
        return f"{self.path}^{self.boost:g}"


# Fields indexed with language analysis (stemming, stop words)
DATASETS_LANGUAGE_FIELDS: tuple[FieldWeight, ...] = (
    FieldWeight("title", 50),
    FieldWeight("description", 2),
    FieldWeight("publisher.name"),
    FieldWeight("keywords", 10),
    FieldWeight("themes"),
)

# Fields indexed as raw tokens; they must never share a simple_query_string with the language fields
NON_LANGUAGE_FIELDS: tuple[FieldWeight, ...] = (
    FieldWeight("_id"),
    FieldWeight("catalog"),
    FieldWeight("accrualPeriodicity"),
    FieldWeight("contactPoint.identifier"),
    FieldWeight("publisher.acronym"),
)

DISTRIBUTIONS_PATH = "distributions"

DISTRIBUTION_FIELDS: tuple[str, ...] = (
    "distributions.title",
    "distributions.description",
    "distributions.format",
)

QUOTE_FIELD_SUFFIX = ".quote"

TEMPORAL_START_FIELD = "temporal.start.date"
TEMPORAL_END_FIELD = "temporal.end.date"
