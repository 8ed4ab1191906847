"""Lexical ranking queries over dataset documents.

A dataset text query is the best-of union (``dis_max``) of:

* the dataset's own fields, split into language-analyzed and raw-token
  groups that are queried separately and OR-ed together, and
* a nested query over its distributions, scored by the best distribution.

The two field groups are analyzed differently, so a single
``simple_query_string`` over both with ``default_operator=and`` would
require every term to match in one combined field set that can never
agree (e.g. ``+(catalog:at | _id:at)``). Keeping them in separate clauses
lets either group satisfy the query on its own.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
import re
from typing import Any

from opendata_search.domain.model import Region
from opendata_search.search.fields import (
    DATASETS_LANGUAGE_FIELDS,
    DISTRIBUTION_FIELDS,
    DISTRIBUTIONS_PATH,
    NON_LANGUAGE_FIELDS,
    QUOTE_FIELD_SUFFIX,
)


MATCH_ALL_TOKEN = "*"


@dataclass(frozen=True)
class TextMatchOptions:
    """How strictly multi-term free text must match."""

    default_operator: str = "and"
    minimum_should_match: str | None = None

    def apply(self, clause: dict[str, Any]) -> dict[str, Any]:
        clause["default_operator"] = self.default_operator
        if self.minimum_should_match is not None:
            clause["minimum_should_match"] = self.minimum_should_match
        return clause


MATCH_ALL_TERMS = TextMatchOptions()


def sanitise_free_text(text: str | None) -> str:
    """Replace missing or blank text with the match-everything wildcard."""
    if not text or not text.strip():
        return MATCH_ALL_TOKEN
    return text


def build_text_query(text: str | None, options: TextMatchOptions = MATCH_ALL_TERMS) -> dict[str, Any]:
    input_text = sanitise_free_text(text)

    def simple_query_string(fields: Sequence[str], **extra: Any) -> dict[str, Any]:
        return {"simple_query_string": options.apply({"query": input_text, "fields": list(fields), **extra})}

    dataset_fields_query = {
        "bool": {
            "should": [
                simple_query_string(
                    [field.to_es() for field in DATASETS_LANGUAGE_FIELDS],
                    quote_field_suffix=QUOTE_FIELD_SUFFIX,
                ),
                simple_query_string(
                    [field.to_es() for field in NON_LANGUAGE_FIELDS],
                    quote_field_suffix=QUOTE_FIELD_SUFFIX,
                ),
            ],
            "minimum_should_match": 1,
        }
    }

    # Language analysis only applies to nested objects inside a nested query
    distributions_query = {
        "nested": {
            "path": DISTRIBUTIONS_PATH,
            "score_mode": "max",
            "query": simple_query_string(DISTRIBUTION_FIELDS),
        }
    }

    return {"dis_max": {"queries": [dataset_fields_query, distributions_query]}}


def strip_region_names(text: str, regions: Sequence[Region]) -> str:
    """Remove every region display name from ``text``.

    Names are removed longest first, case-insensitively, as literal
    substrings (so a name embedded inside another word goes too). Names of
    equal length keep the order of ``regions``, so the result does not vary
    between processes.
    Returns the wildcard when nothing is left.
    """
    names = dict.fromkeys(name for region in regions for name in region.display_names)
    stripped = text
    for name in sorted(names, key=len, reverse=True):
        stripped = re.sub(re.escape(name), "", stripped, flags=re.IGNORECASE)
    stripped = " ".join(stripped.split())
    return stripped or MATCH_ALL_TOKEN


def build_region_aware_text_query(
    text: str | None,
    boost_regions: Sequence[Region],
    geo_clause: Callable[[Region], dict[str, Any]],
    options: TextMatchOptions = MATCH_ALL_TERMS,
) -> dict[str, Any]:
    """Text query that also accepts "text minus region names, inside those regions".

    Without boost regions this is exactly ``build_text_query``.
    """
    full_text_query = build_text_query(text, options)
    if not boost_regions:
        return full_text_query

    text_without_regions = strip_region_names(sanitise_free_text(text), boost_regions)
    return {
        "bool": {
            "should": [
                full_text_query,
                {
                    "bool": {
                        "must": [
                            build_text_query(text_without_regions, options),
                            *(geo_clause(region) for region in boost_regions),
                        ]
                    }
                },
            ],
            "minimum_should_match": 1,
        }
    }
