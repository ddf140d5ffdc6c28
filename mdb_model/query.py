"""
Query condition accumulator.

``QueryState`` holds everything a chain of builder calls has configured:
filter clauses, sort, pagination, projection, visibility overrides and the
multi-document/upsert flags. It is immutable; every transition returns a new
state, so a state captured by one chain is never changed by another.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from .constants import AND_OPERATOR
from .exceptions import FilterRequiredError


@dataclass(frozen=True)
class QueryState:
    filters: tuple[dict[str, Any], ...] = ()
    all_matches: bool = False
    upsert: bool = False
    projection: dict[str, Any] | None = None
    sort: dict[str, Any] = field(default_factory=dict)
    skip: int = 0
    limit: int = 0
    batch_size: int = 0
    visible_fields: tuple[str, ...] = ()

    # --- transitions ---

    def where(self, filter: Mapping[str, Any]) -> "QueryState":
        return replace(self, filters=self.filters + (dict(filter),))

    def sort_by(self, sort: Mapping[str, Any]) -> "QueryState":
        return replace(self, sort=dict(sort))

    def with_skip(self, count: int) -> "QueryState":
        return replace(self, skip=_non_negative("skip", count))

    def with_limit(self, count: int) -> "QueryState":
        return replace(self, limit=_non_negative("limit", count))

    def with_batch_size(self, count: int) -> "QueryState":
        return replace(self, batch_size=_non_negative("batch_size", count))

    def select(self, projection: Mapping[str, Any]) -> "QueryState":
        return replace(self, projection=dict(projection))

    def visible(self, names: Iterable[str]) -> "QueryState":
        if isinstance(names, str):
            names = [names]
        return replace(self, visible_fields=tuple(names))

    def all(self) -> "QueryState":
        return replace(self, all_matches=True)

    def with_upsert(self) -> "QueryState":
        return replace(self, upsert=True)

    # --- compilation ---

    def build_filter(self) -> dict[str, Any]:
        """Conjunction of all filter clauses; ``{}`` matches the whole collection."""
        if not self.filters:
            return {}
        return {AND_OPERATOR: [dict(f) for f in self.filters]}

    def require_filter(self, operation: str, collection: str | None = None) -> dict[str, Any]:
        """
        Conjunction of all filter clauses for a write.

        Raises:
            FilterRequiredError: If no filter clause was configured
        """
        if not self.filters:
            raise FilterRequiredError(operation, collection=collection)
        return self.build_filter()

    def sort_spec(self) -> list[tuple[str, Any]] | None:
        """Sort document as a pymongo sort list, or None when unsorted."""
        if not self.sort:
            return None
        return list(self.sort.items())

    def find_options(self) -> dict[str, Any]:
        """Keyword arguments for ``Collection.find``; zero means unset."""
        options: dict[str, Any] = {}
        sort = self.sort_spec()
        if sort:
            options["sort"] = sort
        if self.skip > 0:
            options["skip"] = self.skip
        if self.limit > 0:
            options["limit"] = self.limit
        if self.batch_size > 0:
            options["batch_size"] = self.batch_size
        if self.projection is not None:
            options["projection"] = self.projection
        return options

    def count_options(self) -> dict[str, Any]:
        """Keyword arguments for ``Collection.count_documents``; zero means unset."""
        options: dict[str, Any] = {}
        if self.skip > 0:
            options["skip"] = self.skip
        if self.limit > 0:
            options["limit"] = self.limit
        return options


def _non_negative(name: str, count: int) -> int:
    if count < 0:
        raise ValueError(f"{name} must be >= 0, got {count}")
    return count
