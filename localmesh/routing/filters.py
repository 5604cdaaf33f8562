"""Attribute filters for broker triggers.

A FilterSet is an ordered sequence of exact-match conditions on event
attributes with AND semantics. Two filter sets are equivalent when they hold
the same (key, value) pairs, whatever their order. Equivalence is always a
value comparison.
"""

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Mapping, Tuple

from localmesh.errors import SpecError


@dataclass(frozen=True)
class AttributeFilter:
    """Exact-match condition on one event attribute."""
    key: str
    value: str

    def matches(self, attributes: Mapping[str, Any]) -> bool:
        return self.key in attributes and attributes[self.key] == self.value

    def to_dict(self) -> Dict[str, str]:
        return {"key": self.key, "value": self.value}

    def __str__(self) -> str:
        return f"{self.key}={self.value}"


@dataclass(frozen=True)
class FilterSet:
    """Ordered, immutable sequence of AttributeFilters."""
    filters: Tuple[AttributeFilter, ...] = ()

    @classmethod
    def of(cls, *filters: AttributeFilter) -> "FilterSet":
        return cls(tuple(filters))

    @classmethod
    def from_dicts(cls, items: Iterable[Mapping[str, Any]]) -> "FilterSet":
        """Build from [{key, value}, ...] documents."""
        result = []
        for item in items:
            if "key" not in item or "value" not in item:
                raise SpecError(f"filter must have key and value: {dict(item)}")
            result.append(build_exact_filter(str(item["key"]), str(item["value"])))
        return cls(tuple(result))

    def to_dicts(self) -> List[Dict[str, str]]:
        return [f.to_dict() for f in self.filters]

    def pairs(self) -> FrozenSet[Tuple[str, str]]:
        return frozenset((f.key, f.value) for f in self.filters)

    def __iter__(self) -> Iterator[AttributeFilter]:
        return iter(self.filters)

    def __len__(self) -> int:
        return len(self.filters)

    def __str__(self) -> str:
        if not self.filters:
            return "*"
        return ",".join(str(f) for f in self.filters)


def build_exact_filter(key: str, value: str) -> AttributeFilter:
    """Construct a single exact-match filter. No wildcard or regex support."""
    if not key:
        raise SpecError("filter key must not be empty")
    return AttributeFilter(key=key, value=value)


def matches(filter_set: FilterSet, attributes: Mapping[str, Any]) -> bool:
    """True iff every filter's key is present with an identical value.

    An empty filter set matches every event.
    """
    return all(f.matches(attributes) for f in filter_set)


def equivalent(a: FilterSet, b: FilterSet) -> bool:
    """Set equality of (key, value) pairs, independent of order."""
    return a.pairs() == b.pairs()


__all__ = [
    "AttributeFilter",
    "FilterSet",
    "build_exact_filter",
    "matches",
    "equivalent",
]
