"""FieldResolver: Declarative priority resolution of aggregate fields.

Each output field has an ordered list of candidates. A candidate names one
or more sources and an extractor. Resolution for a field:
    1. Walk candidates in order
    2. Skip a candidate if none of its sources succeeded
    3. Call the extractor with the successful payloads (in source order)
    4. The first non-None extracted value wins
    5. If nothing wins, use the field's default

.. code-block:: python

    >>> resolver = FieldResolver()
    >>> resolution = resolver.resolve({"manifest": SourceResult.success("manifest", {"swaps": 42})})
    >>> resolution.values["totalSwaps"]
    42
    >>> resolution.provenance["totalSwaps"]
    'manifest'
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from .sources.base import SourceResult

Extractor = Callable[[Sequence[Any]], Any]


@dataclass(frozen=True)
class Candidate:
    """One prioritized way to obtain a field value.

    :ivar sources: Source names whose payloads feed the extractor.
    :ivar extract: Callable taking the successful payloads, returning a value
        or None when it has nothing to offer.
    """

    sources: tuple[str, ...]
    extract: Extractor

    @property
    def label(self) -> str:
        """Human-readable provenance label."""
        return "+".join(self.sources)


@dataclass(frozen=True)
class FieldRule:
    """Resolution rule for one output field.

    :ivar name: Output field name.
    :ivar candidates: Candidates in priority order.
    :ivar default: Factory for the fallback value.
    """

    name: str
    candidates: tuple[Candidate, ...]
    default: Callable[[], Any]


@dataclass
class Resolution:
    """Resolved field values and where each one came from.

    :ivar values: Field name to resolved value (every rule present).
    :ivar provenance: Field name to candidate label, or "default".
    """

    values: dict[str, Any] = field(default_factory=dict)
    provenance: dict[str, str] = field(default_factory=dict)

    @property
    def defaulted(self) -> list[str]:
        """Fields that fell back to their default."""
        return [k for k, v in self.provenance.items() if v == "default"]


def path(*keys: str) -> Extractor:
    """Extractor reading a nested key path from the first payload.

    Missing keys or non-dict intermediates yield None.
    """

    def extract(payloads: Sequence[Any]) -> Any:
        value: Any = payloads[0]
        for key in keys:
            if not isinstance(value, Mapping):
                return None
            value = value.get(key)
        return value

    return extract


def as_number(value: Any) -> int | float | None:
    """Coerce a JSON value to a finite number.

    Ints and floats pass through; numeric strings are parsed. Booleans,
    containers and anything unparseable yield None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            value = float(text)
        except ValueError:
            return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return value
    return None


def number(*keys: str) -> Extractor:
    """Extractor reading a nested key path as a number (see as_number)."""
    getter = path(*keys)

    def extract(payloads: Sequence[Any]) -> Any:
        return as_number(getter(payloads))

    return extract


def summed(*keys: str) -> Extractor:
    """Extractor summing a nested numeric key path across all payloads."""
    getter = path(*keys)

    def extract(payloads: Sequence[Any]) -> Any:
        values = [as_number(getter([p])) for p in payloads]
        numbers = [v for v in values if v is not None]
        if not numbers:
            return None
        return sum(numbers)

    return extract


def one(source: str, *keys: str) -> Candidate:
    """Candidate reading a key path from a single source."""
    return Candidate(sources=(source,), extract=path(*keys))


def one_number(source: str, *keys: str) -> Candidate:
    """Candidate reading a numeric key path from a single source."""
    return Candidate(sources=(source,), extract=number(*keys))


CHAIN_SOURCES = ("solana", "ethereum")

# Output field -> key under the health payload's "stats"
_HEALTH_KEYS = {
    "miningSessions": "mining_sessions",
    "inMempool": "in_mempool",
    "sent": "sent",
    "failed": "failed",
    "drifted": "drifted",
    "priority": "priority",
}


def _health_stat(name: str) -> FieldRule:
    return FieldRule(name, (one_number("health", "stats", _HEALTH_KEYS[name]),), lambda: 0)


FIELD_RULES: tuple[FieldRule, ...] = (
    FieldRule(
        "totalSwaps",
        (
            one_number("manifest", "swaps"),
            Candidate(sources=CHAIN_SOURCES, extract=summed("stats", "totalSwaps")),
        ),
        lambda: 0,
    ),
    FieldRule("bxSwaps", (one_number("manifest", "bxSwaps"),), lambda: 0),
    FieldRule(
        "totalValue",
        (one_number("health", "stats", "estimates", "max_claim_estimate_usd"),),
        lambda: 0,
    ),
    FieldRule(
        "driftRiskUsd",
        (one_number("health", "stats", "estimates", "drift_risk_usd"),),
        lambda: 0,
    ),
    *(_health_stat(name) for name in _HEALTH_KEYS),
    FieldRule("pondProStatus", (one("manifest", "isPro"),), lambda: False),
    FieldRule("proAgo", (one_number("manifest", "proAgo"),), lambda: None),
    FieldRule("badges", (one("manifest", "badges"),), list),
    FieldRule("hasTwitter", (one("manifest", "hasTwitter"),), lambda: False),
    FieldRule("cope", (one("manifest", "cope"),), lambda: False),
    FieldRule("hasActiveMining", (one("mining", "hasActiveMining"),), lambda: False),
    FieldRule("miningSignature", (one("mining", "miningSignature"),), lambda: None),
)


class FieldResolver:
    """Evaluates a table of FieldRules against a set of SourceResults.

    :ivar rules: Rules evaluated, in output order.
    """

    def __init__(self, rules: Sequence[FieldRule] = FIELD_RULES) -> None:
        """Initialize the resolver.

        :param rules: Field rules to evaluate (default: FIELD_RULES).
        :raises ValueError: If two rules share a field name.
        """
        names = [r.name for r in rules]
        if len(names) != len(set(names)):
            raise ValueError("Field rules must have unique names")
        self.rules = tuple(rules)

    @property
    def field_names(self) -> list[str]:
        """Names of every field this resolver produces."""
        return [r.name for r in self.rules]

    def resolve(self, results: Mapping[str, SourceResult]) -> Resolution:
        """Resolve every field from the given source outcomes.

        Sources absent from results are treated as failed.

        :param results: Source name to SourceResult.
        :returns: Resolution with a value for every rule.
        """
        resolution = Resolution()
        for rule in self.rules:
            value, label = self._resolve_rule(rule, results)
            resolution.values[rule.name] = value
            resolution.provenance[rule.name] = label
        return resolution

    def _resolve_rule(
        self, rule: FieldRule, results: Mapping[str, SourceResult]
    ) -> tuple[Any, str]:
        for candidate in rule.candidates:
            payloads = [
                results[s].payload
                for s in candidate.sources
                if s in results and results[s].ok
            ]
            if not payloads:
                continue
            value = candidate.extract(payloads)
            if value is not None:
                return value, candidate.label
        return rule.default(), "default"
