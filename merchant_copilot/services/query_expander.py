"""Rule-based query expansion for the alternative-query retry stage."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from merchant_copilot.services.vocabulary import GENERIC_DOMAIN_TERMS, query_tokens

logger = logging.getLogger(__name__)

MAX_ALTERNATIVES = 5


@runtime_checkable
class QueryExpansionStrategy(Protocol):
    """Anything that can propose alternative phrasings for a query."""

    def expand(self, original_query: str) -> list[str]: ...


@dataclass(frozen=True)
class PhraseCluster:
    """Alternative phrases contributed when any trigger occurs in the query."""

    name: str
    triggers: tuple[str, ...]
    phrases: tuple[str, ...]

    def applies_to(self, query_lower: str) -> bool:
        return any(trigger in query_lower for trigger in self.triggers)


DEFAULT_CLUSTERS: tuple[PhraseCluster, ...] = (
    PhraseCluster(
        name="processor_support",
        triggers=("tsys", "support", "help"),
        phrases=(
            "TSYS customer support info",
            "TSYS support",
            "customer support",
            "technical support",
            "help desk",
            "TSYS Global",
            "TSYS_Global",
            "processor support",
            "TSYS documentation",
        ),
    ),
    PhraseCluster(
        name="merchant_application",
        triggers=("merchant", "application"),
        phrases=(
            "merchant application",
            "TRX_Merchant_Application",
            "application form",
            "signup form",
            "enrollment",
            "TRX merchant",
            "merchant app",
        ),
    ),
    PhraseCluster(
        name="clearent",
        triggers=("clearent", "clearant"),
        phrases=("clearent", "clearant", "application", "link", "clearent application"),
    ),
    PhraseCluster(
        name="risk_compliance",
        triggers=("high risk", "risk"),
        phrases=(
            "permissible high risk",
            "risk list",
            "business categories",
            "prohibited business",
        ),
    ),
    PhraseCluster(
        name="ach_banking",
        triggers=("ach", "bank"),
        phrases=("ACH form", "bank transfer", "electronic transfer", "TSYS ACH", "global ACH"),
    ),
)


class QueryExpander:
    """Derive up to five distinct alternative search phrasings.

    Cluster phrases come first but leave room for at least one generic
    domain term; remaining slots go to further generic terms and then to
    the individual query tokens. The original query is never returned.
    """

    def __init__(
        self,
        clusters: tuple[PhraseCluster, ...] = DEFAULT_CLUSTERS,
        max_alternatives: int = MAX_ALTERNATIVES,
    ) -> None:
        self._clusters = clusters
        self._max = max_alternatives

    def expand(self, original_query: str) -> list[str]:
        query_lower = original_query.lower()
        seen: set[str] = {query_lower.strip()}
        alternatives: list[str] = []

        def add(phrase: str, limit: int) -> None:
            key = phrase.lower()
            if len(alternatives) < limit and key not in seen:
                seen.add(key)
                alternatives.append(phrase)

        for cluster in self._clusters:
            if cluster.applies_to(query_lower):
                for phrase in cluster.phrases:
                    add(phrase, self._max - 1)

        for phrase in GENERIC_DOMAIN_TERMS:
            add(phrase, self._max)
        for token in query_tokens(original_query):
            add(token, self._max)

        logger.debug("Expanded query into %d alternatives", len(alternatives))
        return alternatives
