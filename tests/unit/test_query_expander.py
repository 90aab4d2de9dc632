"""Unit tests for rule-based query expansion."""

from __future__ import annotations

from merchant_copilot.services.query_expander import (
    PhraseCluster,
    QueryExpander,
    QueryExpansionStrategy,
)


class TestQueryExpander:
    def test_tsys_support_expansion(self) -> None:
        assert QueryExpander().expand("TSYS support") == [
            "TSYS customer support info",
            "customer support",
            "technical support",
            "help desk",
            "payment processing",
        ]

    def test_never_more_than_five_alternatives(self) -> None:
        alternatives = QueryExpander().expand("merchant application for high risk ach bank")
        assert len(alternatives) == 5

    def test_original_query_excluded(self) -> None:
        alternatives = QueryExpander().expand("payment processing")
        assert "payment processing" not in [a.lower() for a in alternatives]

    def test_alternatives_are_case_insensitively_distinct(self) -> None:
        alternatives = QueryExpander().expand("clearent application link")
        lowered = [a.lower() for a in alternatives]
        assert len(lowered) == len(set(lowered))

    def test_unclustered_query_uses_generic_terms_then_tokens(self) -> None:
        assert QueryExpander().expand("hardware leasing") == [
            "payment processing",
            "credit card processing",
            "merchant services",
            "hardware",
            "leasing",
        ]

    def test_generic_term_always_present(self) -> None:
        alternatives = QueryExpander().expand("merchant application")
        assert "payment processing" in alternatives

    def test_custom_clusters(self) -> None:
        expander = QueryExpander(
            clusters=(PhraseCluster(name="gift", triggers=("gift",), phrases=("gift cards",)),),
            max_alternatives=2,
        )
        assert expander.expand("gift program") == ["gift cards", "payment processing"]

    def test_satisfies_strategy_protocol(self) -> None:
        assert isinstance(QueryExpander(), QueryExpansionStrategy)
