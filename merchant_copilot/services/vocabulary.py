"""Merchant services vocabulary shared by the matching heuristics."""

from __future__ import annotations

PROCESSORS: tuple[str, ...] = (
    "tsys",
    "clearent",
    "trx",
    "shift4",
    "micamp",
    "voyager",
    "merchant lynx",
)

POS_TERMS: tuple[str, ...] = (
    "pos",
    "point of sale",
    "quantic",
    "clover",
    "skytab",
    "hubwallet",
    "aloha",
)

RESTAURANT_TERMS: tuple[str, ...] = ("restaurant", "food", "dining", "cafe", "bar")

INTEGRATION_TERMS: tuple[str, ...] = (
    "integrate",
    "quickbooks",
    "epicor",
    "aloha",
    "roommaster",
)

# Provider and service phrases lifted out of Q&A answers to steer document search
GUIDANCE_PROVIDERS: tuple[str, ...] = (
    "shift4",
    "skytab",
    "micamp",
    "clover",
    "hubwallet",
    "quantic",
    "clearent",
    "trx",
    "tsys",
    "authorize.net",
    "fluid pay",
    "accept blue",
)

GUIDANCE_SERVICES: tuple[str, ...] = (
    "restaurant pos",
    "pos system",
    "point of sale",
    "payment processing",
    "terminal",
    "gateway",
    "ach",
    "gift cards",
    "mobile solution",
)

# Any of these in a chunk is enough to count it as a content match
CONTENT_KEYWORDS: tuple[str, ...] = (
    "clearent",
    "tsys",
    "processing",
    "rates",
    "pricing",
    "equipment",
    "genesis",
    "merchant",
)

GENERIC_DOMAIN_TERMS: tuple[str, ...] = (
    "payment processing",
    "credit card processing",
    "merchant services",
)

BUSINESS_KEYWORDS: tuple[str, ...] = (
    "iso", "merchant", "payment", "processing", "pos", "point of sale", "credit card",
    "business", "marketing", "sales", "commerce", "transaction", "banking", "finance",
    "retail", "customer", "service", "industry", "company", "revenue", "profit",
    "partnership", "contract", "agreement", "rate", "fee", "pricing", "solution",
    "system", "software", "technology", "integration", "api", "platform",
    "lead", "prospect", "client", "tsys", "fiserv", "first data", "global payments",
    "worldpay", "square", "stripe", "paypal", "visa", "mastercard", "american express",
    "discover", "ach", "wire transfer", "settlement", "chargeback", "fraud", "security",
    "compliance", "pci", "emv", "chip", "contactless", "mobile payment",
    "e-commerce", "online", "terminal", "gateway", "processor",
)

RESTRICTED_KEYWORDS: tuple[str, ...] = (
    "porn", "adult", "xxx", "nude", "erotic", "escort", "drug", "illegal", "weapon",
    "violence", "hate", "terrorist", "bomb", "hack", "crack", "pirate", "torrent",
    "darkweb", "dark web", "silk road", "money laundering",
)


def query_tokens(text: str) -> list[str]:
    """Split lowercased text on spaces, keeping tokens longer than two characters."""
    return [word for word in text.lower().split(" ") if len(word) > 2]
