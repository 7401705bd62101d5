# src/services/product_ranker.py

"""Fuzzy multilingual ranking of typed catalog products.

Each product is turned into a :class:`SearchDocument` holding the
normalized, compact and signature forms of its name and of a composite
text (name, category, description, spec keys and values).  A query is
scored against every document by five independent signals:

1. normalized substring containment (name > composite text),
2. compact substring containment (catches ``rtx4060`` vs ``RTX 4060``),
3. bigram similarity of the compact query and compact name,
4. consonant-signature containment,
5. a per-token cascade of matcher strategies where the first
   strategy that fires wins (exact, prefix, substring, bounded edit
   distance, signature membership).

Products scoring zero are dropped; the rest are ordered by descending
score, ties broken by ascending name.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from src.filters.similarity import (
    consonant_signature,
    edit_distance_within,
    has_letter,
    max_edit_distance,
    ngram_similarity,
)
from src.filters.text_normalizer import compact_text, normalize_text
from src.models.product import MatchCandidate, Product

logger = logging.getLogger("catalog_assistant.ranker")

# ── Signal weights ───────────────────────────────────────

NAME_CONTAINS = 120
TEXT_CONTAINS = 100
NAME_COMPACT_CONTAINS = 110
TEXT_COMPACT_CONTAINS = 90
STRONG_BIGRAM_THRESHOLD = 0.35
WEAK_BIGRAM_THRESHOLD = 0.25
STRONG_BIGRAM_SCALE = 80
WEAK_BIGRAM_SCALE = 50
NAME_SIGNATURE_CONTAINS = 60
TEXT_SIGNATURE_CONTAINS = 40

TOKEN_EXACT = 12
TOKEN_PREFIX = 8
TOKEN_SUBSTRING = 4
TOKEN_FUZZY_BASE = 6
TOKEN_SIGNATURE = 5

MIN_SIGNATURE_LEN = 3
MIN_BIGRAM_QUERY_LEN = 4


# ── Documents ────────────────────────────────────────────


@dataclass(frozen=True)
class TokenIndex:
    """Distinct tokens of a document with their consonant signatures."""

    tokens: tuple[str, ...]
    token_set: frozenset[str]
    signatures: frozenset[str]

    @classmethod
    def from_tokens(cls, raw_tokens: Iterable[str]) -> "TokenIndex":
        ordered: list[str] = []
        seen: set[str] = set()
        signatures: set[str] = set()
        for token in raw_tokens:
            if not token or token in seen:
                continue
            seen.add(token)
            ordered.append(token)
            signature = consonant_signature(token)
            if len(signature) >= MIN_SIGNATURE_LEN:
                signatures.add(signature)
        return cls(
            tokens=tuple(ordered),
            token_set=frozenset(seen),
            signatures=frozenset(signatures),
        )


def build_search_text(product: Product) -> str:
    """Concatenate every searchable field of *product*."""
    parts = [product.name, product.category, product.description]
    for key, value in product.specs.items():
        if key:
            parts.append(key)
        if value:
            parts.append(value)
    return " ".join(parts)


@dataclass(frozen=True)
class SearchDocument:
    """Precomputed matching forms of one product."""

    product: Product
    name_norm: str
    name_compact: str
    name_signature: str
    text_norm: str
    text_compact: str
    text_signature: str
    index: TokenIndex

    @classmethod
    def from_product(cls, product: Product) -> "SearchDocument":
        search_text = build_search_text(product)
        name_norm = normalize_text(product.name)
        text_norm = normalize_text(search_text)
        return cls(
            product=product,
            name_norm=name_norm,
            name_compact=compact_text(product.name),
            name_signature=consonant_signature(name_norm),
            text_norm=text_norm,
            text_compact=compact_text(search_text),
            text_signature=consonant_signature(text_norm),
            index=TokenIndex.from_tokens(text_norm.split()),
        )


@dataclass(frozen=True)
class ParsedQuery:
    """Matching forms of the user's query."""

    normalized: str
    compact: str
    signature: str
    tokens: tuple[str, ...] = field(default=())

    @classmethod
    def from_text(cls, query: str) -> "ParsedQuery":
        normalized = normalize_text(query)
        return cls(
            normalized=normalized,
            compact=compact_text(query),
            signature=consonant_signature(normalized),
            tokens=tuple(normalized.split()),
        )

    @property
    def is_empty(self) -> bool:
        return not self.normalized and not self.compact


# ── Per-token matcher strategies ─────────────────────────

TokenMatcher = Callable[[str, TokenIndex], int | None]


def match_exact(token: str, index: TokenIndex) -> int | None:
    """Token appears verbatim in the document."""
    return TOKEN_EXACT if token in index.token_set else None


def match_prefix(token: str, index: TokenIndex) -> int | None:
    """Token is the beginning of a document token (``sams`` -> ``samsung``)."""
    if any(t.startswith(token) for t in index.tokens):
        return TOKEN_PREFIX
    return None


def match_substring(token: str, index: TokenIndex) -> int | None:
    """Token of three or more characters occurs inside a document token."""
    if len(token) < 3:
        return None
    if any(token in t for t in index.tokens):
        return TOKEN_SUBSTRING
    return None


def match_fuzzy(token: str, index: TokenIndex) -> int | None:
    """Closest document token within the length-adaptive edit budget."""
    if not has_letter(token):
        return None
    cap = max_edit_distance(token)
    if cap == 0:
        return None
    best: int | None = None
    for candidate in index.tokens:
        distance = edit_distance_within(token, candidate, cap)
        if distance is None:
            continue
        if best is None or distance < best:
            best = distance
            if best == 0:
                break
    if best is None:
        return None
    return TOKEN_FUZZY_BASE + (cap - best)


def match_signature(token: str, index: TokenIndex) -> int | None:
    """Token sounds like a document token (same consonant skeleton)."""
    signature = consonant_signature(token)
    if len(signature) < MIN_SIGNATURE_LEN:
        return None
    return TOKEN_SIGNATURE if signature in index.signatures else None


DEFAULT_MATCHERS: tuple[TokenMatcher, ...] = (
    match_exact,
    match_prefix,
    match_substring,
    match_fuzzy,
    match_signature,
)


# ── Ranker ───────────────────────────────────────────────


class ProductRanker:
    """Score and order products for a free-form query."""

    def __init__(
        self,
        matchers: tuple[TokenMatcher, ...] = DEFAULT_MATCHERS,
    ) -> None:
        self._matchers = matchers

    def score(self, query: ParsedQuery, doc: SearchDocument) -> int:
        """Accumulate all five signals for one document."""
        total = 0

        if query.normalized:
            if query.normalized in doc.name_norm:
                total += NAME_CONTAINS
            elif query.normalized in doc.text_norm:
                total += TEXT_CONTAINS

        if query.compact:
            if query.compact in doc.name_compact:
                total += NAME_COMPACT_CONTAINS
            elif query.compact in doc.text_compact:
                total += TEXT_COMPACT_CONTAINS

        if len(query.compact) >= MIN_BIGRAM_QUERY_LEN:
            sim = ngram_similarity(query.compact, doc.name_compact)
            if sim >= STRONG_BIGRAM_THRESHOLD:
                total += int(sim * STRONG_BIGRAM_SCALE)
            elif sim >= WEAK_BIGRAM_THRESHOLD:
                total += int(sim * WEAK_BIGRAM_SCALE)

        if len(query.signature) >= MIN_SIGNATURE_LEN:
            if query.signature in doc.name_signature:
                total += NAME_SIGNATURE_CONTAINS
            elif query.signature in doc.text_signature:
                total += TEXT_SIGNATURE_CONTAINS

        if doc.index.tokens:
            for token in query.tokens:
                if len(token) < 2:
                    continue
                total += self._token_bonus(token, doc.index)

        return total

    def _token_bonus(self, token: str, index: TokenIndex) -> int:
        """Run the matcher cascade; the first strategy that fires wins."""
        for matcher in self._matchers:
            bonus = matcher(token, index)
            if bonus is not None:
                return bonus
        return 0

    def rank_documents(
        self,
        query: str,
        documents: Iterable[SearchDocument],
    ) -> list[MatchCandidate]:
        """Rank precomputed documents against *query*."""
        parsed = ParsedQuery.from_text(query)
        if parsed.is_empty:
            return []

        candidates: list[MatchCandidate] = []
        for doc in documents:
            points = self.score(parsed, doc)
            if points > 0:
                candidates.append(
                    MatchCandidate(product=doc.product, score=points)
                )

        candidates.sort(key=lambda c: (-c.score, c.product.name))
        logger.debug(
            "Ranked '%s': %d of the catalog matched",
            query,
            len(candidates),
        )
        return candidates

    def rank(
        self,
        query: str,
        products: Iterable[Product],
    ) -> list[MatchCandidate]:
        """Rank raw products against *query*."""
        return self.rank_documents(
            query,
            (SearchDocument.from_product(p) for p in products),
        )
