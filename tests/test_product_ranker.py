# tests/test_product_ranker.py

"""Tests for fuzzy multilingual product ranking."""

import unittest

from src.models.product import Product
from src.services.product_ranker import (
    NAME_CONTAINS,
    TOKEN_EXACT,
    TOKEN_FUZZY_BASE,
    TOKEN_PREFIX,
    ParsedQuery,
    ProductRanker,
    SearchDocument,
    TokenIndex,
    build_search_text,
    match_fuzzy,
    match_prefix,
    match_signature,
    match_substring,
)


def _p(
    pid: str,
    name: str,
    category: str = "",
    description: str = "",
    specs: dict[str, str] | None = None,
) -> Product:
    """Create a minimal Product for testing."""
    return Product(
        id=pid,
        name=name,
        price=100.0,
        category=category,
        description=description,
        specs=specs or {},
    )


_CATALOG = [
    _p("1", "Samsung 970 EVO Plus 1TB", category="Storage"),
    _p("2", "Kingston A2000 500GB", category="Storage"),
    _p("3", "MSI RTX 4060 Ventus 2X", category="GPU"),
    _p(
        "4",
        "Logitech G102",
        category="Mouse",
        description="Lightsync RGB gaming mouse",
        specs={"dpi": "8000"},
    ),
]


class TestProductRanker(unittest.TestCase):
    """ProductRanker.rank behaviour."""

    def setUp(self) -> None:
        self.ranker = ProductRanker()

    def _names(self, query: str) -> list[str]:
        return [c.product.name for c in self.ranker.rank(query, _CATALOG)]

    # ── Matching ─────────────────────────────────────────

    def test_exact_brand_ranks_first(self) -> None:
        self.assertEqual(
            self._names("samsung")[0], "Samsung 970 EVO Plus 1TB"
        )

    def test_cyrillic_query_matches_latin_name(self) -> None:
        """Самсунг finds the Samsung drive."""
        self.assertEqual(
            self._names("Самсунг")[0], "Samsung 970 EVO Plus 1TB"
        )

    def test_compact_model_number(self) -> None:
        """rtx4060 matches 'RTX 4060' through the compact form."""
        self.assertEqual(
            self._names("rtx4060")[0], "MSI RTX 4060 Ventus 2X"
        )

    def test_typo_tolerated(self) -> None:
        self.assertEqual(
            self._names("kingstn")[0], "Kingston A2000 500GB"
        )

    def test_description_and_specs_searched(self) -> None:
        """Composite text covers description and spec values."""
        self.assertIn("Logitech G102", self._names("gaming mouse"))
        self.assertIn("Logitech G102", self._names("8000"))

    def test_no_match_returns_empty(self) -> None:
        self.assertEqual(self._names("zzzz"), [])

    def test_empty_query_returns_empty(self) -> None:
        self.assertEqual(self._names(""), [])
        self.assertEqual(self._names("  !! "), [])

    # ── Ordering ─────────────────────────────────────────

    def test_scores_descending(self) -> None:
        candidates = self.ranker.rank("samsung evo", _CATALOG)
        scores = [c.score for c in candidates]
        self.assertEqual(scores, sorted(scores, reverse=True))
        self.assertTrue(all(s > 0 for s in scores))

    def test_ties_broken_by_name(self) -> None:
        """Equal scores fall back to ascending name."""
        products = [_p("b", "Mouse B"), _p("a", "Mouse A")]
        candidates = self.ranker.rank("mouse", products)
        self.assertEqual(candidates[0].score, candidates[1].score)
        self.assertEqual(
            [c.product.name for c in candidates], ["Mouse A", "Mouse B"]
        )

    def test_deterministic(self) -> None:
        """Same query and catalog give the same ranking."""
        first = self.ranker.rank("msi gaming", _CATALOG)
        second = self.ranker.rank("msi gaming", list(reversed(_CATALOG)))
        self.assertEqual(first, second)

    def test_name_containment_scores(self) -> None:
        doc = SearchDocument.from_product(_CATALOG[0])
        score = self.ranker.score(ParsedQuery.from_text("samsung"), doc)
        self.assertGreaterEqual(score, NAME_CONTAINS + TOKEN_EXACT)


class TestTokenMatchers(unittest.TestCase):
    """Individual matcher strategies."""

    def setUp(self) -> None:
        self.index = TokenIndex.from_tokens(
            ["samsung", "evo", "plus", "1tb", "evo"]
        )

    def test_index_dedupes_in_order(self) -> None:
        self.assertEqual(
            self.index.tokens, ("samsung", "evo", "plus", "1tb")
        )

    def test_prefix(self) -> None:
        self.assertEqual(match_prefix("sams", self.index), TOKEN_PREFIX)
        self.assertIsNone(match_prefix("amsung", self.index))

    def test_substring_needs_three_chars(self) -> None:
        self.assertIsNotNone(match_substring("msu", self.index))
        self.assertIsNone(match_substring("ms", self.index))

    def test_fuzzy_bonus_grows_with_closeness(self) -> None:
        # "samsnug" is two edits away; "samsumg" one
        far = match_fuzzy("samsnug", self.index)
        near = match_fuzzy("samsumg", self.index)
        self.assertEqual(near, TOKEN_FUZZY_BASE + 1)
        self.assertEqual(far, TOKEN_FUZZY_BASE)

    def test_fuzzy_skips_digits_and_short_tokens(self) -> None:
        self.assertIsNone(match_fuzzy("1234", self.index))
        self.assertIsNone(match_fuzzy("evp", self.index))

    def test_signature(self) -> None:
        self.assertIsNotNone(match_signature("smsng", self.index))
        self.assertIsNone(match_signature("xyzzy", self.index))


class TestSearchText(unittest.TestCase):
    def test_includes_all_fields(self) -> None:
        text = build_search_text(_CATALOG[3])
        for part in ("Logitech G102", "Mouse", "Lightsync", "dpi", "8000"):
            self.assertIn(part, text)


if __name__ == "__main__":
    unittest.main()
