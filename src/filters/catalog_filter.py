# src/filters/catalog_filter.py

"""Pure filters and selection helpers over a textual catalog snapshot.

Every filter takes snapshot text and returns new text (or parsed lines);
the input is never modified, so filters can be chained freely over one
shared snapshot.
"""

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from src.config.settings import Settings
from src.filters.catalog_parser import (
    iter_lines,
    parse_catalog,
    parse_catalog_line,
    parse_catalog_price,
    split_fields,
)
from src.filters.constraint_extractor import (
    category_aliases,
    extract_model_tokens,
    normalize_brand_tokens,
)
from src.filters.text_normalizer import compact_text, normalize_text
from src.models.catalog import CatalogLine

logger = logging.getLogger("catalog_assistant.filters")

STOCK_HEADERS: tuple[str, ...] = (
    "stock", "soni", "miqdor", "qolgan", "остаток", "количество",
    "qty", "quantity", "count",
)
PRICE_HEADERS: tuple[str, ...] = (
    "price", "narx", "цена", "стоимость", "cost",
)
NAME_HEADERS: tuple[str, ...] = (
    "name", "название", "товар", "product", "mahsulot", "nomi",
)


@dataclass(frozen=True)
class OverBudgetNotice:
    """A requested product priced above the user's budget."""

    product: CatalogLine
    budget: int
    alternatives: list[CatalogLine] = field(
        default_factory=lambda: list[CatalogLine]()
    )

    @property
    def message(self) -> str:
        text = (
            f"Kechirasiz, '{self.product.name}' modeli sizning "
            f"budjetingizdan ({self.budget}$) qimmat: "
            f"{self.product.price:.0f}$.\n"
            "Iltimos, budjetga mos variantlardan birini tanlang "
            "yoki budjetni oshiring."
        )
        if self.alternatives:
            text += (
                "\n\nBudjetga mos eng yaxshi variantlar:\n\n"
                + "\n".join(CatalogFilter.format_lines(self.alternatives))
            )
        return text


def _priced(text: str) -> list[CatalogLine]:
    """Product lines with a name and a positive price."""
    return [
        item for item in parse_catalog(text)
        if item.name.strip() and item.price > 0
    ]


def _header_matches(header: str, aliases: Sequence[str]) -> bool:
    wanted = normalize_text(header)
    return bool(wanted) and any(
        normalize_text(alias) == wanted for alias in aliases
    )


def _normalize_header_cell(cell: str) -> str:
    return " ".join(normalize_text(cell).split())


def _detect_stock_header(fields: Sequence[str]) -> tuple[bool, int]:
    """Whether *fields* is a header row, and its stock column (or -1)."""
    stock_col = -1
    is_header = False
    for index, cell in enumerate(fields):
        lower = cell.strip().lower()
        norm = _normalize_header_cell(cell)
        if not norm:
            continue
        forms = (lower, norm)
        if stock_col == -1 and any(
            normalize_text(kw) in f or kw in f
            for kw in STOCK_HEADERS for f in forms
        ):
            stock_col = index
            is_header = True
        if any(
            normalize_text(kw) in f or kw in f
            for kw in PRICE_HEADERS + NAME_HEADERS for f in forms
        ):
            is_header = True
    return is_header, stock_col


_STOCK_RE = re.compile(r"^-?\d+(?:[.,]\d+)?$")


def _parse_stock(cell: str) -> float | None:
    """Stock count of a cell; negative counts are allowed."""
    value = cell.strip().replace(" ", "")
    if not _STOCK_RE.match(value):
        return None
    return float(value.replace(",", "."))


def _brand_in_name(name: str, brand: str) -> bool:
    if not brand:
        return False
    if len(brand) <= 2:
        return brand in normalize_text(name).split()
    return brand in name.lower() or brand in normalize_text(name)


def _spread(items: list[CatalogLine], count: int) -> list[CatalogLine]:
    """Evenly spaced picks from ascending *items*; one pick is the median."""
    limit = min(count, len(items))
    if limit <= 0:
        return []
    if limit == 1:
        return [items[len(items) // 2]]
    n = len(items)
    return [items[k * (n - 1) // (limit - 1)] for k in range(limit)]


def _words_contained(
    user_words: Sequence[str],
    name_words: Sequence[str],
) -> bool:
    """Every name word appears in (or contains) some user word.

    Name words of two characters or fewer (``Ti``, ``X``) must equal a
    user word.
    """
    if not name_words:
        return False
    for name_word in name_words:
        if len(name_word) <= 2:
            if name_word not in user_words:
                return False
            continue
        if not any(
            name_word in user_word
            or (len(user_word) >= 3 and user_word in name_word)
            for user_word in user_words
        ):
            return False
    return True


def _is_specific_model(token: str) -> bool:
    """Model numbers such as ``13700k``; sizes like ``16gb`` are excluded."""
    digits = sum(c.isdigit() for c in token)
    return len(token) >= 4 and digits >= 3


class CatalogFilter:
    """Filter and select catalog lines for the generator's context."""

    # ── Filters (text in, text out) ──────────────────────

    @staticmethod
    def filter_by_budget(text: str, budget: int) -> str:
        """Product lines priced at or below *budget*; headers dropped."""
        if budget <= 0:
            return text
        kept = [
            item.raw for item in parse_catalog(text)
            if item.price <= budget
        ]
        return "\n".join(kept)

    @staticmethod
    def filter_by_category(text: str, category: str) -> str:
        """Headers matching *category* (or its aliases) and their lines.

        Returns *text* unchanged when no header matches.
        """
        aliases = category_aliases(category)
        if not aliases:
            return text
        kept: list[str] = []
        in_category = False
        for line in iter_lines(text):
            if parse_catalog_line(line) is None:
                in_category = _header_matches(line, aliases)
                if in_category:
                    kept.append(line)
                continue
            if in_category:
                kept.append(line)
        if not kept:
            logger.debug("No '%s' section in catalog, keeping all", category)
            return text
        return "\n".join(kept)

    @staticmethod
    def filter_by_budget_and_category(
        text: str,
        budget: int,
        category: str,
    ) -> str:
        """In-budget lines of *category*, most expensive first.

        The result starts with the category label; it is empty when no
        line qualifies, and the caller falls back to the budget filter.
        """
        if not category.strip():
            return CatalogFilter.filter_by_budget(text, budget)
        if budget <= 0:
            return ""
        aliases = category_aliases(category)
        items: list[CatalogLine] = []
        header = ""
        for line in iter_lines(text):
            item = parse_catalog_line(line)
            if item is None:
                header = line
                continue
            if _header_matches(header, aliases) and item.price <= budget:
                items.append(item)
        if not items:
            return ""
        items.sort(key=lambda i: i.price, reverse=True)
        return "\n".join([category, *(i.raw for i in items)])

    @staticmethod
    def filter_by_brand(text: str, brands: Sequence[str]) -> str:
        """Product lines whose name carries one of *brands*.

        Two-letter codes (``wd``, ``hp``) must be whole name tokens.
        """
        wanted = normalize_brand_tokens(brands)
        if not text.strip() or not wanted:
            return text
        kept = [
            item.raw for item in parse_catalog(text)
            if item.name.strip()
            and any(_brand_in_name(item.name, b) for b in wanted)
        ]
        return "\n".join(kept)

    @staticmethod
    def filter_in_stock(text: str) -> str:
        """Drop product lines whose stock cell is zero or negative.

        The stock column comes from the first header row naming one;
        without a header, the second field of a 3+ field row is used.
        """
        if not text.strip():
            return text
        kept: list[str] = []
        stock_col = -1
        header_seen = False
        dropped = 0
        for line in iter_lines(text):
            fields = split_fields(line)
            if not fields:
                kept.append(line)
                continue
            if not header_seen and parse_catalog_price(fields[-1]) is None:
                is_header, column = _detect_stock_header(fields)
                if is_header:
                    header_seen = True
                    stock_col = column
                    kept.append(line)
                    continue
            priced = (
                len(fields) >= 2
                and parse_catalog_price(fields[-1]) is not None
            )
            if priced:
                stock = None
                if 0 <= stock_col < len(fields):
                    stock = _parse_stock(fields[stock_col])
                elif stock_col == -1 and len(fields) >= 3:
                    stock = _parse_stock(fields[1])
                if stock is not None and stock <= 0:
                    dropped += 1
                    continue
            kept.append(line)
        if dropped:
            logger.info("Dropped %d out-of-stock catalog lines", dropped)
        return "\n".join(kept)

    # ── Selection helpers (text in, lines out) ───────────

    @staticmethod
    def top_by_price(text: str, count: int) -> list[CatalogLine]:
        """The *count* most expensive lines (all when ``count <= 0``)."""
        items = sorted(_priced(text), key=lambda i: i.price, reverse=True)
        if count <= 0:
            return items
        return items[:count]

    @staticmethod
    def representative(text: str, count: int = 0) -> list[CatalogLine]:
        """*count* lines spread across the price range, cheapest first."""
        items = sorted(_priced(text), key=lambda i: i.price)
        return _spread(items, count if count > 0 else Settings.LISTING_SIZE)

    @staticmethod
    def cheapest(text: str, count: int) -> tuple[list[CatalogLine], float]:
        """The *count* cheapest lines and the minimum price (0 if none)."""
        items = sorted(_priced(text), key=lambda i: i.price)
        if not items:
            return [], 0.0
        if count > 0:
            return items[:count], items[0].price
        return items, items[0].price

    @staticmethod
    def format_lines(
        items: Sequence[CatalogLine],
        numbered: bool = False,
    ) -> list[str]:
        """Render lines as ``1. Name - 154.00$`` or ``- Name - 154.00$``."""
        if numbered:
            return [
                f"{i}. {item.name} - {item.price:.2f}$"
                for i, item in enumerate(items, start=1)
            ]
        return [f"- {item.name} - {item.price:.2f}$" for item in items]

    # ── Over-budget guard ────────────────────────────────

    @staticmethod
    def find_over_budget_request(
        full_text: str,
        user_text: str,
        budget: int,
        category: str = "",
    ) -> OverBudgetNotice | None:
        """Detect a request for a specific product priced above *budget*.

        Scans the unfiltered catalog in order; a line matches when its
        name appears in *user_text* (normalized or compact), when every
        name word is found among the user's words, or when a user model
        number such as ``13700k`` equals a name token.
        """
        if budget <= 0 or not user_text.strip():
            return None
        user_lower = user_text.lower()
        user_norm = normalize_text(user_text)
        user_compact = compact_text(user_text)
        user_words = user_norm.split()
        models = [
            t for t in extract_model_tokens(user_text)
            if _is_specific_model(t)
        ]

        for item in _priced(full_text):
            if item.price <= budget:
                continue
            name_lower = item.name.lower().strip()
            name_norm = normalize_text(item.name)
            name_compact = compact_text(item.name)
            name_words = name_norm.split()
            matched = (
                (name_lower and name_lower in user_lower)
                or (name_norm and name_norm in user_norm)
                or (len(name_compact) >= 4 and name_compact in user_compact)
                or _words_contained(user_words, name_words)
                or any(
                    m in name_words or m in name_compact for m in models
                )
            )
            if not matched:
                continue

            logger.info(
                "Requested '%s' (%.2f) exceeds budget %d",
                item.name,
                item.price,
                budget,
            )
            scoped = ""
            if category.strip():
                scoped = CatalogFilter.filter_by_budget_and_category(
                    full_text, budget, category
                )
            if not scoped.strip():
                scoped = CatalogFilter.filter_by_budget(full_text, budget)
            return OverBudgetNotice(
                product=item,
                budget=budget,
                alternatives=CatalogFilter.top_by_price(
                    scoped, Settings.LISTING_SIZE
                ),
            )
        return None
