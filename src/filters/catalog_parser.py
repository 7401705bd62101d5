# src/filters/catalog_parser.py

"""Parsing of textual catalog lines into names and prices.

Shops upload catalogs in two shapes, often mixed within one file:

* delimited rows: ``Intel i5 13400F,154.00`` or
  ``"Kingston 16GB, DDR4",2,45 USD`` (quote-aware, last field = price);
* free-form rows: ``Intel i5 13400F - 154.00$``.

The two shapes are tried as parser strategies in fixed order; the first
that yields a price wins.  Anything neither strategy accepts is a
category header or a malformed line.
"""

import csv
import re
from collections.abc import Callable

from src.models.catalog import CatalogLine

# Longer markers first so "so'm" is removed before "sum"/"som".
_CURRENCY_MARKERS: tuple[str, ...] = (
    "so'm", "so‘m", "soʻm", "so’m", "soum", "сўм", "сум",
    "usd", "eur", "rub", "руб", "sum", "$", "€", "₽",
)

_THOUSANDS_RE = re.compile(r"^\d{1,3}(?:,\d{3})+(?:\.\d+)?$")
_NUMBER_RE = re.compile(r"^\d+(?:\.\d+)?$")

# "<number> <currency>" at the end of a free-form row
_SUFFIXED_PRICE_RE = re.compile(
    r"(\d[\d\s,.]*?)\s*"
    r"(?:[$€₽]|(?:usd|so['‘ʻ’]?u?m|sum|сум|eur|rub)(?![a-zа-яё]))",
    re.IGNORECASE,
)


def parse_catalog_price(raw: str) -> float | None:
    """Parse a price cell such as ``1,400.00$`` or ``1 250 000 so'm``.

    Currency markers, spaces (including NBSP) and thousands separators
    are removed; the remainder must be a plain non-negative number.
    """
    value = raw.strip().lower()
    if not value:
        return None
    for marker in _CURRENCY_MARKERS:
        value = value.replace(marker, "")
    value = re.sub(r"[\s  ]+", "", value)

    if "," in value and "." in value:
        value = value.replace(",", "")
    elif "," in value:
        if _THOUSANDS_RE.match(value):
            value = value.replace(",", "")
        else:
            value = value.replace(",", ".")

    if not _NUMBER_RE.match(value):
        return None
    price = float(value)
    return price if price >= 0 else None


def split_fields(line: str) -> list[str] | None:
    """Quote-aware split of a delimited row."""
    try:
        rows = list(csv.reader([line], skipinitialspace=True))
    except csv.Error:
        return None
    if not rows:
        return None
    return [cell.strip() for cell in rows[0]]


def parse_delimited_line(line: str) -> CatalogLine | None:
    """``name,...,price`` rows; the last field holds the price."""
    fields = split_fields(line)
    if fields is None or len(fields) < 2:
        return None
    price = parse_catalog_price(fields[-1])
    if price is None:
        return None
    return CatalogLine(name=fields[0], price=price, raw=line)


def parse_free_form_line(line: str) -> CatalogLine | None:
    """``Name - 123.45$`` rows; the last currency-tagged number wins."""
    matches = list(_SUFFIXED_PRICE_RE.finditer(line))
    if not matches:
        return None
    last = matches[-1]
    price = parse_catalog_price(last.group(1))
    if price is None:
        return None
    dash = line.rfind(" - ", 0, last.start() + 1)
    if dash > 0:
        name = line[:dash]
    else:
        name = line[:last.start()].strip(" -–—:") or line
    return CatalogLine(name=name.strip(), price=price, raw=line)


LineParser = Callable[[str], CatalogLine | None]

LINE_PARSERS: tuple[LineParser, ...] = (
    parse_delimited_line,
    parse_free_form_line,
)


def parse_catalog_line(line: str) -> CatalogLine | None:
    """Parse one product line, or ``None`` for headers/malformed lines."""
    stripped = line.strip()
    if not stripped:
        return None
    for parser in LINE_PARSERS:
        parsed = parser(stripped)
        if parsed is not None:
            return parsed
    return None


def iter_lines(text: str) -> list[str]:
    """Non-blank, trimmed lines of a snapshot."""
    return [ln.strip() for ln in text.splitlines() if ln.strip()]


def parse_catalog(text: str) -> list[CatalogLine]:
    """All parsable product lines of *text*, in catalog order."""
    parsed: list[CatalogLine] = []
    for line in iter_lines(text):
        item = parse_catalog_line(line)
        if item is not None:
            parsed.append(item)
    return parsed
