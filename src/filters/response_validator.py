# src/filters/response_validator.py

"""Post-validation of generated replies against authoritative prices."""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from src.config.settings import Settings
from src.filters.catalog_parser import parse_catalog, parse_catalog_price

logger = logging.getLogger("catalog_assistant.validator")

_QUOTED_PRICE_RE = re.compile(
    r"(?<![\d.,])(\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)\$"
)

_CURRENCY = r"(?:\$|usd|so['’]?m|sum|сум|eur|€|rub|₽)"
_PRICE_WITH_CURRENCY_RE = re.compile(
    rf"(?:{_CURRENCY}\s*[0-9][0-9\s,.]*|[0-9][0-9\s,.]*\s*{_CURRENCY})",
    re.IGNORECASE,
)
_TOTAL_LINE_RE = re.compile(
    r"^(?:jami|итого|summa|total|overall\s*(?:price|total)?"
    r"|umumiy\s*(?:narx|summa)?|общая\s*(?:цена|стоимость)?|всего)"
    r"(?:\s|:|-|$)",
    re.IGNORECASE,
)


class ValidationStatus(Enum):
    VALIDATED = "validated"
    FLAGGED = "flagged"


@dataclass(frozen=True)
class PriceCorrection:
    """One quoted price rewritten to the catalog value."""

    product: str
    quoted: str
    corrected: str


@dataclass
class ValidationOutcome:
    """Final state of one reply after post-validation."""

    status: ValidationStatus
    text: str
    corrections: list[PriceCorrection] = field(
        default_factory=lambda: list[PriceCorrection]()
    )
    suspect_prices: list[str] = field(
        default_factory=lambda: list[str]()
    )

    @property
    def is_flagged(self) -> bool:
        return self.status is ValidationStatus.FLAGGED


def _strip_bullet(line: str) -> str:
    return line.strip().lstrip("*-•— ").strip()


def _currency_of(match: str) -> str:
    lower = match.lower()
    if "$" in lower or "usd" in lower:
        return "$"
    if "€" in lower or "eur" in lower:
        return "€"
    if "₽" in lower or "rub" in lower:
        return "₽"
    if (
        "so'm" in lower or "so’m" in lower or "сум" in lower
        or " sum" in lower or lower.endswith("sum")
    ):
        return "so'm"
    return ""


def _price_key(match: str) -> str:
    currency = _currency_of(match)
    digits = "".join(c for c in match if c.isdigit())
    if not currency or not digits:
        return ""
    return f"{currency}|{digits}"


def _exceeds_tolerance(quoted: float, actual: float) -> bool:
    allowed = max(
        Settings.PRICE_TOLERANCE_ABS,
        actual * Settings.PRICE_TOLERANCE_PCT,
    )
    return abs(quoted - actual) > allowed


class ResponseValidator:
    """Reconcile, total-sync and fabrication-check generated replies.

    A reply moves through price reconciliation and total syncing, then
    ends Validated or Flagged.  Flagging is informational; discarding
    the reply is left to the caller.
    """

    @staticmethod
    def reconcile_prices(
        reply: str,
        catalog_text: str,
    ) -> tuple[str, list[PriceCorrection]]:
        """Rewrite ``<name> ... <n>$`` prices that drift from the catalog.

        Names are tried longest first; a shorter name contained in one
        already matched on the same line is skipped, so ``RTX 4060``
        never rewrites the price of ``RTX 4060 Ti``.
        """
        prices: dict[str, float] = {}
        for item in parse_catalog(catalog_text):
            name = item.name.strip().lower()
            if name and item.price > 0:
                prices[name] = item.price
        if not prices or not reply:
            return reply, []
        names = sorted(prices, key=lambda n: (-len(n), n))

        corrections: list[PriceCorrection] = []
        fixed_lines: list[str] = []
        for line in reply.split("\n"):
            lower = line.lower()
            matched: list[str] = []
            edits: dict[int, tuple[int, str, str]] = {}
            for name in names:
                pos = lower.find(name)
                if pos < 0 or any(name in m for m in matched):
                    continue
                matched.append(name)
                quote = _QUOTED_PRICE_RE.search(line, pos + len(name))
                if quote is None or quote.start() in edits:
                    continue
                actual = prices[name]
                quoted = parse_catalog_price(quote.group(1))
                if quoted is None or not _exceeds_tolerance(quoted, actual):
                    continue
                edits[quote.start()] = (
                    quote.end(), f"{actual:.2f}$", name
                )

            for start in sorted(edits, reverse=True):
                end, new, name = edits[start]
                old = line[start:end]
                line = line[:start] + new + line[end:]
                corrections.append(PriceCorrection(name, old, new))
                logger.warning(
                    "Price corrected for '%s': %s -> %s", name, old, new
                )
            fixed_lines.append(line)
        return "\n".join(fixed_lines), corrections

    @staticmethod
    def sync_total_line(reply: str) -> str:
        """Make the total line agree when only one price is quoted."""
        if not reply.strip():
            return reply
        lines = reply.split("\n")
        total_idx = -1
        for idx, line in enumerate(lines):
            if line.strip() and _TOTAL_LINE_RE.match(_strip_bullet(line)):
                total_idx = idx
        if total_idx == -1:
            return reply

        total_line = lines[total_idx]
        total_matches = _PRICE_WITH_CURRENCY_RE.findall(total_line)
        total_currency = (
            _currency_of(total_matches[0]) if total_matches else ""
        )

        candidates: dict[str, str] = {}
        for idx, line in enumerate(lines):
            if idx == total_idx or not line.strip():
                continue
            if _TOTAL_LINE_RE.match(_strip_bullet(line)):
                continue
            for match in _PRICE_WITH_CURRENCY_RE.findall(line):
                key = _price_key(match)
                if key and key not in candidates:
                    candidates[key] = match.strip()
        if total_currency:
            candidates = {
                k: v for k, v in candidates.items()
                if k.startswith(total_currency + "|")
            }
        if len(candidates) != 1:
            return reply
        chosen = next(iter(candidates.values()))

        if total_matches:
            updated = _PRICE_WITH_CURRENCY_RE.sub(
                lambda m: chosen + m.group(0)[len(m.group(0).rstrip()):],
                total_line,
                count=1,
            )
        else:
            trimmed = total_line.rstrip()
            sep = " " if (":" in trimmed or "-" in trimmed) else ": "
            updated = trimmed + sep + chosen
        if updated == total_line:
            return reply
        logger.info("Total line synced to %s", chosen)
        lines[total_idx] = updated
        return "\n".join(lines)

    @staticmethod
    def find_untraceable_prices(
        reply: str,
        budget_catalog: str,
    ) -> list[str]:
        """Quoted ``<n>$`` values with no equal price in *budget_catalog*."""
        if not budget_catalog.strip():
            return []
        known = {
            round(item.price, 2) for item in parse_catalog(budget_catalog)
        }
        suspects: list[str] = []
        for match in _QUOTED_PRICE_RE.finditer(reply):
            quoted = parse_catalog_price(match.group(1))
            if quoted is not None and round(quoted, 2) in known:
                continue
            if match.group(0) not in suspects:
                suspects.append(match.group(0))
        return suspects

    @staticmethod
    def validate(
        reply: str,
        catalog_text: str,
        budget_catalog: str | None = None,
    ) -> ValidationOutcome:
        """Run the reconciliation chain over *reply*.

        *catalog_text* is the authoritative catalog for reconciliation;
        *budget_catalog*, when given, is the in-budget view the quoted
        prices must trace back to.
        """
        text, corrections = ResponseValidator.reconcile_prices(
            reply, catalog_text
        )
        text = ResponseValidator.sync_total_line(text)

        suspects: list[str] = []
        if budget_catalog is not None:
            suspects = ResponseValidator.find_untraceable_prices(
                text, budget_catalog
            )
        if suspects:
            logger.warning("Untraceable prices in reply: %s", suspects)
            return ValidationOutcome(
                ValidationStatus.FLAGGED, text, corrections, suspects
            )
        return ValidationOutcome(
            ValidationStatus.VALIDATED, text, corrections
        )

    @staticmethod
    def count_priced_variants(text: str) -> int:
        """Numbered or bulleted lines that quote a ``$`` price."""
        count = 0
        for line in text.split("\n"):
            trimmed = line.strip()
            if "$" not in trimmed:
                continue
            numbered = (
                len(trimmed) > 1
                and trimmed[0] in "123456789"
                and trimmed[1] in ".)"
            )
            if numbered or trimmed.startswith(("-", "•")):
                count += 1
        return count
