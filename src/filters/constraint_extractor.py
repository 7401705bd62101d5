# src/filters/constraint_extractor.py

"""Shopping-constraint extraction from conversational Uzbek/Russian text.

Pulls a budget ceiling, product category, brands and intended use out of
one message, and fills whatever is missing from the user's recent turns.

The cross-turn carry-over is a heuristic, not an inference: the most
recent turns are scanned newest first, a historical budget or brand is
only carried when that turn talked about the same category (or the
current turn names none), and a budget is only carried while the current
turn is ambiguous about it (no explicit budget and no model number such
as ``13400f`` or ``rtx4070``).
"""

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from functools import lru_cache

from src.config.settings import Settings
from src.filters.catalog_parser import iter_lines, parse_catalog_line
from src.filters.text_normalizer import compact_text, normalize_text
from src.models.conversation import ExtractedConstraints, HistoryTurn

logger = logging.getLogger("catalog_assistant.extractor")


# ── Keyword matching ─────────────────────────────────────


@dataclass(frozen=True)
class _TextForms:
    """Lower-cased raw text and its normalized transliteration."""

    lower: str
    normalized: str

    @classmethod
    def of(cls, text: str) -> "_TextForms":
        return cls(lower=text.lower(), normalized=normalize_text(text))


Keyword = str | re.Pattern[str]


@lru_cache(maxsize=1024)
def _keyword_patterns(
    keyword: str,
    boundary: str,
) -> tuple[re.Pattern[str], ...]:
    """Compile *keyword* for the raw and normalized text forms.

    ``boundary`` is ``"left"`` (keyword must start a word), ``"word"``
    (keyword must be a whole word) or ``""`` (plain containment).
    """
    patterns: list[re.Pattern[str]] = []
    for form in {keyword.lower(), normalize_text(keyword)}:
        if not form:
            continue
        body = re.escape(form)
        if boundary in ("left", "word"):
            body = r"(?<!\w)" + body
        if boundary == "word":
            body += r"(?!\w)"
        patterns.append(re.compile(body))
    return tuple(patterns)


def _has_keyword(
    forms: _TextForms,
    keyword: Keyword,
    boundary: str = "",
) -> bool:
    # Patterns see the raw text only; Cyrillic "и 5" normalizes to "i 5"
    if isinstance(keyword, re.Pattern):
        return bool(keyword.search(forms.lower))
    return any(
        p.search(forms.lower) or p.search(forms.normalized)
        for p in _keyword_patterns(keyword, boundary)
    )


def _has_any(
    forms: _TextForms,
    keywords: Sequence[Keyword],
    short_boundary: str,
    short_len: int,
) -> bool:
    for keyword in keywords:
        boundary = ""
        if isinstance(keyword, str) and len(keyword) <= short_len:
            # Cyrillic stems ("игр", "мыш") only anchor on the left
            boundary = short_boundary if keyword.isascii() else "left"
        if _has_keyword(forms, keyword, boundary):
            return True
    return False


# ── Budget ───────────────────────────────────────────────

_THOUSANDS_RE = re.compile(
    r"(?<![\w.])(\d{1,3}(?:[.,]\d+)?)\s*[kк](?![a-zа-яё])",
    re.IGNORECASE,
)
_MILLIONS_RE = re.compile(
    r"(?<![\w.])(\d{1,4}(?:[.,]\d+)?)\s*"
    r"(?:million|mln|млн|m)(?![a-zа-яё])",
    re.IGNORECASE,
)
_KEYWORD_BUDGET_RE = re.compile(
    r"(?<!\w)(?:budjet(?:im)?|byudjet(?:im)?|budget(?:im)?|бюджет\w*"
    r"|atrofida|around|narx(?:i)?|price|pul(?:im)?|money)"
    r"\s*:?\s*\$?\s*(\d+)(?![\d.,]*[a-zа-яё])",
    re.IGNORECASE,
)
_DOLLAR_SUFFIX_RE = re.compile(
    r"(\d{1,3}(?:[ ,]\d{3})+|\d+)\s*(?:\$|usd\b|dollar)",
    re.IGNORECASE,
)
_DOLLAR_PREFIX_RE = re.compile(r"\$\s*(\d{1,3}(?:[ ,]\d{3})+|\d+)")
_BARE_NUMBER_RE = re.compile(r"^\d{2,7}$")


def _to_float(raw: str) -> float:
    return float(raw.replace(",", "."))


def _budget_by_multiplier(
    text: str, pattern: re.Pattern[str], factor: int,
) -> int:
    match = pattern.search(text)
    if not match:
        return 0
    return int(_to_float(match.group(1)) * factor)


def _budget_by_keyword(text: str) -> int:
    match = _KEYWORD_BUDGET_RE.search(text)
    return int(match.group(1)) if match else 0


def _budget_by_currency(text: str) -> int:
    matches = sorted(
        [*_DOLLAR_SUFFIX_RE.finditer(text), *_DOLLAR_PREFIX_RE.finditer(text)],
        key=lambda m: m.start(),
    )
    for match in matches:
        value = int(re.sub(r"[ ,]", "", match.group(1)))
        if value >= Settings.MIN_BUDGET:
            return value
    return 0


def _budget_bare_number(text: str) -> int:
    clean = text.strip().replace(" ", "")
    if _BARE_NUMBER_RE.match(clean):
        return int(clean)
    return 0


def extract_budget(text: str) -> int:
    """Budget ceiling in whole currency units, 0 when absent.

    Rules are tried in order and the first one yielding a value of at
    least ``Settings.MIN_BUDGET`` wins: ``1.5k``, ``2m``/``2 mln``,
    ``budjet: 700``, ``700$``/``$700``, and a message that is nothing
    but a 2–7 digit number.  Smaller values (``16$`` of RAM) are sizes,
    not budgets.
    """
    lower = text.lower()
    rules = (
        lambda: _budget_by_multiplier(lower, _THOUSANDS_RE, 1_000),
        lambda: _budget_by_multiplier(lower, _MILLIONS_RE, 1_000_000),
        lambda: _budget_by_keyword(lower),
        lambda: _budget_by_currency(lower),
        lambda: _budget_bare_number(lower),
    )
    for rule in rules:
        value = rule()
        if value >= Settings.MIN_BUDGET:
            return value
    return 0


# ── Purpose ──────────────────────────────────────────────

PURPOSE_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Gaming", (
        "gaming", "game", "games", "gamer", "o'yin", "oʻyin", "o‘yin",
        "игр", "гейм",
        "cs2", "cs:go", "valorant", "pubg", "dota", "gta", "fortnite",
    )),
    ("Developer", (
        "developer", "dev", "dasturchi", "program", "coding",
        "backend", "frontend", "fullstack", "ide", "docker",
        "программист",
    )),
    ("Design", (
        "dizayn", "design", "montaj", "монтаж", "editing",
        "video edit", "premiere", "after effects", "davinci",
        "davinchi", "render", "рендер", "3d", "blender", "maya",
        "3ds max", "photoshop", "illustrator", "aftereffects",
    )),
    ("Server", (
        "server", "сервер", "hosting", "vps", "dedicated",
        "data center", "datacenter", "nas",
    )),
    ("Streaming", (
        "stream", "стрим", "obs", "twitch", "youtube live",
    )),
    ("Office", (
        "ish uchun", "для работы", "for work", "office", "ofis",
        "офис", "work", "работ", "учеб", "dars", "study", "word",
        "excel", "powerpoint", "zoom", "teams",
    )),
)


def extract_purpose(text: str) -> str:
    """Intended use label, Gaming checked first; "" when unknown."""
    forms = _TextForms.of(text)
    for label, keywords in PURPOSE_KEYWORDS:
        if _has_any(forms, keywords, short_boundary="word", short_len=4):
            return label
    return ""


# ── Category ─────────────────────────────────────────────

INTEL_CORE_RE = re.compile(r"(?<![a-z0-9])(?:core\s*)?i\s*[3579](?!\d)")

CATEGORY_KEYWORDS: tuple[tuple[str, tuple[Keyword, ...]], ...] = (
    ("Monitor", ("monitor", "монитор")),
    ("GPU", (
        "gpu", "rtx", "gtx", "radeon", "videokarta", "video karta",
        "vga", "видеокарт",
    )),
    ("Motherboard", (
        "anakart", "motherboard", "mat plata", "materinskaya",
        "материнск", "mobo",
    )),
    ("CPU", (
        INTEL_CORE_RE, "cpu", "protsessor", "processor", "процессор",
        "intel", "ryzen", "amd",
    )),
    ("RAM", ("ram", "operativ", "оператив", "ddr")),
    ("PSU", (
        "psu", "power supply", "quvvat bloki", "blok pitaniya",
        "блок питания",
    )),
    ("Case", ("case", "korpus", "корпус")),
    ("Cooling", ("cooler", "sovutgich", "kuler", "кулер", "охлажд")),
    ("Storage", ("ssd", "hdd", "nvme", "m2", "disk", "диск", "storage")),
    ("Keyboard", ("keyboard", "klaviatura", "клавиатур")),
    ("Mouse", (
        re.compile(r"mouse(?!\s*pad)"), "sichqon", "mishka", "мыш",
        "мишк",
    )),
    ("Headset", ("headset", "naushnik", "quloqchin", "наушник")),
    ("Chair", ("chair", "stul", "kreslo", "кресло")),
    ("Mousepad", ("mousepad", "mouse pad", "kovrik", "коврик", "pad")),
)

# Header spellings a shop may use for each category.
CATEGORY_ALIASES: dict[str, tuple[str, ...]] = {
    "storage": ("Storage", "ROM", "SSD", "HDD"),
    "rom": ("Storage", "ROM", "SSD", "HDD"),
    "ssd": ("Storage", "ROM", "SSD", "HDD"),
    "hdd": ("Storage", "ROM", "SSD", "HDD"),
    "cooling": ("Cooling", "CPU Cooler", "Case Fan", "Cooler"),
    "cooler": ("Cooling", "CPU Cooler", "Case Fan", "Cooler"),
    "cpu cooler": ("Cooling", "CPU Cooler", "Case Fan", "Cooler"),
    "case fan": ("Cooling", "CPU Cooler", "Case Fan", "Cooler"),
    "case": ("Case", "Cases"),
    "cases": ("Case", "Cases"),
    "mousepad": ("Mousepad", "Accessory", "Pad"),
    "pad": ("Mousepad", "Accessory", "Pad"),
    "accessory": ("Mousepad", "Accessory", "Pad"),
    "gpu": ("GPU", "Videokarta", "Video Card", "Graphics Card"),
    "cpu": ("CPU", "Protsessor", "Processor"),
    "ram": ("RAM", "Memory", "Operativ xotira"),
    "psu": ("PSU", "Power Supply", "Blok pitaniya"),
}


def category_aliases(category: str) -> tuple[str, ...]:
    """Header names accepted for *category*; the category itself if unknown."""
    cleaned = category.strip()
    if not cleaned:
        return ()
    return CATEGORY_ALIASES.get(cleaned.lower(), (cleaned,))


def canonical_category(header: str) -> str:
    """Map a catalog header back to its category label."""
    wanted = normalize_text(header)
    if not wanted:
        return ""
    for label, _keywords in CATEGORY_KEYWORDS:
        aliases = category_aliases(label)
        if any(normalize_text(a) == wanted for a in aliases):
            return label
    return header.strip().strip(":")


def detect_category(text: str) -> str:
    """First category of the fixed-priority table found in *text*."""
    forms = _TextForms.of(text)
    for label, keywords in CATEGORY_KEYWORDS:
        if _has_any(forms, keywords, short_boundary="left", short_len=4):
            return label
    return ""


def infer_category_from_catalog(
    catalog_text: str,
    model_tokens: Sequence[str],
) -> str:
    """Category of the first catalog line naming one of *model_tokens*.

    Lets ``13400f kerak`` resolve to CPU when the shop lists
    ``Intel i5 13400F`` under a CPU header.
    """
    tokens = [compact_text(t) for t in model_tokens if t]
    tokens = [t for t in tokens if len(t) >= 3]
    if not tokens or not catalog_text.strip():
        return ""
    header = ""
    for line in iter_lines(catalog_text):
        item = parse_catalog_line(line)
        if item is None:
            header = line
            continue
        name = compact_text(item.name)
        if header and any(t in name for t in tokens):
            return canonical_category(header)
    return ""


# ── Brands ───────────────────────────────────────────────

BRAND_PHRASES: tuple[str, ...] = ("western digital", "team group")

BRAND_TOKENS: tuple[str, ...] = (
    "samsung", "lexar", "corsair", "kingston", "crucial", "adata",
    "xpg", "teamgroup", "patriot", "pny", "seagate", "toshiba", "wd",
    "gigabyte", "msi", "asus", "acer", "dell", "hp", "lenovo",
    "logitech", "razer", "steelseries", "intel", "amd", "nvidia",
    "gravastar", "vgn",
)


def normalize_brand_tokens(tokens: Sequence[str]) -> list[str]:
    """Lower-case, de-duplicate and cap brand tokens."""
    seen: list[str] = []
    for token in tokens:
        cleaned = token.strip().lower()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen[: Settings.MAX_BRANDS]


def extract_brands(text: str) -> list[str]:
    """Brands named in *text*, sorted and capped.

    Two-letter codes (``wd``, ``hp``) must appear as whole tokens.
    """
    normalized = normalize_text(text)
    tokens = set(normalized.split())
    found: set[str] = set()
    for phrase in BRAND_PHRASES:
        if phrase in normalized:
            found.add(phrase)
    for brand in BRAND_TOKENS:
        if len(brand) <= 2:
            if brand in tokens:
                found.add(brand)
        elif brand in normalized:
            found.add(brand)
    return normalize_brand_tokens(sorted(found))


# ── Model tokens ─────────────────────────────────────────

_ALNUM_TOKEN_RE = re.compile(r"[a-z0-9]+")


def extract_model_tokens(text: str) -> list[str]:
    """Model-number-like tokens: ``i5``, ``13400f``, ``rtx4070``."""
    found: list[str] = []
    for match in INTEL_CORE_RE.finditer(text.lower()):
        token = re.sub(r"\s+|core", "", match.group(0))
        if token and token not in found:
            found.append(token)
    for token in _ALNUM_TOKEN_RE.findall(normalize_text(text)):
        if len(token) < 2 or token in found:
            continue
        if any(c.isdigit() for c in token) and any(
            c.isalpha() for c in token
        ):
            found.append(token)
    return found[: Settings.MAX_MODEL_TOKENS]


# ── Inquiry detection ────────────────────────────────────

INQUIRY_KEYWORDS: tuple[str, ...] = (
    "kerak", "bormi", "bor mi", "mavjud", "qidir", "izlayap",
    "izlayman", "tavsiya", "maslahat", "recommend", "suggest",
    "нуж", "есть ли", "покажи", "посовет", "narx", "qancha", "price",
    "цена", "сколько",
)


def is_product_inquiry(text: str) -> bool:
    """True when *text* asks about products rather than chatting."""
    if not text.strip():
        return False
    if detect_category(text) or extract_purpose(text):
        return True
    if extract_budget(text) > 0:
        return True
    forms = _TextForms.of(text)
    return _has_any(forms, INQUIRY_KEYWORDS, short_boundary="", short_len=0)


# ── Public API ───────────────────────────────────────────


class ConstraintExtractor:
    """Extract constraints from a message, filling gaps from history."""

    def __init__(self, scan_turns: int | None = None) -> None:
        self._scan_turns = scan_turns or Settings.HISTORY_SCAN_TURNS

    def extract(
        self,
        text: str,
        history: Sequence[HistoryTurn] = (),
        catalog_text: str = "",
    ) -> ExtractedConstraints:
        """Build the constraints for *text*.

        *history* is ordered oldest first; *catalog_text* (optional)
        lets a bare model number resolve to its catalog category.
        """
        budget = extract_budget(text)
        model_tokens = extract_model_tokens(text)
        result = ExtractedConstraints(
            budget=budget,
            category=detect_category(text),
            brands=extract_brands(text),
            purpose=extract_purpose(text),
            model_tokens=model_tokens,
            budget_explicit=budget > 0,
            is_inquiry=is_product_inquiry(text),
        )

        if not result.has_category and model_tokens and catalog_text:
            result.category = infer_category_from_catalog(
                catalog_text, model_tokens
            )
            if result.has_category:
                result.is_inquiry = True

        if result.is_inquiry and history:
            self._fill_from_history(result, history)

        result.brands = normalize_brand_tokens(result.brands)
        logger.debug(
            "Constraints for '%s': budget=%d category=%r purpose=%r "
            "brands=%s models=%s",
            text,
            result.budget,
            result.category,
            result.purpose,
            result.brands,
            result.model_tokens,
        )
        return result

    def _fill_from_history(
        self,
        result: ExtractedConstraints,
        history: Sequence[HistoryTurn],
    ) -> None:
        """Fill missing fields from the newest turns, newest first.

        The scan order and the category gate are part of the behaviour:
        a field filled by a newer turn is never overwritten by an older
        one, and the gate compares against the category as filled so far.
        """
        budget_ambiguous = (
            not result.budget_explicit and not result.model_tokens
        )
        recent = list(history)[-self._scan_turns:]
        for turn in reversed(recent):
            past_category = detect_category(turn.text)
            same_topic = not result.has_category or (
                past_category != ""
                and past_category.lower() == result.category.lower()
            )

            if not result.has_budget and budget_ambiguous and same_topic:
                past_budget = extract_budget(turn.text)
                if past_budget > 0:
                    result.budget = past_budget

            if not result.has_purpose:
                result.purpose = extract_purpose(turn.text)

            if not result.has_category and past_category:
                result.category = past_category

            if not result.has_brands:
                past_brands = extract_brands(turn.text)
                same_topic = not result.has_category or (
                    past_category != ""
                    and past_category.lower() == result.category.lower()
                )
                if past_brands and same_topic:
                    result.brands = past_brands

            if (
                result.has_budget
                and result.has_purpose
                and result.has_category
            ):
                break
