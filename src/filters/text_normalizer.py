# src/filters/text_normalizer.py

"""Multi-script text normalisation for catalog matching.

Two canonical forms are produced from any user or catalog text:

* **normalized**: lower-cased, Cyrillic and extended Latin transliterated
  to Latin digraphs, every non letter/digit run collapsed to one space.
* **compact**: the normalized form with all separators removed, used to
  match model numbers written with or without spaces (``rtx 4060`` vs
  ``RTX4060``).

Both functions are pure, total and idempotent.
"""

import re
import unicodedata

# Russian, Uzbek, Kazakh and Ukrainian Cyrillic plus Turkic extended Latin.
_TRANSLIT: dict[str, str] = {
    "а": "a", "б": "b", "в": "v", "г": "g", "д": "d", "е": "e",
    "ё": "yo", "ж": "zh", "з": "z", "и": "i", "й": "y", "к": "k",
    "л": "l", "м": "m", "н": "n", "о": "o", "п": "p", "р": "r",
    "с": "s", "т": "t", "у": "u", "ф": "f", "х": "h", "ц": "ts",
    "ч": "ch", "ш": "sh", "щ": "shch", "ы": "y", "э": "e", "ю": "yu",
    "я": "ya", "є": "ye", "і": "i", "ї": "yi", "ґ": "g",
    "қ": "q", "ғ": "g", "ў": "o", "ҳ": "h", "һ": "h", "ә": "a",
    "ө": "o", "ү": "u", "ұ": "u", "ң": "ng",
    "ş": "sh", "ç": "ch", "ğ": "g", "ı": "i", "ß": "ss",
}

# Soft/hard signs and apostrophe variants (o'zbek, oʻzbek, o‘zbek).
_DROPPED: frozenset[str] = frozenset({
    "ь", "ъ", "'", "`", "ʼ", "ʻ", "‘", "’",
})

_SEPARATOR_RE = re.compile(r"[\W_]+")


def transliterate(text: str) -> str:
    """Map Cyrillic and extended Latin letters to Latin, dropping signs."""
    parts: list[str] = []
    for char in text:
        if char in _DROPPED:
            continue
        parts.append(_TRANSLIT.get(char, char))
    return "".join(parts)


def _strip_marks(text: str) -> str:
    """Decompose and drop combining marks (é -> e, й̆ -> и)."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(
        ch for ch in decomposed
        if not unicodedata.combining(ch)
    )


def _fold(text: str) -> str:
    """Lower-case and transliterate, before separator handling.

    Transliteration runs on composed text first so that letters such
    as ``й`` and ``ё`` keep their own digraphs, then once more after
    stripping marks for base letters exposed by decomposition.
    """
    lowered = unicodedata.normalize("NFC", text.lower())
    return transliterate(_strip_marks(transliterate(lowered)))


def normalize_text(text: str) -> str:
    """Return the normalized (space-separated) form of *text*."""
    if not text:
        return ""
    return _SEPARATOR_RE.sub(" ", _fold(text)).strip()


def compact_text(text: str) -> str:
    """Return the compact (separator-free) form of *text*."""
    if not text:
        return ""
    return _SEPARATOR_RE.sub("", _fold(text))


def tokenize(text: str) -> list[str]:
    """Split the normalized form of *text* into tokens."""
    return normalize_text(text).split()
