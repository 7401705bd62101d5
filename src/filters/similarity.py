# src/filters/similarity.py

"""Cheap string-similarity primitives used by the ranking engine."""

_VOWELS: frozenset[str] = frozenset("aeiouy")


def max_edit_distance(token: str) -> int:
    """Length-adaptive edit budget: short tokens must match exactly."""
    length = len(token)
    if length <= 3:
        return 0
    if length <= 5:
        return 1
    if length <= 8:
        return 2
    if length <= 12:
        return 3
    return 4


def edit_distance_within(
    a: str,
    b: str,
    max_distance: int,
) -> int | None:
    """Levenshtein distance of *a* and *b* if it is at most *max_distance*.

    The dynamic-programming rows are abandoned as soon as a whole row
    exceeds the cap, so distant pairs cost only a few rows.  Returns
    ``None`` when the strings are farther apart than the cap.
    """
    if max_distance < 0:
        return None
    if a == b:
        return 0
    if not a or not b:
        length = len(a) or len(b)
        return length if length <= max_distance else None
    if abs(len(a) - len(b)) > max_distance:
        return None
    if len(b) > len(a):
        a, b = b, a

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a):
        current = [i + 1]
        row_min = current[0]
        for j, char_b in enumerate(b):
            cost = 0 if char_a == char_b else 1
            value = min(
                previous[j + 1] + 1,      # deletion
                current[j] + 1,           # insertion
                previous[j] + cost,       # substitution
            )
            current.append(value)
            row_min = min(row_min, value)
        if row_min > max_distance:
            return None
        previous = current

    distance = previous[-1]
    return distance if distance <= max_distance else None


def ngram_set(text: str, n: int = 2) -> set[str]:
    """Contiguous *n*-character substrings; the whole text if shorter."""
    if n <= 0 or not text:
        return set()
    if len(text) < n:
        return {text}
    return {text[i:i + n] for i in range(len(text) - n + 1)}


def ngram_similarity(a: str, b: str, n: int = 2) -> float:
    """Jaccard similarity of the *n*-gram sets of *a* and *b*."""
    set_a = ngram_set(a, n)
    set_b = ngram_set(b, n)
    if not set_a or not set_b:
        return 0.0
    intersection = len(set_a & set_b)
    union = len(set_a | set_b)
    return intersection / union if union else 0.0


def consonant_signature(text: str) -> str:
    """Coarse phonetic key: keep alphanumerics, drop non-initial vowels.

    Immediate repeats are collapsed, so ``"samsung"`` and ``"smsng"``
    share the key ``"smsng"``.
    """
    kept: list[str] = []
    for char in text:
        if not char.isalnum():
            continue
        if kept and char in _VOWELS:
            continue
        if kept and kept[-1] == char:
            continue
        kept.append(char)
    return "".join(kept)


def has_letter(token: str) -> bool:
    """True when *token* contains at least one letter."""
    return any(ch.isalpha() for ch in token)
