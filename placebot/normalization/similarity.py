"""Name similarity used by the encyclopedia cleanup pass and the match resolver.

Both functions compare names case- and diacritic-insensitively, so
"Gorges du Verdon" and "GORGES DU VERDÔN" are the same name.
"""

import re
import unicodedata


# =============================================================================
# Constants
# =============================================================================

CONTAINMENT_SIMILARITY = 0.8
MIN_SHARED_WORD_LENGTH = 2  # shared words must be strictly longer than this

MATCH_EXACT = 100.0
MATCH_CONTAINED = 50.0
MATCH_CLOSE_LENGTH_BONUS = 20.0
MATCH_CLOSE_LENGTH_SLACK = 10
MATCH_TOKEN_WEIGHT = 30.0

_WHITESPACE = re.compile(r"\s+")


def normalize_name(text: str) -> str:
    """Lower-case, strip diacritics and collapse whitespace.

    Example: "  Lac  d'ANNÉCY " -> "lac d'annecy"
    """
    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return _WHITESPACE.sub(" ", stripped).strip()


def _shared_word_ratio(a: str, b: str) -> float:
    words_a = a.split()
    words_b = b.split()
    if not words_a or not words_b:
        return 0.0
    shared = [w for w in words_a if w in words_b and len(w) > MIN_SHARED_WORD_LENGTH]
    return len(shared) / max(len(words_a), len(words_b))


def string_similarity(a: str, b: str) -> float:
    """Similarity of two names in [0, 1].

    Args:
        a: First name
        b: Second name

    Returns:
        1.0 when the normalized names are equal, 0.8 when one contains the
        other, otherwise the share of words (longer than 2 characters) the
        two names have in common.
    """
    s1 = normalize_name(a)
    s2 = normalize_name(b)

    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0
    if s1 in s2 or s2 in s1:
        return CONTAINMENT_SIMILARITY
    return _shared_word_ratio(s1, s2)


def match_similarity_score(name: str, candidate_name: str) -> float:
    """Confidence (0-100) that a feature named `candidate_name` is the place `name`.

    Exact match scores 100. Containment in either direction scores 50, plus
    20 when the candidate is less than 10 characters longer than the input.
    Otherwise the shared-word ratio is scaled to 30.
    """
    wanted = normalize_name(name)
    found = normalize_name(candidate_name)

    if wanted == found:
        return MATCH_EXACT
    if wanted and found and (wanted in found or found in wanted):
        score = MATCH_CONTAINED
        if len(found) < len(wanted) + MATCH_CLOSE_LENGTH_SLACK:
            score += MATCH_CLOSE_LENGTH_BONUS
        return score
    return _shared_word_ratio(wanted, found) * MATCH_TOKEN_WEIGHT
