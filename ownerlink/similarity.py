"""Phonetically-tolerant string similarity.

Pipeline:
    1. Normalize both strings (uppercase, collapsed whitespace, only letters,
       digits, spaces and ``& , -`` kept).
    2. Identical normalized strings short-circuit to 1.0.
    3. Combine three signals:
       - edit: weighted Levenshtein where every substitution is cheaper than
         a full edit, and vowel-for-vowel substitutions cheapest of all
       - phonetic: rapidfuzz normalized Levenshtein over jellyfish metaphone
         codes
       - positional: jellyfish Jaro-Winkler (rewards common prefixes)
    4. Weights are renormalized over the signals that are available.

Default weights:
    edit = 0.80, phonetic = 0.15, positional = 0.05

Confidence labels:
    >= 1.0 exact, >= 0.9 high, >= 0.7 medium, >= 0.5 low, else very_low
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Mapping

import jellyfish
from rapidfuzz.distance import Levenshtein

from ownerlink.config import ConfidenceBuckets

# -- Substitution costs ------------------------------------------------------

VOWELS = frozenset("AEIOUY")
CONSONANTS = frozenset("BCDFGHJKLMNPQRSTVWXZ")

VOWEL_PAIR_COST = (6 * 5) / (20 * 19)
CONSONANT_PAIR_COST = (6 + 6) / 19
MISMATCH_COST = (6 + 6) / 19

# -- Signal weights ----------------------------------------------------------

WEIGHT_EDIT = 0.80
WEIGHT_PHONETIC = 0.15
WEIGHT_POSITIONAL = 0.05

DEFAULT_WEIGHTS: Mapping[str, float] = {
    "edit": WEIGHT_EDIT,
    "phonetic": WEIGHT_PHONETIC,
    "positional": WEIGHT_POSITIONAL,
}

_DISALLOWED = re.compile(r"[^\w\s&,\-]")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class SimilarityResult:
    """Composite similarity of two strings.

    Attributes
    ----------
    score : float
        Weighted combination of the signals, in [0, 1].
    breakdown : dict of str to float
        Per-signal scores; a signal that could not be computed is omitted.
    confidence : str
        Label derived from ``score``.
    """

    score: float
    breakdown: dict[str, float] = field(default_factory=dict)
    confidence: str = "very_low"


def _substitution_cost(a: str, b: str) -> float:
    if a == b:
        return 0.0
    a, b = a.upper(), b.upper()
    if a in VOWELS and b in VOWELS:
        return VOWEL_PAIR_COST
    if a in CONSONANTS and b in CONSONANTS:
        return CONSONANT_PAIR_COST
    return MISMATCH_COST


def weighted_edit_distance(a: str, b: str) -> float:
    """Levenshtein distance with vowel/consonant-aware substitution costs.

    Insertions and deletions cost 1. Runs in O(len(a) * len(b)) time and
    keeps a single row of the table, sized to the shorter string.
    """
    # Canonical order: (a, b) and (b, a) must sum costs identically.
    if (len(a), a) < (len(b), b):
        a, b = b, a
    previous = [float(j) for j in range(len(b) + 1)]
    for i, ca in enumerate(a, start=1):
        current = [float(i)]
        for j, cb in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1.0,
                current[j - 1] + 1.0,
                previous[j - 1] + _substitution_cost(ca, cb),
            ))
        previous = current
    return previous[-1]


def edit_similarity(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return max(0.0, 1.0 - weighted_edit_distance(a, b) / longest)


def normalize_for_similarity(value: object) -> str:
    """Uppercase, collapse whitespace and drop characters outside ``\\w \\s & , -``."""
    if not isinstance(value, str):
        return ""
    cleaned = _DISALLOWED.sub("", value.upper())
    return _WHITESPACE.sub(" ", cleaned).strip()


def confidence_bucket(score: float, buckets: ConfidenceBuckets | None = None) -> str:
    """Map a score to ``exact``, ``high``, ``medium``, ``low`` or ``very_low``."""
    if score >= 1.0:
        return "exact"
    for label, lower_bound in (buckets or ConfidenceBuckets()).ordered:
        if score >= lower_bound:
            return label
    return "very_low"


def _phonetic_similarity(a: str, b: str) -> float | None:
    code_a, code_b = jellyfish.metaphone(a), jellyfish.metaphone(b)
    if not code_a and not code_b:
        return None
    return Levenshtein.normalized_similarity(code_a, code_b)


class StringSimilarityScorer:
    """Composite string similarity with configurable weights and buckets.

    Parameters
    ----------
    weights : Mapping[str, float], optional
        Signal weights keyed ``edit``, ``phonetic`` and ``positional``.
        A signal with zero weight is skipped.
    buckets : ConfidenceBuckets, optional
        Confidence label thresholds.
    """

    def __init__(
        self,
        weights: Mapping[str, float] | None = None,
        buckets: ConfidenceBuckets | None = None,
    ) -> None:
        self.weights = dict(weights or DEFAULT_WEIGHTS)
        self.buckets = buckets or ConfidenceBuckets()

    def score(self, a: object, b: object) -> SimilarityResult:
        left, right = normalize_for_similarity(a), normalize_for_similarity(b)
        if left == right:
            return SimilarityResult(
                score=1.0,
                breakdown={"edit": 1.0, "phonetic": 1.0, "positional": 1.0},
                confidence="exact",
            )
        if right < left:
            left, right = right, left

        signals: dict[str, float] = {"edit": edit_similarity(left, right)}
        if self.weights.get("phonetic", 0.0) > 0:
            phonetic = _phonetic_similarity(left, right)
            if phonetic is not None:
                signals["phonetic"] = phonetic
        if self.weights.get("positional", 0.0) > 0:
            signals["positional"] = jellyfish.jaro_winkler_similarity(left, right)

        total_weight = sum(self.weights.get(k, 0.0) for k in signals)
        if total_weight <= 0:
            composite = signals["edit"]
        else:
            composite = sum(s * self.weights.get(k, 0.0) for k, s in signals.items()) / total_weight
        composite = min(1.0, max(0.0, composite))
        return SimilarityResult(
            score=composite,
            breakdown=signals,
            confidence=confidence_bucket(composite, self.buckets),
        )

    def similarity(self, a: object, b: object) -> float:
        return self.score(a, b).score


_default_scorer = StringSimilarityScorer()


def composite_similarity(a: object, b: object) -> SimilarityResult:
    """Composite similarity using the default weights."""
    return _default_scorer.score(a, b)


def similarity(a: object, b: object) -> float:
    """Composite similarity score in [0, 1]; symmetric, and 1.0 for equal strings."""
    return _default_scorer.score(a, b).score
