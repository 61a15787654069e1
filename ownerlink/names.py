"""Owner-name classification and decomposition.

Pipeline:
    1. Normalize the raw name (uppercase, collapsed whitespace, standard
       comma and ampersand spacing) and split it into words.
    2. Detect business terms, in this order:
       - the whole name is on the business master list (case0)
       - a word, stripped of punctuation, is a dictionary term
       - a punctuation-bearing word fuzzily matches a term (internal
         punctuation around a term, or an abbreviation such as ``ASSOC,``)
       - an integer followed by a word that contains a term
    3. Analyse the major punctuation (comma, ampersand, slash).
    4. Walk one ordered decision table keyed on word count, business terms
       and punctuation; the first matching row gives the case id and the
       parse action.
    5. Map the case id to an entity type. Cases that may be either a
       business or a legal construct are settled by a suffix check
       (TRUST, ESTATE, LLC, ...).

Case ids follow the property roll conventions: case0..case34 plus the
sub-cases case4N, case15a, case15b, case20N and case21N. case32, case33 and
case34 are the catch-alls.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Sequence

from nameparser.config import CONSTANTS

from ownerlink.models import AGGREGATE_HOUSEHOLD, BUSINESS, INDIVIDUAL, LEGAL_CONSTRUCT
from ownerlink.reference import ReferenceData

logger = logging.getLogger(__name__)

UNCLASSIFIED = "none"
BUSINESS_OR_LEGAL = "Business/LegalConstruct"

CASE_ENTITY_TYPES = {
    "case0": BUSINESS,
    "case1": INDIVIDUAL,
    "case2": INDIVIDUAL,
    "case3": INDIVIDUAL,
    "case4": BUSINESS,
    "case4N": BUSINESS,
    "case5": INDIVIDUAL,
    "case6": INDIVIDUAL,
    "case7": INDIVIDUAL,
    "case8": INDIVIDUAL,
    "case9": INDIVIDUAL,
    "case10": INDIVIDUAL,
    "case11": AGGREGATE_HOUSEHOLD,
    "case12": BUSINESS,
    "case13": BUSINESS_OR_LEGAL,
    "case14": BUSINESS,
    "case15a": AGGREGATE_HOUSEHOLD,
    "case15b": AGGREGATE_HOUSEHOLD,
    "case16": AGGREGATE_HOUSEHOLD,
    "case17": AGGREGATE_HOUSEHOLD,
    "case18": INDIVIDUAL,
    "case19": BUSINESS_OR_LEGAL,
    "case20": BUSINESS_OR_LEGAL,
    "case20N": BUSINESS,
    "case21": BUSINESS_OR_LEGAL,
    "case21N": BUSINESS,
    "case22": BUSINESS,
    "case23": BUSINESS,
    "case24": BUSINESS_OR_LEGAL,
    "case25": AGGREGATE_HOUSEHOLD,
    "case26": AGGREGATE_HOUSEHOLD,
    "case27": AGGREGATE_HOUSEHOLD,
    "case28": AGGREGATE_HOUSEHOLD,
    "case29": AGGREGATE_HOUSEHOLD,
    "case30": AGGREGATE_HOUSEHOLD,
    "case31": BUSINESS_OR_LEGAL,
    "case32": AGGREGATE_HOUSEHOLD,
    "case33": INDIVIDUAL,
    "case34": LEGAL_CONSTRUCT,
}

CARE_OF_TOKENS = frozenset({"C/O", "C\\O", "C-O", "ATTN", "ATTN:"})

_WHITESPACE = re.compile(r"\s+")
_COMMA_SPACING = re.compile(r"\s*,\s*")
_REPEATED_COMMAS = re.compile(r",(?:\s*,)+")
_AMPERSAND_SPACING = re.compile(r"\s*&\s*")
_NON_WORD = re.compile(r"[^A-Z0-9]")
# Hyphens and apostrophes are part of names, not punctuation.
_PUNCTUATION = re.compile(r"[^\w\s'\-]")
_INTEGER = re.compile(r"^\d+$")

MIN_ABBREVIATION_LENGTH = 4
MIN_EMBEDDED_TERM_LENGTH = 4


# -- Result types ------------------------------------------------------------


@dataclass(frozen=True)
class PersonName:
    first: str = ""
    last: str = ""
    other: str = ""
    suffix: str = ""

    @property
    def full(self) -> str:
        return " ".join(p for p in (self.first, self.other, self.last, self.suffix) if p)


@dataclass(frozen=True)
class ParsedName:
    """Decomposed name: the complete form plus any individual people in it."""

    complete_name: str
    members: tuple[PersonName, ...] = ()


@dataclass(frozen=True)
class Punctuation:
    has_commas: bool = False
    has_ampersand: bool = False
    has_slash: bool = False

    @property
    def has_major_punctuation(self) -> bool:
        return self.has_commas or self.has_ampersand or self.has_slash

    @property
    def commas_only(self) -> bool:
        return self.has_commas and not self.has_ampersand and not self.has_slash

    @property
    def ampersand_only(self) -> bool:
        return self.has_ampersand and not self.has_commas and not self.has_slash

    @property
    def slash_only(self) -> bool:
        return self.has_slash and not self.has_commas and not self.has_ampersand

    @classmethod
    def of(cls, text: str) -> Punctuation:
        return cls(has_commas="," in text, has_ampersand="&" in text, has_slash="/" in text)


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one raw name.

    Attributes
    ----------
    case_id : str
        Decision-table row that matched (``none`` for unusable input).
    entity_type : str
        ``Individual``, ``Business``, ``AggregateHousehold`` or
        ``LegalConstruct``.
    parsed_name : ParsedName
        Complete name and the people decomposed from it.
    normalized : str
        The normalized name the table was evaluated on.
    words : tuple of str
        Whitespace tokens of ``normalized``.
    has_business_terms : bool
        Whether any business-term rule fired.
    punctuation : Punctuation
        Major punctuation found in the name.
    """

    case_id: str
    entity_type: str
    parsed_name: ParsedName
    normalized: str = ""
    words: tuple[str, ...] = ()
    has_business_terms: bool = False
    punctuation: Punctuation = Punctuation()


UNCLASSIFIED_RESULT = Classification(
    case_id=UNCLASSIFIED,
    entity_type=INDIVIDUAL,
    parsed_name=ParsedName(complete_name=""),
)


# -- Helpers -----------------------------------------------------------------


def normalize_name(raw: str) -> str:
    text = _WHITESPACE.sub(" ", raw.strip().upper())
    text = _AMPERSAND_SPACING.sub(" & ", text)
    text = _REPEATED_COMMAS.sub(",", text)
    text = _COMMA_SPACING.sub(", ", text)
    return text.strip()


def _clean(word: str) -> str:
    return _NON_WORD.sub("", word.upper())


def _bare(word: str) -> str:
    return word.strip(",")


def _is_suffix(word: str) -> bool:
    token = _clean(word).lower()
    if len(token) < 2:
        return False
    # Two-letter acronyms (ED, MA, DO) are too often real middle names.
    return token in CONSTANTS.suffix_not_acronyms or (
        len(token) > 2 and token in CONSTANTS.suffix_acronyms
    )


def _has_internal_punctuation(word: str) -> bool:
    for match in _PUNCTUATION.finditer(word):
        if 0 < match.start() < len(word) - 1:
            return True
    return False


def _person(first: str, last: str, others: Sequence[str] = ()) -> PersonName:
    others = [_bare(w) for w in others if _bare(w)]
    suffix = ""
    if others and _is_suffix(others[-1]):
        suffix = others.pop()
    return PersonName(first=_bare(first), last=_bare(last), other=" ".join(others), suffix=suffix)


def _first_middle_last(words: Sequence[str]) -> PersonName:
    words = list(words)
    suffix = ""
    if len(words) > 2 and _is_suffix(words[-1]):
        suffix = _bare(words.pop())
    person = _person(words[0], words[-1], words[1:-1])
    return PersonName(first=person.first, last=person.last, other=person.other, suffix=suffix or person.suffix)


def _comma_count(words: Sequence[str]) -> int:
    return sum(w.count(",") for w in words)


def _ampersand_index(words: Sequence[str]) -> int:
    return words.index("&") if "&" in words else -1


# -- Decision table ----------------------------------------------------------


@dataclass(frozen=True)
class _Shape:
    """Everything a decision-table predicate may look at."""

    words: tuple[str, ...]
    term_flags: tuple[bool, ...]
    business: bool
    punct: Punctuation
    slash_joins_terms: bool

    @property
    def count(self) -> int:
        return len(self.words)

    @property
    def amp(self) -> int:
        return _ampersand_index(self.words)


def _first_ends_comma(s: _Shape) -> bool:
    return s.words[0].endswith(",")


def _last_ends_comma(s: _Shape) -> bool:
    return s.words[-1].endswith(",")


def _middle_is_comma(s: _Shape) -> bool:
    return s.count == 3 and s.words[1] == ","


def _comma_word_after_first(s: _Shape) -> bool:
    return any("," in w for w in s.words[1:])


def _single_letter(word: str) -> bool:
    return len(_clean(word)) == 1


def _first_and_third_match(s: _Shape) -> bool:
    return _clean(s.words[0]) == _clean(s.words[2])


def _case20(s: _Shape) -> bool:
    return "," in s.words[0] and s.term_flags[-1]


def _case20n(s: _Shape) -> bool:
    if "," in s.words[0]:
        return False
    last_term = max((i for i, flag in enumerate(s.term_flags) if flag), default=-1)
    return last_term > 0 and "," in s.words[last_term - 1]


def _only_comma_in_first(s: _Shape) -> bool:
    return "," in s.words[0] and not any("," in w for w in s.words[1:])


def _commas_in_first_and_after_ampersand(s: _Shape) -> bool:
    amp = s.amp
    if amp <= 0 or "," not in s.words[0]:
        return False
    return amp + 1 < s.count and "," in s.words[amp + 1]


def _repeated_comma_word(words: Sequence[str]) -> str | None:
    seen: set[str] = set()
    for word in words:
        if "," in word:
            if word in seen:
                return word
            seen.add(word)
    return None


def _one_word_after_ampersand(s: _Shape) -> bool:
    return s.amp != -1 and s.amp == s.count - 2


# -- Parse actions -----------------------------------------------------------


def _parse_complete(words: Sequence[str]) -> tuple[PersonName, ...]:
    return ()


def _parse_last_first(words: Sequence[str]) -> tuple[PersonName, ...]:
    rest = [w for w in words[1:] if w != ","]
    if not rest:
        return ()
    return (_person(rest[0], words[0], rest[1:]),)


def _parse_first_last_comma(words: Sequence[str]) -> tuple[PersonName, ...]:
    return (_person(words[0], words[1]),)


def _parse_first_last(words: Sequence[str]) -> tuple[PersonName, ...]:
    return (_first_middle_last(words),)


def _parse_compound_last(words: Sequence[str]) -> tuple[PersonName, ...]:
    k = next(i for i, w in enumerate(words) if i > 0 and "," in w)
    if k == len(words) - 1:
        return (_first_middle_last(words),)
    last = " ".join(_bare(w) for w in words[: k + 1])
    return (_person(words[k + 1], last, words[k + 2:]),)


def _parse_last_first_initial(words: Sequence[str]) -> tuple[PersonName, ...]:
    return (_person(words[1], words[0], words[2:]),)


def _parse_first_names_pair(words: Sequence[str]) -> tuple[PersonName, ...]:
    amp = _ampersand_index(words)
    return (PersonName(first=_bare(words[amp - 1])), PersonName(first=_bare(words[amp + 1])))


def _parse_shared_last_after_comma(words: Sequence[str]) -> tuple[PersonName, ...]:
    last = words[0]
    return (_person(words[1], last), _person(words[3], last))


def _parse_two_last_first(words: Sequence[str]) -> tuple[PersonName, ...]:
    return (_person(words[1], words[0]), _person(words[3], words[2]))


def _parse_shared_last_leading(words: Sequence[str]) -> tuple[PersonName, ...]:
    amp = _ampersand_index(words)
    last = words[0]
    before, after = words[1:amp], words[amp + 1:]
    members = []
    for group in (before, after):
        if group:
            members.append(_person(group[0], last, group[1:]))
    return tuple(members)


def _parse_two_comma_led(words: Sequence[str]) -> tuple[PersonName, ...]:
    amp = _ampersand_index(words)
    members = []
    for group in (words[:amp], words[amp + 1:]):
        if len(group) >= 2:
            members.append(_person(group[1], group[0], group[2:]))
    return tuple(members)


def _parse_repeated_last(words: Sequence[str]) -> tuple[PersonName, ...]:
    repeated = _repeated_comma_word(words)
    if repeated is None:
        return ()
    segments: list[list[str]] = []
    for word in words:
        if word == repeated:
            segments.append([])
        elif segments:
            segments[-1].append(word)
    return tuple(_person(seg[0], repeated, seg[1:]) for seg in segments if seg)


_Predicate = Callable[[_Shape], bool]
_Parser = Callable[[Sequence[str]], tuple[PersonName, ...]]

# Ordered rows; the first matching predicate wins.
DECISION_TABLE: tuple[tuple[str, _Predicate, _Parser], ...] = (
    # Two words
    ("case1", lambda s: s.count == 2 and not s.business and s.punct.commas_only and _first_ends_comma(s), _parse_last_first),
    ("case2", lambda s: s.count == 2 and not s.business and s.punct.commas_only and _last_ends_comma(s), _parse_first_last_comma),
    ("case3", lambda s: s.count == 2 and not s.business and not s.punct.has_major_punctuation, _parse_first_last),
    ("case4", lambda s: s.count == 2 and s.business and s.punct.commas_only, _parse_complete),
    ("case4N", lambda s: s.count == 2 and s.business and not s.punct.has_major_punctuation, _parse_complete),
    # Three words
    ("case5", lambda s: s.count == 3 and not s.business and s.punct.commas_only and _first_ends_comma(s), _parse_last_first),
    ("case6", lambda s: s.count == 3 and not s.business and s.punct.commas_only and _middle_is_comma(s), _parse_last_first),
    ("case7", lambda s: s.count == 3 and not s.business and s.punct.commas_only and _comma_word_after_first(s), _parse_compound_last),
    ("case8", lambda s: s.count == 3 and not s.business and not s.punct.has_major_punctuation and _single_letter(s.words[2]), _parse_last_first_initial),
    ("case9", lambda s: s.count == 3 and not s.business and not s.punct.has_major_punctuation and _single_letter(s.words[1]), _parse_first_last),
    ("case10", lambda s: s.count == 3 and not s.business and not s.punct.has_major_punctuation, _parse_first_last),
    ("case11", lambda s: s.count == 3 and not s.business and s.punct.ampersand_only and s.words[1] == "&", _parse_first_names_pair),
    ("case12", lambda s: s.count == 3 and not s.business and s.punct.slash_only and s.slash_joins_terms, _parse_complete),
    ("case13", lambda s: s.count == 3 and s.business and not s.punct.has_major_punctuation, _parse_complete),
    ("case14", lambda s: s.count == 3 and s.business and s.punct.commas_only, _parse_complete),
    # Four words
    ("case15a", lambda s: s.count == 4 and not s.business and s.punct.has_ampersand and s.punct.has_commas and not s.punct.has_slash and _first_ends_comma(s) and s.words[2] == "&", _parse_shared_last_after_comma),
    ("case15b", lambda s: s.count == 4 and not s.business and s.punct.commas_only and _first_and_third_match(s), _parse_two_last_first),
    ("case16", lambda s: s.count == 4 and not s.business and s.punct.commas_only, _parse_two_last_first),
    ("case17", lambda s: s.count == 4 and not s.business and s.punct.ampersand_only and s.words[2] == "&", _parse_shared_last_leading),
    ("case18", lambda s: s.count == 4 and not s.business and not s.punct.has_major_punctuation, _parse_complete),
    ("case19", lambda s: s.count == 4 and s.business and not s.punct.has_major_punctuation, _parse_complete),
    ("case20", lambda s: s.count == 4 and s.business and s.punct.commas_only and _case20(s), _parse_complete),
    ("case21", lambda s: s.count == 4 and s.business and s.punct.commas_only and s.words[1] == ",", _parse_complete),
    ("case21N", lambda s: s.count == 4 and s.business and s.punct.commas_only and _comma_count(s.words) > 1, _parse_complete),
    ("case20N", lambda s: s.count == 4 and s.business and s.punct.commas_only and _case20n(s), _parse_complete),
    ("case22", lambda s: s.count == 4 and s.business and s.punct.ampersand_only and s.words[1] == "&", _parse_complete),
    ("case23", lambda s: s.count == 4 and s.business and s.punct.has_ampersand and s.punct.has_commas, _parse_complete),
    ("case24", lambda s: s.count == 4 and s.business and s.punct.has_slash, _parse_complete),
    # Five or more words
    ("case25", lambda s: s.count >= 5 and not s.business and s.amp > 0 and _only_comma_in_first(s), _parse_shared_last_leading),
    ("case26", lambda s: s.count >= 5 and not s.business and s.punct.has_ampersand and _commas_in_first_and_after_ampersand(s), _parse_two_comma_led),
    ("case27", lambda s: s.count >= 5 and not s.business and s.punct.commas_only and _comma_count(s.words) > 1 and _repeated_comma_word(s.words) is not None, _parse_repeated_last),
    ("case28", lambda s: s.count >= 5 and not s.business and s.punct.commas_only and _comma_count(s.words) > 1, _parse_complete),
    ("case29", lambda s: s.count >= 5 and not s.business and s.punct.ampersand_only and _one_word_after_ampersand(s), _parse_shared_last_leading),
    ("case30", lambda s: s.count >= 5 and not s.business, _parse_complete),
    ("case31", lambda s: s.count >= 5 and s.business, _parse_complete),
    # Catch-alls
    ("case32", lambda s: not s.business and s.punct.has_ampersand, _parse_complete),
    ("case33", lambda s: not s.business, _parse_complete),
    ("case34", lambda s: True, _parse_complete),
)


# -- Classifier --------------------------------------------------------------


class NameClassifier:
    """Assign a case id, entity type and parsed form to a raw owner name.

    Parameters
    ----------
    reference : ReferenceData, optional
        Business-term dictionary, business master list and legal-construct
        markers.
    """

    def __init__(self, reference: ReferenceData | None = None) -> None:
        self.reference = reference or ReferenceData()

    def classify(self, raw: object) -> Classification:
        """Classify a raw name. Never raises; unusable input is unclassified."""
        if not isinstance(raw, str) or not raw.strip():
            return UNCLASSIFIED_RESULT

        normalized = normalize_name(raw)
        words = tuple(normalized.split(" "))
        punct = Punctuation.of(normalized)

        if normalized in self.reference.business_master:
            return self._result("case0", (), normalized, words, True, punct)

        term_flags = tuple(self.is_business_word(w) for w in words)
        business = any(term_flags) or self._integer_business_pattern(words)
        shape = _Shape(
            words=words,
            term_flags=term_flags,
            business=business,
            punct=punct,
            slash_joins_terms=self._slash_joins_terms(words),
        )

        # The last row always matches.
        case_id, _, parse = next(row for row in DECISION_TABLE if row[1](shape))
        return self._result(case_id, parse(words), normalized, words, business, punct)

    def is_business_word(self, word: str) -> bool:
        """True when one word marks a business name."""
        if word.upper() in CARE_OF_TOKENS:
            return False
        terms = self.reference.business_terms
        cleaned = _clean(word)
        if not cleaned:
            return False
        if cleaned in terms:
            return True
        if not _PUNCTUATION.search(word):
            return False
        if _has_internal_punctuation(word):
            parts = [_clean(p) for p in _PUNCTUATION.split(word)]
            if any(p in terms for p in parts if p):
                return True
            if any(t in cleaned for t in terms if len(t) >= MIN_EMBEDDED_TERM_LENGTH):
                return True
        if len(cleaned) >= MIN_ABBREVIATION_LENGTH:
            return any(t.startswith(cleaned) for t in terms)
        return False

    # -- Internal helpers -------------------------------------------------

    def _integer_business_pattern(self, words: Sequence[str]) -> bool:
        terms = self.reference.business_terms
        for current, following in zip(words, words[1:]):
            if not _INTEGER.match(_clean(current)):
                continue
            cleaned = _clean(following)
            if any(t in cleaned for t in terms if len(t) >= MIN_EMBEDDED_TERM_LENGTH):
                return True
        return False

    def _slash_joins_terms(self, words: Sequence[str]) -> bool:
        terms = self.reference.business_terms
        for word in words:
            if "/" in word:
                parts = word.split("/")
                return len(parts) == 2 and all(_clean(p) in terms for p in parts)
        return False

    def _resolve_entity_type(self, case_id: str, words: Sequence[str]) -> str:
        mapped = CASE_ENTITY_TYPES[case_id]
        if mapped != BUSINESS_OR_LEGAL:
            return mapped
        markers = set(self.reference.legal_construct_markers)
        if case_id == "case31":
            markers |= {"INC", "CORP"}
        if case_id == "case24" and any("/" in w for w in words):
            return LEGAL_CONSTRUCT
        if any(_clean(w) in markers for w in words):
            return LEGAL_CONSTRUCT
        return BUSINESS

    def _result(
        self,
        case_id: str,
        members: tuple[PersonName, ...],
        normalized: str,
        words: tuple[str, ...],
        business: bool,
        punct: Punctuation,
    ) -> Classification:
        entity_type = self._resolve_entity_type(case_id, words)
        logger.debug("Classified %r as %s (%s)", normalized, case_id, entity_type)
        return Classification(
            case_id=case_id,
            entity_type=entity_type,
            parsed_name=ParsedName(complete_name=normalized, members=members),
            normalized=normalized,
            words=words,
            has_business_terms=business,
            punctuation=punct,
        )
