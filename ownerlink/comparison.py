"""Weighted, auditable similarity between two owner entities.

Scoring:
1. Pick the comparison rule from the pair of entity kinds (see ``_RULES``).
   Pairs without a rule are not comparable and score ``None``.
2. Score each component (``name``, ``contact_info``, ``account_number``)
   that both sides carry. Absent components are dropped and the remaining
   weights renormalized: ``actual_weight = weight / sum(present weights)``.
3. The entity score is ``sum(similarity * actual_weight)``.

Components recurse the same way: contact info splits into primary address,
secondary addresses and email; addresses split into street number, street
name, unit, city, state and zip (or PO Box, city and zip).

Individual vs household pairs compare the individual against every member
and keep the best member. Empty households fall back to a direct
name/contact comparison.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Mapping, Sequence

from cleanco import basename as cleanco_basename

from ownerlink.config import Settings, Weights
from ownerlink.models import (
    AGGREGATE_HOUSEHOLD,
    BUSINESS,
    INDIVIDUAL,
    LEGAL_CONSTRUCT,
    Address,
    AttributedTerm,
    ContactInfo,
    Individual,
    Name,
)
from ownerlink.similarity import StringSimilarityScorer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComponentBreakdown:
    """One node of a comparison breakdown tree.

    Attributes
    ----------
    similarity : float
        Score of this component, in [0, 1].
    weight : float
        Configured weight of this component within its parent.
    actual_weight : float
        Weight after renormalizing over the components present on both sides.
    contribution : float
        ``similarity * actual_weight``.
    method : str | None
        How the score was produced (``exact``, ``composite``, ``positional``,
        ``swapped``, ``best_member`` ...).
    components : dict
        Child nodes keyed by component name.
    """

    similarity: float
    weight: float = 1.0
    actual_weight: float = 1.0
    contribution: float = 0.0
    method: str | None = None
    components: dict[str, ComponentBreakdown] = field(default_factory=dict)

    def find(self, path: str) -> ComponentBreakdown | None:
        """Look up a descendant by dotted path, e.g. ``contact_info.primary_address.city``."""
        node: ComponentBreakdown | None = self
        for part in path.split("."):
            if node is None:
                return None
            node = node.components.get(part)
        return node

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "similarity": self.similarity,
            "weight": self.weight,
            "actual_weight": self.actual_weight,
            "contribution": self.contribution,
        }
        if self.method:
            data["method"] = self.method
        if self.components:
            data["components"] = {k: v.to_dict() for k, v in self.components.items()}
        return data


@dataclass(frozen=True)
class ComparisonResult:
    """Outcome of comparing two entities.

    ``score`` is ``None`` (not zero) when the pair is not comparable.
    """

    score: float | None
    comparison_type: str
    breakdown: ComponentBreakdown | None = None
    matched_member: Individual | None = None
    matched_member_index: int | None = None

    @property
    def comparable(self) -> bool:
        return self.score is not None


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


def _leaf(similarity: float, method: str) -> ComponentBreakdown:
    return ComponentBreakdown(similarity=_clamp(similarity), method=method)


def _aggregate(
    children: Mapping[str, ComponentBreakdown | None],
    weights: Mapping[str, float],
    method: str | None = None,
) -> ComponentBreakdown | None:
    """Combine child scores with weights renormalized over present children."""
    present = {
        key: child
        for key, child in children.items()
        if child is not None and weights.get(key, 0.0) > 0
    }
    total = sum(weights[key] for key in present)
    if not present or total <= 0:
        return None

    components: dict[str, ComponentBreakdown] = {}
    score = 0.0
    for key, child in present.items():
        actual = weights[key] / total
        contribution = child.similarity * actual
        components[key] = replace(
            child, weight=weights[key], actual_weight=actual, contribution=contribution
        )
        score += contribution
    return ComponentBreakdown(similarity=_clamp(score), method=method, components=components)


def _text(term: AttributedTerm | None) -> str:
    return term.text.strip() if term is not None else ""


def _exact(a: AttributedTerm | None, b: AttributedTerm | None, normalize=str.upper) -> ComponentBreakdown | None:
    left, right = _text(a), _text(b)
    if not left or not right:
        return None
    return _leaf(1.0 if normalize(left) == normalize(right) else 0.0, "exact")


def _zip5(value: str) -> str:
    return "".join(ch for ch in value if ch.isdigit())[:5]


def _box_number(value: str) -> str:
    return value.upper().lstrip("0") or "0"


def _strip_legal_suffix(name: str) -> str:
    """Remove business suffixes (LLC, Inc, Corp, ...) using cleanco."""
    stripped = cleanco_basename(name)
    return stripped if stripped.strip() else name


class EntityComparator:
    """Compare entities of any kind into a weighted score and breakdown.

    Parameters
    ----------
    weights : Weights, optional
        Frozen weight tables; defaults to ``Settings().weights()``.
    scorer : StringSimilarityScorer, optional
        String similarity scorer; defaults to one built from ``weights``.
    """

    def __init__(
        self,
        weights: Weights | None = None,
        scorer: StringSimilarityScorer | None = None,
    ) -> None:
        self.weights = weights or Settings().weights()
        self.scorer = scorer or StringSimilarityScorer(self.weights.similarity)

    def compare(self, e1: Any, e2: Any, detailed: bool = False) -> ComparisonResult:
        """Compare two entities. Never raises for unsupported pairs."""
        kinds = (getattr(e1, "kind", None), getattr(e2, "kind", None))
        rule = _RULES.get(kinds)
        if rule is None:
            return ComparisonResult(score=None, comparison_type="not_comparable")

        result = rule(self, e1, e2)
        if result.breakdown is None:
            return ComparisonResult(score=None, comparison_type=result.comparison_type)
        if not detailed:
            return replace(result, breakdown=None)
        return result

    # -- Entity rules -----------------------------------------------------

    def _compare_same_kind(self, e1: Any, e2: Any) -> ComparisonResult:
        breakdown = self._component_breakdown(e1, e2, self.weights.for_kind(e1.kind))
        return self._result(breakdown, f"{e1.kind}-{e2.kind}")

    def _compare_direct(self, e1: Any, e2: Any) -> ComparisonResult:
        breakdown = self._component_breakdown(e1, e2, self.weights.direct)
        return self._result(breakdown, f"{e1.kind}-{e2.kind}")

    def _compare_individual_household(self, individual: Any, household: Any) -> ComparisonResult:
        comparison_type = f"{INDIVIDUAL}-{AGGREGATE_HOUSEHOLD}"
        if not household.members:
            logger.debug("Household %s has no members; comparing directly", household.key)
            breakdown = self._component_breakdown(individual, household, self.weights.direct)
            return self._result(breakdown, comparison_type)

        best: ComponentBreakdown | None = None
        best_index: int | None = None
        individual_weights = self.weights.for_kind(INDIVIDUAL)
        for index, member in enumerate(household.members):
            candidate = self._component_breakdown(individual, member, individual_weights)
            if candidate is not None and (best is None or candidate.similarity > best.similarity):
                best, best_index = candidate, index

        if best is None:
            return ComparisonResult(score=None, comparison_type=comparison_type)
        best = replace(best, method="best_member")
        return ComparisonResult(
            score=best.similarity,
            comparison_type=comparison_type,
            breakdown=best,
            matched_member=household.members[best_index],
            matched_member_index=best_index,
        )

    def _compare_household_individual(self, household: Any, individual: Any) -> ComparisonResult:
        return self._compare_individual_household(individual, household)

    def _result(self, breakdown: ComponentBreakdown | None, comparison_type: str) -> ComparisonResult:
        if breakdown is None:
            return ComparisonResult(score=None, comparison_type=comparison_type)
        return ComparisonResult(
            score=breakdown.similarity, comparison_type=comparison_type, breakdown=breakdown
        )

    def _component_breakdown(self, e1: Any, e2: Any, weights: Mapping[str, float]) -> ComponentBreakdown | None:
        return _aggregate(
            {
                "name": self.compare_names(e1.name, e2.name, e1.kind, e2.kind),
                "contact_info": self.compare_contact_info(e1.contact_info, e2.contact_info),
                "account_number": _exact(e1.account_number, e2.account_number),
            },
            weights,
        )

    # -- Names ------------------------------------------------------------

    def compare_names(
        self,
        n1: Name | None,
        n2: Name | None,
        kind1: str = INDIVIDUAL,
        kind2: str = INDIVIDUAL,
    ) -> ComponentBreakdown | None:
        if n1 is None or n2 is None:
            return None
        if n1.is_parsed and n2.is_parsed:
            return self._compare_parsed_names(n1, n2)

        left, right = n1.display, n2.display
        if not left.strip() or not right.strip():
            return None
        legal = {BUSINESS, LEGAL_CONSTRUCT}
        if kind1 in legal and kind2 in legal:
            left, right = _strip_legal_suffix(left), _strip_legal_suffix(right)
        return _leaf(self.scorer.similarity(left, right), "composite")

    def _compare_parsed_names(self, n1: Name, n2: Name) -> ComponentBreakdown | None:
        w = self.weights.name
        positional = _aggregate(
            {
                "last_name": self._field_similarity(n1.last_name, n2.last_name),
                "first_name": self._field_similarity(n1.first_name, n2.first_name),
                "other_names": self._field_similarity(n1.other_names, n2.other_names),
            },
            w,
            method="positional",
        )
        # Both cross pairs share one weight so the swapped score stays symmetric.
        cross = (w.get("last_name", 0.0) + w.get("first_name", 0.0)) / 2
        swapped = _aggregate(
            {
                "last_name": self._field_similarity(n1.last_name, n2.first_name),
                "first_name": self._field_similarity(n1.first_name, n2.last_name),
                "other_names": self._field_similarity(n1.other_names, n2.other_names),
            },
            {"last_name": cross, "first_name": cross, "other_names": w.get("other_names", 0.0)},
            method="swapped",
        )
        if positional is None:
            return swapped
        if swapped is not None and swapped.similarity > positional.similarity:
            return swapped
        return positional

    def _field_similarity(self, a: AttributedTerm | None, b: AttributedTerm | None) -> ComponentBreakdown | None:
        left, right = _text(a), _text(b)
        if not left or not right:
            return None
        return _leaf(self.scorer.similarity(left, right), "composite")

    # -- Contact info -----------------------------------------------------

    def compare_contact_info(self, c1: ContactInfo | None, c2: ContactInfo | None) -> ComponentBreakdown | None:
        if c1 is None or c2 is None:
            return None
        return _aggregate(
            {
                "primary_address": self.compare_addresses(c1.primary_address, c2.primary_address),
                "secondary_address": self._compare_address_lists(c1.secondary_address, c2.secondary_address),
                "email": _exact(c1.email, c2.email, normalize=str.lower),
            },
            self.weights.contact_info,
        )

    def _compare_address_lists(self, a: Sequence[Address], b: Sequence[Address]) -> ComponentBreakdown | None:
        if not a or not b:
            return None
        if len(a) < len(b):
            return self._best_match_average(a, b)
        if len(b) < len(a):
            return self._best_match_average(b, a)
        forward, backward = self._best_match_average(a, b), self._best_match_average(b, a)
        if forward is None:
            return backward
        if backward is not None and backward.similarity > forward.similarity:
            return backward
        return forward

    def _best_match_average(self, shorter: Sequence[Address], longer: Sequence[Address]) -> ComponentBreakdown | None:
        """Average, over ``shorter``, of each address's best match in ``longer``."""
        best_scores = []
        components: dict[str, ComponentBreakdown] = {}
        for i, address in enumerate(shorter):
            candidates = [self.compare_addresses(address, other) for other in longer]
            scored = [c for c in candidates if c is not None]
            if not scored:
                continue
            best = max(scored, key=lambda c: c.similarity)
            best_scores.append(best.similarity)
            components[str(i)] = best
        if not best_scores:
            return None
        return ComponentBreakdown(
            similarity=_clamp(sum(best_scores) / len(best_scores)),
            method="best_match_average",
            components=components,
        )

    def compare_addresses(self, a1: Address | None, a2: Address | None) -> ComponentBreakdown | None:
        if a1 is None or a2 is None:
            return None

        if a1.is_po_box or a2.is_po_box:
            if a1.po_box is not None and a2.po_box is not None:
                box = _leaf(1.0 if _box_number(a1.po_box.text) == _box_number(a2.po_box.text) else 0.0, "exact")
            else:
                box = _leaf(0.0, "po_box_vs_street")
            return _aggregate(
                {
                    "po_box": box,
                    "city": self._field_similarity(a1.city, a2.city),
                    "zip": _exact(a1.zip, a2.zip, normalize=_zip5),
                },
                self.weights.po_box,
                method="po_box",
            )

        return _aggregate(
            {
                "street_number": _exact(a1.street_number, a2.street_number),
                "street_name": self._field_similarity(a1.street_name, a2.street_name),
                "secondary_unit": _exact(a1.secondary_unit_number, a2.secondary_unit_number),
                "city": self._field_similarity(a1.city, a2.city),
                "state": _exact(a1.state, a2.state),
                "zip": _exact(a1.zip, a2.zip, normalize=_zip5),
            },
            self.weights.address,
            method="street",
        )


_Rule = Callable[[EntityComparator, Any, Any], ComparisonResult]

_RULES: dict[tuple[str | None, str | None], _Rule] = {
    (INDIVIDUAL, INDIVIDUAL): EntityComparator._compare_same_kind,
    (BUSINESS, BUSINESS): EntityComparator._compare_same_kind,
    (LEGAL_CONSTRUCT, LEGAL_CONSTRUCT): EntityComparator._compare_same_kind,
    (AGGREGATE_HOUSEHOLD, AGGREGATE_HOUSEHOLD): EntityComparator._compare_same_kind,
    (INDIVIDUAL, AGGREGATE_HOUSEHOLD): EntityComparator._compare_individual_household,
    (AGGREGATE_HOUSEHOLD, INDIVIDUAL): EntityComparator._compare_household_individual,
    (BUSINESS, LEGAL_CONSTRUCT): EntityComparator._compare_direct,
    (LEGAL_CONSTRUCT, BUSINESS): EntityComparator._compare_direct,
}
