"""Same-owner decisions for entities that share a natural key.

Two property records carrying the same fire number are either the same owner
(several parcels) or different owners who happen to share the number. The
resolver decides which, from the comparator's detailed breakdown:

- SAME_OWNER when contact-info similarity >= the contact-info threshold
  (default 0.87)
- the optional overall and name thresholds (off by default) widen the rule
  with OR
- pairs the comparator cannot compare are DIFFERENT_OWNER

``CollisionRegistry`` applies the resolver as records arrive: the first
entity for a key is REGISTERED, later ones are MERGED into the best-scoring
same-owner registrant or CREATED_WITH_SUFFIX under the next free letter.
"""

from __future__ import annotations

import logging
import re
import string
from dataclasses import dataclass, field

from ownerlink.comparison import ComparisonResult, EntityComparator
from ownerlink.config import Settings, Thresholds
from ownerlink.models import EntityGroup

logger = logging.getLogger(__name__)

SAME_OWNER = "SAME_OWNER"
DIFFERENT_OWNER = "DIFFERENT_OWNER"

REGISTERED = "REGISTERED"
MERGED = "MERGED"
CREATED_WITH_SUFFIX = "CREATED_WITH_SUFFIX"

SUFFIXES = string.ascii_uppercase

_KEY_WITH_SUFFIX = re.compile(r"^(\d+)([A-Z])?$")


@dataclass(frozen=True)
class CollisionDecision:
    """Same/different-owner verdict with the sub-scores that drove it.

    Attributes
    ----------
    decision : str
        ``SAME_OWNER`` or ``DIFFERENT_OWNER``.
    overall_similarity : float
        Entity-level score (0.0 when not comparable).
    name_similarity : float
        Score of the ``name`` component (0.0 when absent).
    contact_info_similarity : float
        Score of the ``contact_info`` component (0.0 when absent).
    reasoning : str
        Human-readable explanation citing the thresholds crossed or missed.
    comparable : bool
        False when the comparator had no rule for the pair.
    """

    decision: str
    overall_similarity: float
    name_similarity: float
    contact_info_similarity: float
    reasoning: str
    comparable: bool = True

    @property
    def is_same_owner(self) -> bool:
        return self.decision == SAME_OWNER


def _pct(value: float) -> str:
    return f"{value * 100:.1f}%"


def _component(result: ComparisonResult, name: str) -> float:
    if result.breakdown is None:
        return 0.0
    node = result.breakdown.find(name)
    return node.similarity if node is not None else 0.0


class CollisionResolver:
    """Decide whether two entities belong to the same owner.

    Parameters
    ----------
    comparator : EntityComparator, optional
        Comparator used in detailed mode.
    thresholds : Thresholds, optional
        Default thresholds; ``resolve`` may override them per call.
    """

    def __init__(
        self,
        comparator: EntityComparator | None = None,
        thresholds: Thresholds | None = None,
    ) -> None:
        self.comparator = comparator or EntityComparator()
        self.thresholds = thresholds or Settings().thresholds()

    def resolve(self, e1, e2, thresholds: Thresholds | None = None) -> CollisionDecision:
        thresholds = thresholds or self.thresholds
        result = self.comparator.compare(e1, e2, detailed=True)
        if not result.comparable:
            return CollisionDecision(
                decision=DIFFERENT_OWNER,
                overall_similarity=0.0,
                name_similarity=0.0,
                contact_info_similarity=0.0,
                reasoning=f"DIFFERENT OWNER: {result.comparison_type} pair is not comparable",
                comparable=False,
            )

        scores = {
            "overall": round(result.score, 10),
            "name": round(_component(result, "name"), 10),
            "contactInfo": round(_component(result, "contact_info"), 10),
        }
        limits = {
            "overall": thresholds.overall,
            "name": thresholds.name,
            "contactInfo": thresholds.contact_info,
        }
        crossed = [
            f"{label} {_pct(scores[label])} >= {_pct(limit)}"
            for label, limit in limits.items()
            if limit is not None and scores[label] >= limit
        ]

        if crossed:
            decision = SAME_OWNER
            reasoning = "SAME OWNER: " + " OR ".join(crossed)
        else:
            decision = DIFFERENT_OWNER
            missed = ", ".join(
                f"{label}={_pct(scores[label])}"
                + (f" < {_pct(limits[label])}" if limits[label] is not None else "")
                for label in limits
            )
            reasoning = f"DIFFERENT OWNER: {missed} (all below thresholds)"

        logger.debug("Collision %s vs %s: %s", getattr(e1, "key", e1), getattr(e2, "key", e2), reasoning)
        return CollisionDecision(
            decision=decision,
            overall_similarity=scores["overall"],
            name_similarity=scores["name"],
            contact_info_similarity=scores["contactInfo"],
            reasoning=reasoning,
        )


# -- Registry ----------------------------------------------------------------


def base_key(key: str) -> str:
    """Strip a trailing letter suffix from a numeric key (``"12B"`` -> ``"12"``)."""
    cleaned = key.strip().upper()
    match = _KEY_WITH_SUFFIX.match(cleaned)
    return match.group(1) if match else cleaned


class SuffixExhaustedError(RuntimeError):
    """Every letter suffix for a key is already taken."""


@dataclass
class _Registrant:
    entity: object
    key: str
    suffix: str | None
    group_index: int


@dataclass(frozen=True)
class CollisionOutcome:
    """Result of registering one entity under a natural key.

    Attributes
    ----------
    action : str
        ``REGISTERED``, ``MERGED`` or ``CREATED_WITH_SUFFIX``.
    key : str
        Key the entity now lives under (suffixed when created with suffix,
        the matched registrant's key when merged).
    suffix : str | None
        Letter suffix assigned, if any.
    decision : CollisionDecision | None
        Winning same-owner decision for merges.
    group : EntityGroup
        Group the entity belongs to after registration.
    decisions : list
        Decisions against every existing registrant of the key.
    """

    action: str
    key: str
    suffix: str | None
    decision: CollisionDecision | None
    group: EntityGroup
    decisions: list[CollisionDecision] = field(default_factory=list)


class CollisionRegistry:
    """Track entities by natural key and resolve collisions as they arrive."""

    def __init__(self, resolver: CollisionResolver | None = None) -> None:
        self.resolver = resolver or CollisionResolver()
        self._registrants: dict[str, list[_Registrant]] = {}
        self._groups: list[EntityGroup] = []

    @property
    def groups(self) -> list[EntityGroup]:
        return list(self._groups)

    def registrants(self, key: str) -> list[object]:
        return [r.entity for r in self._registrants.get(base_key(key), [])]

    def register(self, key: str, entity) -> CollisionOutcome:
        base = base_key(key)
        existing = self._registrants.get(base)
        entity_key = getattr(entity, "key", str(entity))

        if not existing:
            group = self._new_group(entity_key)
            self._registrants[base] = [_Registrant(entity, base, None, group.index)]
            return CollisionOutcome(action=REGISTERED, key=base, suffix=None, decision=None, group=group)

        decisions = [self.resolver.resolve(r.entity, entity) for r in existing]
        best: tuple[_Registrant, CollisionDecision] | None = None
        for registrant, decision in zip(existing, decisions):
            if decision.is_same_owner and (best is None or decision.overall_similarity > best[1].overall_similarity):
                best = (registrant, decision)

        if best is not None:
            registrant, decision = best
            group = self._groups[registrant.group_index].joined(entity_key, decision.reasoning)
            self._groups[registrant.group_index] = group
            logger.debug("Merged %s into %s", entity_key, registrant.key)
            return CollisionOutcome(
                action=MERGED,
                key=registrant.key,
                suffix=registrant.suffix,
                decision=decision,
                group=group,
                decisions=decisions,
            )

        suffix = self._next_suffix(existing)
        group = self._new_group(entity_key)
        existing.append(_Registrant(entity, base + suffix, suffix, group.index))
        logger.debug("Created %s%s for %s (no matching owner among %d)", base, suffix, entity_key, len(decisions))
        return CollisionOutcome(
            action=CREATED_WITH_SUFFIX,
            key=base + suffix,
            suffix=suffix,
            decision=None,
            group=group,
            decisions=decisions,
        )

    def _new_group(self, founder: str) -> EntityGroup:
        group = EntityGroup(index=len(self._groups), founding_member=founder, member_keys=frozenset({founder}))
        self._groups.append(group)
        return group

    def _next_suffix(self, existing: list[_Registrant]) -> str:
        used = {r.suffix for r in existing if r.suffix}
        for letter in SUFFIXES:
            if letter not in used:
                return letter
        raise SuffixExhaustedError(f"No free suffix left for key {existing[0].key}")
