"""Batch entity comparison across a list of entities.

Runs ``EntityComparator.compare`` over every candidate pair. Pairs the
comparator cannot compare are skipped, and a failure on one pair is logged
and counted without aborting the batch.

For large inputs (1000 entities or more) candidate pairs can be limited
with a blocking key: the first letter of the owner's last name (or of the
complete name when the name is unparsed).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from itertools import combinations
from typing import Any, Sequence

from ownerlink.comparison import EntityComparator
from ownerlink.similarity import confidence_bucket

logger = logging.getLogger(__name__)

BLOCKING_MIN_ENTITIES = 1000


@dataclass
class BatchMatchResult:
    """Result of batch comparison across a list of entities.

    Attributes
    ----------
    pairs : list[dict]
        Each dict: {entity_a, entity_b, score, confidence, comparison_type,
        matched_member_index}
    total_comparisons : int
        Number of candidate pairs evaluated.
    matches_found : int
        Number of pairs at or above the threshold.
    failures : int
        Number of pairs whose comparison raised.
    """

    pairs: list[dict[str, Any]] = field(default_factory=list)
    total_comparisons: int = 0
    matches_found: int = 0
    failures: int = 0


def _blocking_key(entity: Any) -> str:
    name = entity.name
    if name.last_name is not None:
        text = name.last_name.text
    else:
        members = getattr(entity, "members", ())
        if members and members[0].name.last_name is not None:
            text = members[0].name.last_name.text
        else:
            text = name.display
    text = text.strip().upper()
    return text[0] if text else ""


def batch_compare(
    entities: Sequence[Any],
    comparator: EntityComparator | None = None,
    threshold: float = 0.8,
    use_blocking: bool = True,
) -> BatchMatchResult:
    """Compare entities pairwise and collect the pairs scoring >= threshold.

    Parameters
    ----------
    entities : sequence of entities
        Individuals, businesses, households and legal constructs, mixed.
    comparator : EntityComparator
        Comparator to use; a default one is built if omitted.
    threshold : float
        Minimum score for a pair to be reported (0.0-1.0).
    use_blocking : bool
        Only compare entities sharing a blocking key. Ignored for fewer
        than ``BLOCKING_MIN_ENTITIES`` entities.

    Returns
    -------
    BatchMatchResult
        Matched pairs sorted by score descending.
    """
    comparator = comparator or EntityComparator()
    if len(entities) < 2:
        return BatchMatchResult()

    if use_blocking and len(entities) >= BLOCKING_MIN_ENTITIES:
        blocks: dict[str, list[Any]] = {}
        for entity in entities:
            try:
                key = _blocking_key(entity)
            except AttributeError:
                key = ""
            blocks.setdefault(key, []).append(entity)
        candidate_pairs = [
            pair for block in blocks.values() if len(block) > 1 for pair in combinations(block, 2)
        ]
        logger.info(
            "Batch compare: %d entities in %d blocks, %d candidate pairs",
            len(entities), len(blocks), len(candidate_pairs),
        )
    else:
        candidate_pairs = list(combinations(entities, 2))

    matched_pairs: list[dict[str, Any]] = []
    total_comparisons = 0
    failures = 0

    for entity_a, entity_b in candidate_pairs:
        total_comparisons += 1
        try:
            result = comparator.compare(entity_a, entity_b)
        except Exception:
            failures += 1
            logger.warning(
                "Comparison failed for %s vs %s",
                getattr(entity_a, "key", entity_a),
                getattr(entity_b, "key", entity_b),
                exc_info=True,
            )
            continue

        if not result.comparable:
            continue
        if result.score >= threshold:
            matched_pairs.append({
                "entity_a": entity_a.key,
                "entity_b": entity_b.key,
                "score": round(result.score, 4),
                "confidence": confidence_bucket(result.score),
                "comparison_type": result.comparison_type,
                "matched_member_index": result.matched_member_index,
            })

    matched_pairs.sort(key=lambda p: p["score"], reverse=True)
    logger.info(
        "Batch compare: %d comparisons, %d matches, %d failures",
        total_comparisons, len(matched_pairs), failures,
    )
    return BatchMatchResult(
        pairs=matched_pairs,
        total_comparisons=total_comparisons,
        matches_found=len(matched_pairs),
        failures=failures,
    )
