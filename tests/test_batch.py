"""Tests for ownerlink.batch."""

from __future__ import annotations

import logging

from ownerlink.batch import BatchMatchResult, _blocking_key, batch_compare
from ownerlink.comparison import EntityComparator
from ownerlink.models import BUSINESS

LOCAL = "12 CORN NECK RD"


class _FailingOnBusiness(EntityComparator):
    def compare(self, e1, e2, detailed=False):
        if BUSINESS in (e1.kind, e2.kind):
            raise RuntimeError("boom")
        return super().compare(e1, e2, detailed)


def _entities(make_person, make_entity):
    return [
        make_person("JOHN", "SMITH", "1", primary=LOCAL),
        make_person("JOHN", "SMITH", "2", primary=LOCAL),
        make_entity("ACME LLC", "3"),
        make_person("ALICE", "WU", "4", primary="99 PALISADE AVE, YONKERS NY 10701"),
    ]


class TestBatchCompare:
    def test_finds_duplicates(self, comparator, make_person, make_entity):
        result = batch_compare(_entities(make_person, make_entity), comparator, threshold=0.8)
        assert isinstance(result, BatchMatchResult)
        assert result.total_comparisons == 6
        assert result.matches_found == 1
        pair = result.pairs[0]
        assert pair["entity_a"] == "Bloomerang:account:1"
        assert pair["entity_b"] == "Bloomerang:account:2"
        assert pair["score"] == 1.0
        assert pair["confidence"] == "exact"
        assert pair["comparison_type"] == "Individual-Individual"
        assert result.failures == 0

    def test_not_comparable_pairs_skipped(self, comparator, make_person, make_entity):
        result = batch_compare(_entities(make_person, make_entity), comparator, threshold=0.0)
        assert result.matches_found == 3
        assert all("VisionAppraisal:fire_number:3" not in (p["entity_a"], p["entity_b"]) for p in result.pairs)

    def test_sorted_descending(self, comparator, make_person, make_entity):
        result = batch_compare(_entities(make_person, make_entity), comparator, threshold=0.0)
        scores = [p["score"] for p in result.pairs]
        assert scores == sorted(scores, reverse=True)

    def test_failure_is_isolated(self, make_person, make_entity, caplog):
        with caplog.at_level(logging.WARNING, logger="ownerlink.batch"):
            result = batch_compare(_entities(make_person, make_entity), _FailingOnBusiness(), threshold=0.8)
        assert result.failures == 3
        assert result.matches_found == 1
        assert "Comparison failed" in caplog.text

    def test_fewer_than_two_entities(self, make_person):
        assert batch_compare([]).pairs == []
        assert batch_compare([make_person("JOHN", "SMITH")]).total_comparisons == 0


class TestBlockingKey:
    def test_last_name_initial(self, make_person, make_entity):
        assert _blocking_key(make_person("JOHN", "smith")) == "S"
        assert _blocking_key(make_entity("FARON, DOUGLAS & BARBARA")) == "F"
        assert _blocking_key(make_entity("ACME LLC")) == "A"
