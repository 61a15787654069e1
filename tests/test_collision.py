"""Tests for ownerlink.collision: same-owner decisions and the key registry."""

from __future__ import annotations

import pytest

from ownerlink.collision import (
    CREATED_WITH_SUFFIX,
    DIFFERENT_OWNER,
    MERGED,
    REGISTERED,
    SAME_OWNER,
    CollisionRegistry,
    CollisionResolver,
    SuffixExhaustedError,
    base_key,
)
from ownerlink.config import Thresholds
from ownerlink.models import AttributedTerm, Business, LocationIdentifier, Name

LOCAL = "12 CORN NECK RD"
MAILING = "PO BOX 5::#^#::BLOCK ISLAND:^#^: RI 02807"
ELSEWHERE = "99 PALISADE AVE, YONKERS NY 10701"


def _business(name, record_id="1"):
    return Business(
        location_identifier=LocationIdentifier(source="VisionAppraisal", id_type="fire_number", id=record_id),
        name=Name(case="case4N", complete_name=AttributedTerm(term=name)),
    )


# ---------------------------------------------------------------------------
# CollisionResolver
# ---------------------------------------------------------------------------


class TestResolver:
    """Decisions are driven by the contact-info threshold by default."""

    def test_shared_contact_info_is_same_owner(self, resolver, make_person):
        a = make_person("JOHN", "SMITH", "1", primary=LOCAL, secondary=[MAILING])
        b = make_person("JON", "SMITH", "2", primary=LOCAL, secondary=[MAILING])
        decision = resolver.resolve(a, b)
        assert decision.decision == SAME_OWNER
        assert decision.is_same_owner
        assert decision.contact_info_similarity == pytest.approx(1.0)
        assert decision.reasoning == "SAME OWNER: contactInfo 100.0% >= 87.0%"

    def test_same_name_different_contact_is_different_owner(self, resolver, make_person):
        a = make_person("JOHN", "SMITH", "1", primary=LOCAL)
        b = make_person("JOHN", "SMITH", "2", primary=ELSEWHERE)
        decision = resolver.resolve(a, b)
        assert decision.decision == DIFFERENT_OWNER
        assert decision.name_similarity == pytest.approx(1.0)
        assert decision.contact_info_similarity < 0.87
        assert decision.reasoning.startswith("DIFFERENT OWNER: overall=")
        assert "< 87.0%" in decision.reasoning
        assert decision.reasoning.endswith("(all below thresholds)")

    def test_name_threshold_widens_the_rule(self, comparator, make_person):
        resolver = CollisionResolver(comparator, Thresholds(contact_info=0.87, name=0.9))
        a = make_person("JOHN", "SMITH", "1", primary=LOCAL)
        b = make_person("JOHN", "SMITH", "2", primary=ELSEWHERE)
        decision = resolver.resolve(a, b)
        assert decision.decision == SAME_OWNER
        assert decision.reasoning == "SAME OWNER: name 100.0% >= 90.0%"

    def test_per_call_threshold_override(self, resolver, make_person):
        a = make_person("JOHN", "SMITH", "1", primary=LOCAL, secondary=[MAILING])
        b = make_person("JON", "SMITH", "2", primary=LOCAL, secondary=[MAILING])
        decision = resolver.resolve(a, b, Thresholds(contact_info=None, overall=1.01))
        assert decision.decision == DIFFERENT_OWNER

    def test_several_thresholds_crossed(self, comparator, make_person):
        resolver = CollisionResolver(comparator, Thresholds(contact_info=0.87, overall=0.5, name=0.5))
        a = make_person("JOHN", "SMITH", "1", primary=LOCAL)
        b = make_person("JOHN", "SMITH", "2", primary=LOCAL)
        assert resolver.resolve(a, b).reasoning.count(" OR ") == 2

    def test_not_comparable_pair(self, resolver, make_person):
        decision = resolver.resolve(make_person("JOHN", "SMITH"), _business("ACME LLC"))
        assert decision.decision == DIFFERENT_OWNER
        assert not decision.comparable
        assert decision.overall_similarity == 0.0
        assert "not comparable" in decision.reasoning

    def test_deterministic_and_symmetric(self, resolver, make_person):
        a = make_person("JOHN", "SMITH", "1", primary=LOCAL, secondary=[MAILING])
        b = make_person("JOHANN", "SMYTHE", "2", primary="14 CORN NECK RD", secondary=[MAILING])
        assert resolver.resolve(a, b) == resolver.resolve(a, b)
        assert resolver.resolve(a, b).decision == resolver.resolve(b, a).decision
        assert resolver.resolve(a, b).overall_similarity == resolver.resolve(b, a).overall_similarity


# ---------------------------------------------------------------------------
# CollisionRegistry
# ---------------------------------------------------------------------------


class TestBaseKey:
    @pytest.mark.parametrize(
        "key,expected",
        [("12", "12"), ("12B", "12"), (" 12a ", "12"), ("ABC", "ABC"), ("12AB", "12AB")],
    )
    def test_strip_suffix(self, key, expected):
        assert base_key(key) == expected


class TestRegistry:
    """Entities sharing a fire number are merged or suffixed."""

    def test_first_entity_is_registered(self, resolver, make_person):
        registry = CollisionRegistry(resolver)
        outcome = registry.register("12", make_person("JOHN", "SMITH", "a", primary=LOCAL))
        assert outcome.action == REGISTERED
        assert outcome.key == "12"
        assert outcome.suffix is None
        assert outcome.group.founding_member == "Bloomerang:account:a"

    def test_same_owner_is_merged(self, resolver, make_person):
        registry = CollisionRegistry(resolver)
        registry.register("12", make_person("JOHN", "SMITH", "a", primary=LOCAL, secondary=[MAILING]))
        outcome = registry.register("12", make_person("JOHN", "SMITH", "b", primary=LOCAL, secondary=[MAILING]))

        assert outcome.action == MERGED
        assert outcome.key == "12"
        assert outcome.decision.is_same_owner
        assert outcome.group.member_keys == {"Bloomerang:account:a", "Bloomerang:account:b"}
        assert outcome.group.decisions == (outcome.decision.reasoning,)
        assert len(registry.groups) == 1

    def test_different_owner_gets_next_suffix(self, resolver, make_person):
        registry = CollisionRegistry(resolver)
        registry.register("12", make_person("JOHN", "SMITH", "a", primary=LOCAL))
        second = registry.register("12", make_person("MARY", "JONES", "b", primary=ELSEWHERE))
        third = registry.register("12", make_person("ALICE", "WU", "c", primary="7 HIGH ST, WESTERLY RI 02891"))

        assert (second.action, second.key, second.suffix) == (CREATED_WITH_SUFFIX, "12A", "A")
        assert (third.action, third.key) == (CREATED_WITH_SUFFIX, "12B")
        assert len(third.decisions) == 2
        assert len(registry.groups) == 3
        assert len(registry.registrants("12")) == 3

    def test_merge_into_suffixed_registrant(self, resolver, make_person):
        registry = CollisionRegistry(resolver)
        registry.register("12", make_person("JOHN", "SMITH", "a", primary=LOCAL))
        registry.register("12", make_person("MARY", "JONES", "b", primary=ELSEWHERE))
        outcome = registry.register("12A", make_person("MARIE", "JONES", "c", primary=ELSEWHERE))
        assert outcome.action == MERGED
        assert outcome.key == "12A"
        assert outcome.suffix == "A"

    def test_suffixes_exhausted(self, comparator, make_person):
        registry = CollisionRegistry(CollisionResolver(comparator, Thresholds(contact_info=None)))
        for i in range(27):
            registry.register("7", make_person("JOHN", "SMITH", str(i)))
        assert registry.registrants("7Z")[-1].location_identifier.id == "26"
        with pytest.raises(SuffixExhaustedError):
            registry.register("7", make_person("JOHN", "SMITH", "27"))
