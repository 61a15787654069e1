"""Shared fixtures for ownerlink tests."""

from __future__ import annotations

import os

import pytest

from ownerlink.addresses import AddressNormalizer
from ownerlink.collision import CollisionResolver
from ownerlink.comparison import EntityComparator
from ownerlink.config import Settings
from ownerlink.factory import build_entity
from ownerlink.models import (
    AttributedTerm,
    ContactInfo,
    Individual,
    LocationIdentifier,
    Name,
)
from ownerlink.names import NameClassifier
from ownerlink.reference import ReferenceData


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    """Isolate Settings from the developer's environment and any .env file."""
    for var in list(os.environ):
        if var.startswith("OWNERLINK_"):
            monkeypatch.delenv(var)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def reference() -> ReferenceData:
    return ReferenceData()


@pytest.fixture
def classifier(reference) -> NameClassifier:
    return NameClassifier(reference)


@pytest.fixture
def normalizer(reference) -> AddressNormalizer:
    return AddressNormalizer(reference)


@pytest.fixture
def comparator(settings) -> EntityComparator:
    return EntityComparator(settings.weights())


@pytest.fixture
def resolver(comparator, settings) -> CollisionResolver:
    return CollisionResolver(comparator, settings.thresholds())


@pytest.fixture
def make_entity(classifier, normalizer):
    """Build an entity from raw fields, the way the ETL layer does."""

    def _make(raw_name, record_id="1", source="VisionAppraisal", **fields):
        return build_entity(
            LocationIdentifier(source=source, id_type="fire_number", id=record_id),
            raw_name,
            classifier=classifier,
            normalizer=normalizer,
            **fields,
        )

    return _make


@pytest.fixture
def make_person(normalizer):
    """Build an Individual directly from name parts and raw addresses."""

    def _make(first, last, record_id="1", primary=None, secondary=(), other=None, account=None, source="Bloomerang"):
        def term(text):
            return AttributedTerm(term=text) if text else None

        contact = None
        if primary or secondary:
            contact = ContactInfo(
                primary_address=normalizer.normalize(primary) if primary else None,
                secondary_address=tuple(normalizer.normalize(s) for s in secondary),
            )
        return Individual(
            location_identifier=LocationIdentifier(source=source, id_type="account", id=record_id),
            name=Name(case="case3", first_name=term(first), last_name=term(last), other_names=term(other)),
            contact_info=contact,
            account_number=term(account),
        )

    return _make
