"""Tests for ownerlink.config: settings defaults and overrides."""

from __future__ import annotations

import dataclasses
import inspect
import re

import pytest

from ownerlink.config import ConfidenceBuckets, Settings, Thresholds, Weights
from ownerlink.models import AGGREGATE_HOUSEHOLD, BUSINESS, INDIVIDUAL, LEGAL_CONSTRUCT, EntityGroup
from ownerlink.names import Classification
from ownerlink.reference import ReferenceData
from ownerlink.similarity import SimilarityResult


class TestDefaults:
    def test_entity_weights(self, settings):
        weights = settings.weights()
        assert dict(weights.for_kind(INDIVIDUAL)) == {"name": 0.5, "contact_info": 0.3, "account_number": 0.2}
        assert dict(weights.for_kind(AGGREGATE_HOUSEHOLD)) == {"name": 0.4, "contact_info": 0.4, "account_number": 0.2}
        assert weights.for_kind(BUSINESS) == weights.for_kind(LEGAL_CONSTRUCT)

    def test_unknown_kind_uses_direct_weights(self, settings):
        weights = settings.weights()
        assert weights.for_kind("Unknown") == weights.direct

    def test_weight_tables_sum_to_one(self, settings):
        weights = settings.weights()
        tables = [weights.direct, weights.name, weights.contact_info, weights.address, weights.po_box,
                  weights.similarity, *weights.entity.values()]
        for table in tables:
            assert sum(table.values()) == pytest.approx(1.0)

    def test_thresholds(self, settings):
        assert settings.thresholds() == Thresholds(contact_info=0.87, overall=None, name=None)

    def test_confidence_buckets(self, settings):
        buckets = settings.confidence_buckets()
        assert buckets == ConfidenceBuckets()
        assert buckets.ordered == (("high", 0.9), ("medium", 0.7), ("low", 0.5))

    def test_jurisdiction(self, settings):
        assert settings.JURISDICTION_CITIES == ["BLOCK ISLAND", "NEW SHOREHAM"]
        assert settings.BUSINESS_TERMS_PATH is None


class TestOverrides:
    """Environment variables and .env files override defaults."""

    def test_threshold_from_env(self, monkeypatch):
        monkeypatch.setenv("OWNERLINK_SAME_OWNER_CONTACT_INFO_THRESHOLD", "0.9")
        monkeypatch.setenv("OWNERLINK_SAME_OWNER_NAME_THRESHOLD", "0.95")
        thresholds = Settings().thresholds()
        assert thresholds.contact_info == 0.9
        assert thresholds.name == 0.95
        assert thresholds.overall is None

    def test_weights_from_json_env(self, monkeypatch):
        monkeypatch.setenv(
            "OWNERLINK_NAME_WEIGHTS", '{"last_name": 0.6, "first_name": 0.3, "other_names": 0.1}'
        )
        assert Settings().weights().name["last_name"] == 0.6

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("OWNERLINK_CONFIDENCE_HIGH=0.95\n")
        assert Settings().confidence_buckets().high == 0.95

    def test_unrelated_env_ignored(self, monkeypatch):
        monkeypatch.setenv("CONFIDENCE_HIGH", "0.1")
        assert Settings().CONFIDENCE_HIGH == 0.9


class TestImmutability:
    def test_weight_table_is_read_only(self, settings):
        weights = settings.weights()
        with pytest.raises(TypeError):
            weights.name["last_name"] = 1.0

    def test_weights_object_is_frozen(self, settings):
        weights = settings.weights()
        with pytest.raises(dataclasses.FrozenInstanceError):
            weights.name = {}

    def test_weights_do_not_track_settings_changes(self):
        settings = Settings()
        weights = settings.weights()
        settings.NAME_WEIGHTS["last_name"] = 0.9
        assert weights.name["last_name"] == 0.5


class TestAttributeDocs:
    """Documented fields use numpy ``name : type`` entries."""

    @pytest.mark.parametrize("cls", [Weights, ReferenceData, EntityGroup, SimilarityResult, Classification])
    def test_every_field_is_typed(self, cls):
        doc = inspect.getdoc(cls)
        if dataclasses.is_dataclass(cls):
            names = [f.name for f in dataclasses.fields(cls)]
        else:
            names = list(cls.model_fields)
        for name in names:
            assert re.search(rf"^{name} : \S", doc, re.MULTILINE), name
