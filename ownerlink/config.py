"""Engine settings loaded from environment variables using pydantic-settings.

Every weight and threshold the comparison pipeline uses lives here. The
downstream components never read literals of their own; they receive the
frozen ``Weights`` and ``Thresholds`` objects built by ``Settings``.

Dict-valued settings are overridden with JSON, e.g.::

    OWNERLINK_NAME_WEIGHTS='{"last_name": 0.6, "first_name": 0.3, "other_names": 0.1}'
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from pydantic_settings import BaseSettings

from ownerlink.models import AGGREGATE_HOUSEHOLD, BUSINESS, INDIVIDUAL, LEGAL_CONSTRUCT


def _frozen(mapping: Mapping[str, float]) -> Mapping[str, float]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class Weights:
    """Immutable weight tables consumed by the comparator and scorer.

    Attributes
    ----------
    entity : Mapping[str, Mapping[str, float]]
        Component weights (``name``, ``contact_info``, ``account_number``)
        keyed by entity kind.
    direct : Mapping[str, float]
        Weights for cross-kind comparisons and empty households.
    name : Mapping[str, float]
        Field weights for parsed individual names.
    contact_info : Mapping[str, float]
        Weights for primary address, secondary addresses and email.
    address : Mapping[str, float]
        Field weights for street addresses.
    po_box : Mapping[str, float]
        Field weights used when either address is a PO Box.
    similarity : Mapping[str, float]
        Signal weights for the composite string similarity.
    """

    entity: Mapping[str, Mapping[str, float]]
    direct: Mapping[str, float]
    name: Mapping[str, float]
    contact_info: Mapping[str, float]
    address: Mapping[str, float]
    po_box: Mapping[str, float]
    similarity: Mapping[str, float]

    def for_kind(self, kind: str) -> Mapping[str, float]:
        return self.entity.get(kind, self.direct)


@dataclass(frozen=True)
class Thresholds:
    """Same-owner thresholds. ``None`` disables a rule."""

    contact_info: float | None = 0.87
    overall: float | None = None
    name: float | None = None


@dataclass(frozen=True)
class ConfidenceBuckets:
    """Lower bounds for the similarity confidence labels."""

    high: float = 0.9
    medium: float = 0.7
    low: float = 0.5
    ordered: tuple[tuple[str, float], ...] = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "ordered",
            (("high", self.high), ("medium", self.medium), ("low", self.low)),
        )


class Settings(BaseSettings):
    """ownerlink engine configuration.

    All settings can be overridden via ``OWNERLINK_``-prefixed environment
    variables or a ``.env`` file. Reference file paths default to None, in
    which case the built-in reference tables are used.
    """

    INDIVIDUAL_WEIGHTS: dict[str, float] = {
        "name": 0.5,
        "contact_info": 0.3,
        "account_number": 0.2,
    }
    HOUSEHOLD_WEIGHTS: dict[str, float] = {
        "name": 0.4,
        "contact_info": 0.4,
        "account_number": 0.2,
    }
    BUSINESS_WEIGHTS: dict[str, float] = {
        "name": 0.5,
        "contact_info": 0.4,
        "account_number": 0.1,
    }
    LEGAL_CONSTRUCT_WEIGHTS: dict[str, float] = {
        "name": 0.5,
        "contact_info": 0.4,
        "account_number": 0.1,
    }
    DIRECT_WEIGHTS: dict[str, float] = {"name": 0.5, "contact_info": 0.5}
    NAME_WEIGHTS: dict[str, float] = {
        "last_name": 0.5,
        "first_name": 0.4,
        "other_names": 0.1,
    }
    CONTACT_INFO_WEIGHTS: dict[str, float] = {
        "primary_address": 0.6,
        "secondary_address": 0.2,
        "email": 0.2,
    }
    ADDRESS_WEIGHTS: dict[str, float] = {
        "street_number": 0.25,
        "street_name": 0.45,
        "secondary_unit": 0.05,
        "city": 0.1,
        "state": 0.05,
        "zip": 0.1,
    }
    PO_BOX_WEIGHTS: dict[str, float] = {"po_box": 0.8, "city": 0.1, "zip": 0.1}
    SIMILARITY_WEIGHTS: dict[str, float] = {
        "edit": 0.8,
        "phonetic": 0.15,
        "positional": 0.05,
    }

    CONFIDENCE_HIGH: float = 0.9
    CONFIDENCE_MEDIUM: float = 0.7
    CONFIDENCE_LOW: float = 0.5

    SAME_OWNER_CONTACT_INFO_THRESHOLD: float | None = 0.87
    SAME_OWNER_OVERALL_THRESHOLD: float | None = None
    SAME_OWNER_NAME_THRESHOLD: float | None = None

    JURISDICTION_CITIES: list[str] = ["BLOCK ISLAND", "NEW SHOREHAM"]
    BUSINESS_TERMS_PATH: str | None = None
    BUSINESS_MASTER_PATH: str | None = None
    STREET_GAZETTEER_PATH: str | None = None

    model_config = {
        "env_prefix": "OWNERLINK_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    def weights(self) -> Weights:
        """Build the frozen weight tables from the current settings."""
        return Weights(
            entity=MappingProxyType(
                {
                    INDIVIDUAL: _frozen(self.INDIVIDUAL_WEIGHTS),
                    AGGREGATE_HOUSEHOLD: _frozen(self.HOUSEHOLD_WEIGHTS),
                    BUSINESS: _frozen(self.BUSINESS_WEIGHTS),
                    LEGAL_CONSTRUCT: _frozen(self.LEGAL_CONSTRUCT_WEIGHTS),
                }
            ),
            direct=_frozen(self.DIRECT_WEIGHTS),
            name=_frozen(self.NAME_WEIGHTS),
            contact_info=_frozen(self.CONTACT_INFO_WEIGHTS),
            address=_frozen(self.ADDRESS_WEIGHTS),
            po_box=_frozen(self.PO_BOX_WEIGHTS),
            similarity=_frozen(self.SIMILARITY_WEIGHTS),
        )

    def thresholds(self) -> Thresholds:
        return Thresholds(
            contact_info=self.SAME_OWNER_CONTACT_INFO_THRESHOLD,
            overall=self.SAME_OWNER_OVERALL_THRESHOLD,
            name=self.SAME_OWNER_NAME_THRESHOLD,
        )

    def confidence_buckets(self) -> ConfidenceBuckets:
        return ConfidenceBuckets(
            high=self.CONFIDENCE_HIGH,
            medium=self.CONFIDENCE_MEDIUM,
            low=self.CONFIDENCE_LOW,
        )
