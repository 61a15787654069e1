"""Pydantic models for owner entities and their attributes.

Entities are validated once at construction and are immutable afterwards.
The four entity variants form a union discriminated on ``kind``; households
hold ``Individual`` members only, so they can never nest.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

INDIVIDUAL = "Individual"
BUSINESS = "Business"
AGGREGATE_HOUSEHOLD = "AggregateHousehold"
LEGAL_CONSTRUCT = "LegalConstruct"

ENTITY_KINDS = (INDIVIDUAL, BUSINESS, AGGREGATE_HOUSEHOLD, LEGAL_CONSTRUCT)


class FrozenModel(BaseModel):
    model_config = {"frozen": True}


class AttributedTerm(FrozenModel):
    """A value together with the raw text and source it came from."""

    term: str
    value: str | None = None
    source: str | None = None
    source_id: str | None = None

    @property
    def text(self) -> str:
        return self.value if self.value is not None else self.term


class Name(FrozenModel):
    """A classified owner name.

    ``complete_name`` always carries the unparsed form; the individual
    fields are set only when the classifier could decompose the name.
    """

    case: str = "none"
    complete_name: AttributedTerm | None = None
    first_name: AttributedTerm | None = None
    last_name: AttributedTerm | None = None
    other_names: AttributedTerm | None = None
    suffix: AttributedTerm | None = None
    primary_alias: AttributedTerm | None = None

    @property
    def is_parsed(self) -> bool:
        return self.first_name is not None or self.last_name is not None

    @property
    def display(self) -> str:
        """Whole-name text used when field-level comparison is impossible."""
        if self.complete_name is not None:
            return self.complete_name.text
        parts = (self.first_name, self.other_names, self.last_name, self.suffix)
        return " ".join(p.text for p in parts if p is not None)


class Address(FrozenModel):
    street_number: AttributedTerm | None = None
    street_name: AttributedTerm | None = None
    street_type: AttributedTerm | None = None
    secondary_unit_type: AttributedTerm | None = None
    secondary_unit_number: AttributedTerm | None = None
    city: AttributedTerm | None = None
    state: AttributedTerm | None = None
    zip: AttributedTerm | None = None
    po_box: AttributedTerm | None = None
    original: str | None = None
    is_po_box: bool = False
    is_local_address: bool = False


class ContactInfo(FrozenModel):
    """Property location, mailing addresses and email of an owner."""

    primary_address: Address | None = None
    secondary_address: tuple[Address, ...] = ()
    email: AttributedTerm | None = None


class LocationIdentifier(FrozenModel):
    """Source-scoped record identifier (fire number, parcel id, donor id)."""

    source: str
    id_type: str
    id: str

    @property
    def key(self) -> str:
        return f"{self.source}:{self.id_type}:{self.id}"


class EntityBase(FrozenModel):
    location_identifier: LocationIdentifier
    name: Name
    contact_info: ContactInfo | None = None
    account_number: AttributedTerm | None = None

    @property
    def key(self) -> str:
        return self.location_identifier.key


class Individual(EntityBase):
    kind: Literal["Individual"] = INDIVIDUAL


class Business(EntityBase):
    kind: Literal["Business"] = BUSINESS


class LegalConstruct(EntityBase):
    """Trusts, estates and similar non-human owners."""

    kind: Literal["LegalConstruct"] = LEGAL_CONSTRUCT


class AggregateHousehold(EntityBase):
    kind: Literal["AggregateHousehold"] = AGGREGATE_HOUSEHOLD
    members: tuple[Individual, ...] = ()


Entity = Annotated[
    Union[Individual, Business, AggregateHousehold, LegalConstruct],
    Field(discriminator="kind"),
]

_entity_adapter: TypeAdapter[Any] = TypeAdapter(Entity)


def parse_entity(data: dict[str, Any]) -> Individual | Business | AggregateHousehold | LegalConstruct:
    """Validate a plain dict (e.g. from an ETL export) into the right variant."""
    return _entity_adapter.validate_python(data)


class EntityGroup(FrozenModel):
    """Entities judged to be the same owner, with the reasoning trail.

    Attributes
    ----------
    index : int
        Sequential group number assigned by the registry.
    founding_member : str
        Key of the entity that opened the group.
    member_keys : frozenset of str
        Keys of every entity in the group, founder included.
    decisions : tuple of str
        Reasoning strings of the decisions that justified each join.
    """

    index: int
    founding_member: str
    member_keys: frozenset[str]
    decisions: tuple[str, ...] = ()

    def joined(self, key: str, reasoning: str) -> EntityGroup:
        return self.model_copy(
            update={
                "member_keys": self.member_keys | {key},
                "decisions": self.decisions + (reasoning,),
            }
        )
