"""Build entities from raw source fields.

``build_entity`` is the seam the ETL layer calls for each property or donor
record: it classifies the owner name, normalizes the addresses and returns
the matching entity variant. Household members are built from the parsed
individual names and share the household's contact info.
"""

from __future__ import annotations

from typing import Iterable, Union

from ownerlink.addresses import AddressNormalizer, split_combined
from ownerlink.models import (
    AGGREGATE_HOUSEHOLD,
    BUSINESS,
    INDIVIDUAL,
    AggregateHousehold,
    AttributedTerm,
    Business,
    ContactInfo,
    Individual,
    LegalConstruct,
    LocationIdentifier,
    Name,
)
from ownerlink.names import Classification, NameClassifier, PersonName

AnyEntity = Union[Individual, Business, AggregateHousehold, LegalConstruct]


def _term(text: str | None, source: str | None, source_id: str | None, value: str | None = None) -> AttributedTerm | None:
    if not text:
        return None
    return AttributedTerm(term=text, value=value, source=source, source_id=source_id)


def _person_name(person: PersonName, case: str, source: str | None, source_id: str | None) -> Name:
    return Name(
        case=case,
        complete_name=_term(person.full, source, source_id),
        first_name=_term(person.first, source, source_id),
        last_name=_term(person.last, source, source_id),
        other_names=_term(person.other, source, source_id),
        suffix=_term(person.suffix, source, source_id),
    )


def build_name(classification: Classification, raw: str, source: str | None = None, source_id: str | None = None) -> Name:
    """Name for the entity itself; individuals take their single parsed person."""
    members = classification.parsed_name.members
    if classification.entity_type == INDIVIDUAL and len(members) == 1:
        name = _person_name(members[0], classification.case_id, source, source_id)
        return name.model_copy(
            update={"complete_name": _term(raw.strip(), source, source_id, classification.parsed_name.complete_name)}
        )
    return Name(
        case=classification.case_id,
        complete_name=_term(raw.strip(), source, source_id, classification.parsed_name.complete_name),
    )


def build_contact_info(
    normalizer: AddressNormalizer,
    property_location: str | None = None,
    owner_address: str | Iterable[str] | None = None,
    email: str | None = None,
    source: str | None = None,
) -> ContactInfo | None:
    """Normalize the property location and owner addresses into ContactInfo.

    Owner addresses holding both a PO Box and a street line become two
    secondary addresses, PO Box first.
    """
    primary = normalizer.normalize(property_location, source) if property_location else None

    raw_secondaries: list[str] = []
    if isinstance(owner_address, str):
        raw_secondaries.extend(split_combined(owner_address))
    elif owner_address is not None:
        for item in owner_address:
            raw_secondaries.extend(split_combined(item))
    secondary = tuple(normalizer.normalize(raw, source) for raw in raw_secondaries)

    email_term = _term(email.strip(), source, None) if email and email.strip() else None
    if primary is None and not secondary and email_term is None:
        return None
    return ContactInfo(primary_address=primary, secondary_address=secondary, email=email_term)


def build_entity(
    location_identifier: LocationIdentifier,
    raw_name: str,
    property_location: str | None = None,
    owner_address: str | Iterable[str] | None = None,
    account_number: str | None = None,
    email: str | None = None,
    classifier: NameClassifier | None = None,
    normalizer: AddressNormalizer | None = None,
) -> AnyEntity:
    """Classify ``raw_name`` and build the matching entity variant.

    Parameters
    ----------
    location_identifier : LocationIdentifier
        Source-scoped record id (fire number, parcel id, donor id).
    raw_name : str
        Owner name exactly as it appears in the source.
    property_location : str, optional
        Raw property address (primary address).
    owner_address : str or iterable of str, optional
        Raw mailing address(es) (secondary addresses).
    account_number : str, optional
        Source account/identifier number.
    email : str, optional
        Contact email.
    classifier, normalizer : optional
        Shared instances; defaults use the built-in reference data.
    """
    classifier = classifier or NameClassifier()
    normalizer = normalizer or AddressNormalizer(classifier.reference)
    source, source_id = location_identifier.source, location_identifier.id

    classification = classifier.classify(raw_name)
    name = build_name(classification, raw_name if isinstance(raw_name, str) else "", source, source_id)
    contact_info = build_contact_info(normalizer, property_location, owner_address, email, source)
    common = {
        "location_identifier": location_identifier,
        "name": name,
        "contact_info": contact_info,
        "account_number": _term(account_number, source, source_id),
    }

    if classification.entity_type == AGGREGATE_HOUSEHOLD:
        members = tuple(
            Individual(
                location_identifier=location_identifier.model_copy(
                    update={"id": f"{location_identifier.id}.{index}"}
                ),
                name=_person_name(person, classification.case_id, source, source_id),
                contact_info=contact_info,
            )
            for index, person in enumerate(classification.parsed_name.members, start=1)
        )
        return AggregateHousehold(members=members, **common)
    if classification.entity_type == BUSINESS:
        return Business(**common)
    if classification.entity_type == INDIVIDUAL:
        return Individual(**common)
    return LegalConstruct(**common)
