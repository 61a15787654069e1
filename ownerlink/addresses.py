"""Address normalization for delimiter-tagged, multi-line owner addresses.

Pipeline:
    1. Replace the export delimiters: the line separator ``::#^#::`` becomes
       ``", "`` and the sub-field separator ``:^#^:`` becomes a space.
    2. Uppercase, drop periods, collapse whitespace and split into lines on
       commas. A leading care-of/recipient line is dropped.
    3. Tag the rejoined text with ``usaddress`` and keep the components it
       labels with a non-empty value.
    4. Flag PO Boxes with a fixed pattern on the first line, independent of
       the tagger.
    5. Flag the address as local when its city is a jurisdiction city, or
       when no city was resolved and the street is in the gazetteer.

Unresolved fields stay ``None``; nothing is guessed.
"""

from __future__ import annotations

import logging
import re

import usaddress

from ownerlink.models import Address, AttributedTerm
from ownerlink.reference import STREET_TYPE_NAMES, ReferenceData

logger = logging.getLogger(__name__)

LINE_SEPARATOR = "::#^#::"
FIELD_SEPARATOR = ":^#^:"

UNIT_TYPES = {
    "APT": "APT", "APARTMENT": "APT", "UNIT": "UNIT", "STE": "STE",
    "SUITE": "STE", "FL": "FL", "FLOOR": "FL", "RM": "RM", "ROOM": "RM",
    "BLDG": "BLDG", "LOT": "LOT", "#": "#",
}

# usaddress label -> Address field
TAGGED_FIELDS = {
    "AddressNumber": "street_number",
    "StreetName": "street_name",
    "StreetNamePostType": "street_type",
    "OccupancyType": "unit_type",
    "OccupancyIdentifier": "unit_number",
    "PlaceName": "city",
    "StateName": "state",
    "ZipCode": "zip",
    "USPSBoxID": "po_box",
}
STREET_FIELDS = ("street_number", "street_name", "street_type")

_PO_BOX = re.compile(
    r"^(?:P\.?\s*O\.?\s*BOX|POST\s+OFFICE\s+BOX|BOX)\s*#?\s*(?P<number>\d[\dA-Z-]*)\b"
)
_STREET_NUMBER = re.compile(r"^\d+[A-Z]?(?:-\d+[A-Z]?)?$")
_CARE_OF = re.compile(r"^(?:C[/\\-]O|CARE OF|ATTN:?)\s")
_LEADS_ADDRESS = re.compile(r"^(?:\d|P\s?O\s|POBOX|BOX\s|POST OFFICE)")
_WHITESPACE = re.compile(r"\s+")
_COMMA = re.compile(r"\s*,\s*")


def substitute_delimiters(raw: str) -> str:
    """Replace the export line and sub-field delimiters."""
    return raw.replace(LINE_SEPARATOR, ", ").replace(FIELD_SEPARATOR, " ")


def address_lines(raw: str) -> list[str]:
    """Clean a raw address and split it into non-empty uppercase lines."""
    text = substitute_delimiters(raw).upper().replace(".", "")
    text = _WHITESPACE.sub(" ", text)
    return [line.strip() for line in _COMMA.split(text) if line.strip()]


def _term(text: str | None, value: str | None = None, source: str | None = None) -> AttributedTerm | None:
    if not text:
        return None
    return AttributedTerm(term=text, value=value, source=source)


def split_combined(raw: object) -> list[str]:
    """Split an owner address holding both a PO Box and a street line.

    Returns two addresses, PO Box first, each carrying the shared
    city/state/zip tail. Anything else comes back as a single-item list
    (empty for non-string input).
    """
    if not isinstance(raw, str) or not raw.strip():
        return []
    lines = address_lines(raw)
    box_index = next((i for i, ln in enumerate(lines) if _PO_BOX.match(ln)), None)
    street_index = next(
        (i for i, ln in enumerate(lines) if _STREET_NUMBER.match(ln.split()[0]) and len(ln.split()) > 1),
        None,
    )
    if box_index is None or street_index is None:
        return [raw]
    tail = lines[max(box_index, street_index) + 1:]
    if not tail:
        return [raw]
    return [", ".join([lines[box_index], *tail]), ", ".join([lines[street_index], *tail])]


class AddressNormalizer:
    """Parse raw address text into an ``Address``.

    Parameters
    ----------
    reference : ReferenceData, optional
        Supplies the street-type table, the local-street gazetteer and the
        jurisdiction's city names.
    """

    def __init__(self, reference: ReferenceData | None = None) -> None:
        self.reference = reference or ReferenceData()

    def normalize(self, raw: object, source: str | None = None) -> Address:
        """Normalize one address. Never raises; bad input yields an empty Address."""
        if not isinstance(raw, str) or not raw.strip():
            return Address(original=raw if isinstance(raw, str) else None)

        lines = self._drop_recipient(address_lines(raw))
        if not lines:
            return Address(original=raw)

        fields = self._parse(lines)
        if not fields:
            logger.debug("Could not resolve any address field in %r", raw)

        street_name = fields.get("street_name")
        street_type = fields.get("street_type")
        city = fields.get("city")
        unit_type = fields.get("unit_type")

        return Address(
            street_number=_term(fields.get("street_number"), source=source),
            street_name=_term(street_name, source=source),
            street_type=_term(street_type, self.reference.street_types.get(street_type or ""), source),
            secondary_unit_type=_term(unit_type, UNIT_TYPES.get(unit_type or ""), source),
            secondary_unit_number=_term(fields.get("unit_number"), source=source),
            city=_term(city, source=source),
            state=_term(fields.get("state"), source=source),
            zip=_term(fields.get("zip"), source=source),
            po_box=_term(fields.get("po_box"), source=source),
            original=raw,
            is_po_box="po_box" in fields,
            is_local_address=self.is_local(street_name, street_type, city),
        )

    def is_local(self, street_name: str | None, street_type: str | None, city: str | None) -> bool:
        """True when the city is a jurisdiction city, or no city is known and
        the street is in the gazetteer."""
        if city is not None:
            return city.upper() in self.reference.local_cities
        if not street_name:
            return False
        name = street_name.upper()
        candidates = {name}
        if street_type:
            abbreviation = self.reference.street_types.get(street_type.upper(), street_type.upper())
            candidates.add(f"{name} {street_type.upper()}")
            candidates.add(f"{name} {abbreviation}")
            expanded = STREET_TYPE_NAMES.get(abbreviation)
            if expanded:
                candidates.add(f"{name} {expanded}")
        return not candidates.isdisjoint(self.reference.local_streets)

    # -- Parsing ---------------------------------------------------------

    def _drop_recipient(self, lines: list[str]) -> list[str]:
        if not lines:
            return lines
        first = lines[0]
        if _CARE_OF.match(first + " ") and len(lines) > 1:
            return lines[1:]
        if len(lines) >= 3 and not _LEADS_ADDRESS.match(first) and _LEADS_ADDRESS.match(lines[1]):
            return lines[1:]
        return lines

    def _parse(self, lines: list[str]) -> dict[str, str]:
        text = ", ".join(lines)
        try:
            tagged, _ = usaddress.tag(text)
        except usaddress.RepeatedLabelError:
            logger.debug("Repeated address labels in %r, leaving fields unresolved", text)
            tagged = {}

        fields: dict[str, str] = {}
        for label, key in TAGGED_FIELDS.items():
            value = tagged.get(label, "").strip(" ,;")
            if value:
                fields[key] = value

        direction = tagged.get("StreetNamePreDirectional", "").strip(" ,;")
        if direction and "street_name" in fields:
            fields["street_name"] = f"{direction} {fields['street_name']}"
        unit_number = fields.pop("unit_number", "").lstrip("# ")
        if unit_number:
            fields["unit_number"] = unit_number

        box = _PO_BOX.match(lines[0])
        if box and "po_box" not in fields:
            fields["po_box"] = box.group("number")
        if "po_box" in fields:
            for key in STREET_FIELDS:
                fields.pop(key, None)

        if "city" not in fields and "street_number" not in fields:
            self._street_as_city(fields)
        return fields

    def _street_as_city(self, fields: dict[str, str]) -> None:
        """Refile a jurisdiction name tagged as a numberless street as the city."""
        name = fields.get("street_name", "")
        full = " ".join(fields[key] for key in ("street_name", "street_type") if key in fields)
        for candidate in (full, name):
            if candidate and candidate.upper() in self.reference.local_cities:
                fields["city"] = candidate
                fields.pop("street_name", None)
                fields.pop("street_type", None)
                return
