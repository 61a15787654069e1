"""Reference tables used by the name classifier and address normalizer.

``ReferenceData`` is built once at start-up (either from the built-in
defaults or from files named in ``Settings``) and passed to every component
that needs it. It is immutable, so one instance can be shared freely.

Reference files hold one entry per line. Blank lines and ``#`` comments are
skipped, and numbered exports of the form ``12→TOWN OF NEW SHOREHAM`` keep
only the text after the arrow.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping

from ownerlink.config import Settings

logger = logging.getLogger(__name__)


class ReferenceDataError(ValueError):
    """A reference file is missing, unreadable or empty."""


# -- Built-in tables ---------------------------------------------------------

DEFAULT_BUSINESS_TERMS = frozenset({
    "LLC", "INC", "CORP", "TRUST", "TRUSTEE", "TRUSTEES", "ESTATE",
    "FOUNDATION", "FDN", "ASSOCIATION", "ASSOC", "ASSOCIATES", "SOCIETY",
    "COMPANY", "CO", "ENTERPRISES", "PROPERTIES", "INVESTMENTS", "HOLDINGS",
    "MANAGEMENT", "SERVICES", "GROUP", "PARTNERS", "PARTNERSHIP", "LP", "LLP",
    "FLP", "LTD", "LIMITED", "INCORPORATED", "CORPORATION", "CONSERVANCY",
})

DEFAULT_BUSINESS_MASTER = frozenset({
    "TOWN OF NEW SHOREHAM", "TOWN OF NEW SHOREHAM ETAL", "584 BEACH AVE",
    "BI PARTNERSHIP", "WBI PARTNERSHIP", "STATE OF RI", "STATE OF RI AIRPORT",
    "STATE OF RI HIGHWAY DEPT", "STATE OF RI ACTING BY/THRU",
    "STATE OF RHODE ISLAND", "ST ANDREWS CHURCH", "SWAIN ASSOCIATES",
    "CORMORANT COVE ASSOCIATION", "WINDHOVER ASSOCIATES ET AL",
    "LTM 2019 FAMILYTRUST", "PRESS/G FLP", "BI SALES CORP", "US GOVERNMENT",
    "BI UTILITY DISTRICT", "BLOCK ISLAND UTILITY DISTRICT",
    "SERF HEAVY INDUSTRIES", "SOUTHEAST LIGHTHOUSE FDN",
    "BI MARITIME INSTITUTE", "NARRAGANSETT ELECTRIC CO.", "DEEPWATER WIND",
    "FEDERAL PROPERTIES OF RI", "BI ECONOMIC DEVELOPMENT FDN",
    "RI BOY SCOUTS OF AMERICA", "SHEEPS MEADOW HOMEOWNERS ASSOC", "BI CLUB",
    "BLOCK ISLAND HOUSING BOARD", "THE NATURE CONSERVANCY ETAL",
    "US FISH AND WILDLIFE",
})

DEFAULT_LOCAL_STREETS = frozenset({
    "BEACH AVENUE", "BEACON HILL ROAD", "CENTER ROAD", "CHAMPLIN ROAD",
    "CHAPEL STREET", "COONEYMUS ROAD", "CORN NECK ROAD", "DODGE STREET",
    "HIGH STREET", "LAKESIDE DRIVE", "MANSION ROAD", "MOHEGAN TRAIL",
    "NEW STREET", "OCEAN AVENUE", "OFF CENTER ROAD", "OFF COONEYMUS ROAD",
    "OLD TOWN ROAD", "PAYNE ROAD", "PILOT HILL ROAD", "SANDS POND ROAD",
    "SPRING STREET", "WATER STREET", "WEST SIDE ROAD",
})

# Variant spelling -> canonical USPS abbreviation.
DEFAULT_STREET_TYPES: Mapping[str, str] = MappingProxyType({
    "STREET": "ST", "STR": "ST", "ST": "ST",
    "AVENUE": "AVE", "AVE": "AVE", "AV": "AVE", "AVN": "AVE",
    "BOULEVARD": "BLVD", "BOUL": "BLVD", "BLV": "BLVD", "BLVD": "BLVD",
    "DRIVE": "DR", "DRV": "DR", "DR": "DR",
    "ROAD": "RD", "RD": "RD",
    "LANE": "LN", "LN": "LN",
    "PLACE": "PL", "PL": "PL",
    "CIRCLE": "CIR", "CIRC": "CIR", "CIR": "CIR",
    "COURT": "CT", "CRT": "CT", "CT": "CT",
    "TERRACE": "TER", "TERR": "TER", "TER": "TER",
    "TRAIL": "TRL", "TRL": "TRL",
    "WAY": "WAY", "WY": "WAY",
    "HIGHWAY": "HWY", "HIWAY": "HWY", "HWY": "HWY",
    "PARKWAY": "PKWY", "PKY": "PKWY", "PKWY": "PKWY",
    "TURNPIKE": "TPKE", "TPKE": "TPKE",
    "EXTENSION": "EXT", "EXT": "EXT",
})

# Canonical abbreviation -> expanded form used in the gazetteer.
STREET_TYPE_NAMES: Mapping[str, str] = MappingProxyType({
    "ST": "STREET", "AVE": "AVENUE", "BLVD": "BOULEVARD", "DR": "DRIVE",
    "RD": "ROAD", "LN": "LANE", "PL": "PLACE", "CIR": "CIRCLE", "CT": "COURT",
    "TER": "TERRACE", "TRL": "TRAIL", "WAY": "WAY", "HWY": "HIGHWAY",
    "PKWY": "PARKWAY", "TPKE": "TURNPIKE", "EXT": "EXTENSION",
})

DEFAULT_LEGAL_CONSTRUCT_MARKERS = frozenset({
    "TRUST", "TRUSTS", "TRUSTEE", "TRUSTEES", "ESTATE", "LLC",
})


# -- Reference data ----------------------------------------------------------

_ENTRY_TABLES = frozenset({
    "business_terms", "business_master", "local_streets", "local_cities",
    "legal_construct_markers",
})


def _clean_entry(line: str) -> str:
    if "→" in line:
        line = line.split("→", 1)[1]
    return " ".join(line.split()).upper()


def _clean_entries(entries: Iterable[str]) -> frozenset[str]:
    cleaned = (_clean_entry(e) for e in entries)
    return frozenset(e for e in cleaned if e)


def _read_entries(path: str) -> frozenset[str]:
    """Read a one-entry-per-line reference file."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ReferenceDataError(f"Cannot read reference file {path}: {exc}") from exc

    lines = [ln for ln in text.splitlines() if not ln.strip().startswith("#")]
    entries = _clean_entries(lines)
    if not entries:
        raise ReferenceDataError(f"Reference file {path} has no entries")
    logger.info("Loaded %d reference entries from %s", len(entries), path)
    return entries


@dataclass(frozen=True)
class ReferenceData:
    """Immutable dictionaries shared by the classifier and normalizer.

    Attributes
    ----------
    business_terms : frozenset of str
        Single words that mark a business or legal-construct name.
    business_master : frozenset of str
        Complete names that are always businesses.
    local_streets : frozenset of str
        Street names (expanded street type) inside the jurisdiction.
    local_cities : frozenset of str
        Canonical city names of the jurisdiction.
    street_types : Mapping[str, str]
        Street-type spelling variants mapped to canonical abbreviations.
    legal_construct_markers : frozenset of str
        Words that turn an ambiguous business name into a legal construct.
    """

    business_terms: frozenset[str] = DEFAULT_BUSINESS_TERMS
    business_master: frozenset[str] = DEFAULT_BUSINESS_MASTER
    local_streets: frozenset[str] = DEFAULT_LOCAL_STREETS
    local_cities: frozenset[str] = frozenset({"BLOCK ISLAND", "NEW SHOREHAM"})
    street_types: Mapping[str, str] = field(default_factory=lambda: DEFAULT_STREET_TYPES)
    legal_construct_markers: frozenset[str] = DEFAULT_LEGAL_CONSTRUCT_MARKERS

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> ReferenceData:
        """Build reference data, loading any files the settings name.

        Raises
        ------
        ReferenceDataError
            If a configured file cannot be read or holds no entries.
        """
        settings = settings or Settings()
        data = cls(local_cities=_clean_entries(settings.JURISDICTION_CITIES))
        if settings.BUSINESS_TERMS_PATH:
            data = data.with_entries(business_terms=_read_entries(settings.BUSINESS_TERMS_PATH))
        if settings.BUSINESS_MASTER_PATH:
            data = data.with_entries(business_master=_read_entries(settings.BUSINESS_MASTER_PATH))
        if settings.STREET_GAZETTEER_PATH:
            data = data.with_entries(local_streets=_read_entries(settings.STREET_GAZETTEER_PATH))
        return data

    def with_entries(self, **tables: Iterable[str]) -> ReferenceData:
        """Return a copy with the named tables replaced (entries are cleaned)."""
        unknown = set(tables) - _ENTRY_TABLES
        if unknown:
            raise ReferenceDataError(f"Unknown reference table(s): {', '.join(sorted(unknown))}")
        return replace(self, **{name: _clean_entries(entries) for name, entries in tables.items()})
