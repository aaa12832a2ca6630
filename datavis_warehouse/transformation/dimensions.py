"""
Dimension Resolver

Maps raw attribute values to dimension surrogate keys.

Country has an open value space and is upserted. Time, age group and gender
are closed, pre-seeded dimensions: they are only ever looked up, and a failed
lookup returns None so the caller can count the row as failed instead of
growing the dimension from malformed input.
"""

from datetime import datetime
from typing import Dict, Optional, Tuple

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from datavis_warehouse.database.models import (
    DimAgeGroup,
    DimCountry,
    DimGender,
    DimTime,
    country_name_key,
)
from datavis_warehouse.transformation.reference import (
    AGE_GROUP_MAPPING,
    REGION_MAPPING,
    UNKNOWN_REGION,
)

logger = structlog.get_logger(__name__)

_REGION_LOOKUP: Dict[str, str] = {name.casefold(): name for name in REGION_MAPPING}


def canonical_country_name(raw_name: Optional[str]) -> str:
    """
    Collapse whitespace and adopt the reference spelling when the name
    matches a known country case-insensitively.
    """
    if raw_name is None:
        return ""
    name = " ".join(str(raw_name).split())
    return _REGION_LOOKUP.get(name.casefold(), name)


def classify_country(name: str) -> Tuple[str, str]:
    """(region, continent) for a canonical country name."""
    return REGION_MAPPING.get(name, UNKNOWN_REGION)


def canonical_age_group(raw_label: Optional[str]) -> str:
    """Map a raw bracket to its bucket code; unmapped labels pass through trimmed."""
    label = " ".join(str(raw_label or "").split())
    return AGE_GROUP_MAPPING.get(label, label)


def canonical_gender(raw_label: Optional[str]) -> str:
    """Female -> F, Male -> M, anything else -> O."""
    label = str(raw_label or "").strip().casefold()
    if label == "female":
        return "F"
    if label == "male":
        return "M"
    return "O"


class DimensionResolver:
    """
    Resolves dimension keys inside the caller's session.

    Closed-dimension lookups are cached per resolver; build a new resolver
    for each job so a schema reset never leaves stale keys behind.

    Example:
        with store.session() as session:
            resolver = DimensionResolver(session)
            country_id = resolver.resolve_country("China")
            time_id = resolver.lookup_time(2022)
    """

    def __init__(self, session: Session):
        self.session = session
        self._time_cache: Dict[Tuple[int, int], Optional[int]] = {}
        self._age_group_cache: Dict[str, Optional[int]] = {}
        self._gender_cache: Dict[str, Optional[int]] = {}
        self.countries_created = 0
        self.countries_updated = 0

    # =========================================================================
    # OPEN DIMENSIONS (upsert)
    # =========================================================================

    def _find_country(self, name: str) -> Optional[DimCountry]:
        return self.session.execute(
            select(DimCountry).where(DimCountry.country_name_key == country_name_key(name))
        ).scalar_one_or_none()

    def resolve_country(self, raw_name: str) -> int:
        """
        Upsert a country by canonical name and return its key.

        Re-resolving an existing name refreshes its classification and
        updated_at; it never creates a second row.

        Raises:
            ValueError: If the name is blank
        """
        name = canonical_country_name(raw_name)
        if not name:
            raise ValueError("Country name is blank")

        region, continent = classify_country(name)
        country = self._find_country(name)

        if country is None:
            country = DimCountry(country_name=name, region=region, continent=continent)
            self.session.add(country)
            self.session.flush()
            self.countries_created += 1
            logger.debug("Country created", country=name, region=region)
        else:
            country.region = region
            country.continent = continent
            country.updated_at = datetime.utcnow()
            self.session.flush()
            self.countries_updated += 1

        return country.country_id

    def lookup_country(self, raw_name: str) -> Optional[int]:
        """Key of an existing country, or None. Never creates rows."""
        name = canonical_country_name(raw_name)
        if not name:
            return None
        country = self._find_country(name)
        return country.country_id if country is not None else None

    # =========================================================================
    # CLOSED DIMENSIONS (lookup only)
    # =========================================================================

    def lookup_time(self, year: int, month: int = 1) -> Optional[int]:
        """Key of the seeded (year, month) period, or None outside the horizon."""
        key = (int(year), int(month))
        if key not in self._time_cache:
            self._time_cache[key] = self.session.execute(
                select(DimTime.time_id).where(DimTime.year == key[0], DimTime.month == key[1])
            ).scalar_one_or_none()
        return self._time_cache[key]

    def lookup_age_group(self, raw_label: str) -> Optional[int]:
        """Key of the bucket a raw label canonicalizes to, or None."""
        code = canonical_age_group(raw_label)
        if code not in self._age_group_cache:
            self._age_group_cache[code] = self.session.execute(
                select(DimAgeGroup.age_group_id).where(DimAgeGroup.age_group_code == code)
            ).scalar_one_or_none()
        return self._age_group_cache[code]

    def lookup_gender(self, raw_label: str) -> Optional[int]:
        """Key of the gender a raw label maps to; unrecognised labels resolve to Other."""
        return self.lookup_gender_code(canonical_gender(raw_label))

    def lookup_gender_code(self, code: str) -> Optional[int]:
        """Key of an already canonical gender code (M, F, O, U), or None."""
        if code not in self._gender_cache:
            self._gender_cache[code] = self.session.execute(
                select(DimGender.gender_id).where(DimGender.gender_code == code)
            ).scalar_one_or_none()
        return self._gender_cache[code]
