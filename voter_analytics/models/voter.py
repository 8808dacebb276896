"""
Voter data models.

A VoterRecord is a read-only projection of the voter registration table;
only the columns a query asked for are populated.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..config import is_identifier
from ..exceptions import ConfigurationError
from ..utils.numbers import round_half_away

REGISTRATION_NUMBER_RE = re.compile(r"^\d{8}$")


class VoterColumn(Enum):
    """Columns that may be projected or ordered by."""

    REGISTRATION_NUMBER = "voter_registration_number"
    FIRST_NAME = "first_name"
    MIDDLE_NAME = "middle_name"
    LAST_NAME = "last_name"
    SUFFIX = "suffix"
    STATUS = "status"
    STATUS_REASON = "status_reason"
    GENDER = "gender"
    RACE = "race"
    BIRTH_YEAR = "birth_year"
    COUNTY_NAME = "county_name"
    COUNTY_PRECINCT = "county_precinct"
    MUNICIPAL_PRECINCT = "municipal_precinct"
    CONGRESSIONAL_DISTRICT = "congressional_district"
    STATE_SENATE_DISTRICT = "state_senate_district"
    STATE_HOUSE_DISTRICT = "state_house_district"
    RESIDENCE_STREET_NUMBER = "residence_street_number"
    RESIDENCE_PRE_DIRECTION = "residence_pre_direction"
    RESIDENCE_STREET_NAME = "residence_street_name"
    RESIDENCE_STREET_TYPE = "residence_street_type"
    RESIDENCE_POST_DIRECTION = "residence_post_direction"
    RESIDENCE_APT_UNIT_NUMBER = "residence_apt_unit_number"
    RESIDENCE_CITY = "residence_city"
    RESIDENCE_ZIPCODE = "residence_zipcode"
    CENSUS_TRACT = "census_tract"
    LAST_PARTY_VOTED = "last_party_voted"
    PARTICIPATION_SCORE = "participation_score"
    VOTING_EVENTS = "voting_events"


for _column in VoterColumn:
    if not is_identifier(_column.value):
        raise ConfigurationError(f"VoterColumn is not a plain identifier: {_column.value!r}")


# Address components used to find other voters at the same address
ADDRESS_COLUMNS: tuple[VoterColumn, ...] = (
    VoterColumn.RESIDENCE_STREET_NUMBER,
    VoterColumn.RESIDENCE_PRE_DIRECTION,
    VoterColumn.RESIDENCE_STREET_NAME,
    VoterColumn.RESIDENCE_STREET_TYPE,
    VoterColumn.RESIDENCE_POST_DIRECTION,
    VoterColumn.RESIDENCE_APT_UNIT_NUMBER,
    VoterColumn.RESIDENCE_CITY,
    VoterColumn.RESIDENCE_ZIPCODE,
)

LIST_COLUMNS: tuple[VoterColumn, ...] = (
    VoterColumn.REGISTRATION_NUMBER,
    VoterColumn.FIRST_NAME,
    VoterColumn.MIDDLE_NAME,
    VoterColumn.LAST_NAME,
    VoterColumn.SUFFIX,
    VoterColumn.STATUS,
    VoterColumn.GENDER,
    VoterColumn.RACE,
    VoterColumn.BIRTH_YEAR,
    VoterColumn.COUNTY_NAME,
    VoterColumn.RESIDENCE_CITY,
    VoterColumn.RESIDENCE_ZIPCODE,
    VoterColumn.PARTICIPATION_SCORE,
)

PROFILE_COLUMNS: tuple[VoterColumn, ...] = tuple(VoterColumn)


def is_registration_number(value: str) -> bool:
    """Georgia registration numbers are exactly 8 digits."""
    return bool(REGISTRATION_NUMBER_RE.match(value or ""))


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


@dataclass
class VoterRecord:
    """
    Read-only projection of one voter row.

    ``projected`` names the columns the query selected; to_dict only
    emits those, so a missing column is never confused with a NULL one.
    """

    voter_registration_number: Optional[str] = None
    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    suffix: Optional[str] = None
    status: Optional[str] = None
    status_reason: Optional[str] = None
    gender: Optional[str] = None
    race: Optional[str] = None
    birth_year: Optional[int] = None
    county_name: Optional[str] = None
    county_precinct: Optional[str] = None
    municipal_precinct: Optional[str] = None
    congressional_district: Optional[str] = None
    state_senate_district: Optional[str] = None
    state_house_district: Optional[str] = None
    residence_street_number: Optional[str] = None
    residence_pre_direction: Optional[str] = None
    residence_street_name: Optional[str] = None
    residence_street_type: Optional[str] = None
    residence_post_direction: Optional[str] = None
    residence_apt_unit_number: Optional[str] = None
    residence_city: Optional[str] = None
    residence_zipcode: Optional[str] = None
    census_tract: Optional[str] = None
    last_party_voted: Optional[str] = None
    participation_score: Optional[float] = None
    voting_events: Optional[list[dict[str, Any]]] = None

    projected: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "VoterRecord":
        """Create a record from a store row, keeping only known columns."""
        known = {c.value for c in VoterColumn}
        values = {k: v for k, v in row.items() if k in known}

        # 0 and NULL both mean "no score computed"
        score = values.get("participation_score")
        if "participation_score" in values:
            values["participation_score"] = round_half_away(score) if score else None
        if values.get("birth_year") is not None:
            values["birth_year"] = int(values["birth_year"])

        projected = tuple(c.value for c in VoterColumn if c.value in values)
        return cls(projected=projected, **values)

    @property
    def full_name(self) -> str:
        parts = (self.first_name, self.middle_name, self.last_name, self.suffix)
        return " ".join(p for p in parts if p)

    def age_in(self, year: int) -> Optional[int]:
        if self.birth_year is None:
            return None
        return year - self.birth_year

    def to_dict(self) -> dict[str, Any]:
        """Projected columns, camelCased for the JSON contract."""
        data = {_camel(name): getattr(self, name) for name in self.projected}
        if self.first_name is not None or self.last_name is not None:
            data["fullName"] = self.full_name
        return data
