"""
Filter data models.

A FilterSpec is the typed, closed form of the user-supplied filter
parameters. Only columns named by AllowedField can ever reach a generated
statement; values only ever travel as bound parameters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple, Union

from ..config import is_identifier
from ..exceptions import ConfigurationError

PLACEHOLDER = "%s"

Scalar = Union[str, int, float]


class MatchKind(Enum):
    """How a field's values are compared."""
    EXACT_CI = "exact_ci"              # UPPER(col) = UPPER(value)
    EXACT = "exact"                    # col = value
    FUZZY = "fuzzy"                    # col ILIKE %value%
    PREFIX = "prefix"                  # col ILIKE value%
    RANGE = "range"                    # col BETWEEN low AND high, either bound may be open
    EVENT = "event"                    # col @> [{event_key: value}]
    EVENT_FLAG = "event_flag"          # col @> [{value: "Y"}]
    OVERLAPS = "overlaps"              # col && ARRAY[values]
    IS_NULL = "is_null"                # col IS NULL (true) / IS NOT NULL (false)
    NULL_OR_BEFORE = "null_or_before"  # col IS NULL OR col < value


# Kinds compared as text; a blank value on these means col = ''
TEXT_KINDS = frozenset({MatchKind.EXACT_CI, MatchKind.EXACT, MatchKind.FUZZY, MatchKind.PREFIX})


class AllowedField(Enum):
    """
    Closed allow-list of filterable voter columns.

    Declaration order is the canonical criterion order used by the
    normalizer, so it also fixes the order of compiled clauses. Voting
    history fields on ``voting_events`` carry the event attribute they
    match in ``event_key``; the attribute only ever travels inside the
    bound jsonb document.
    """

    # Voter
    FIRST_NAME = ("first_name", MatchKind.PREFIX, "voter")
    LAST_NAME = ("last_name", MatchKind.PREFIX, "voter")

    # Address
    RESIDENCE_STREET_NAME = ("residence_street_name", MatchKind.FUZZY, "address")
    RESIDENCE_CITY = ("residence_city", MatchKind.FUZZY, "address")
    RESIDENCE_ZIPCODE = ("residence_zipcode", MatchKind.EXACT, "address")

    # Districts
    COUNTY_NAME = ("county_name", MatchKind.EXACT_CI, "district")
    COUNTY_PRECINCT = ("county_precinct", MatchKind.EXACT_CI, "district")
    MUNICIPAL_PRECINCT = ("municipal_precinct", MatchKind.EXACT_CI, "district")
    CONGRESSIONAL_DISTRICT = ("congressional_district", MatchKind.EXACT_CI, "district")
    STATE_SENATE_DISTRICT = ("state_senate_district", MatchKind.EXACT_CI, "district")
    STATE_HOUSE_DISTRICT = ("state_house_district", MatchKind.EXACT_CI, "district")

    # Demographics
    GENDER = ("gender", MatchKind.EXACT_CI, "demographic")
    RACE = ("race", MatchKind.EXACT_CI, "demographic")
    BIRTH_YEAR = ("birth_year", MatchKind.RANGE, "demographic")

    # Registration
    STATUS = ("status", MatchKind.EXACT_CI, "registration")
    STATUS_REASON = ("status_reason", MatchKind.EXACT_CI, "registration")
    LAST_PARTY_VOTED = ("last_party_voted", MatchKind.EXACT_CI, "registration")
    VOTER_REGISTRATION_NUMBER = ("voter_registration_number", MatchKind.EXACT, "registration")
    PARTICIPATION_SCORE = ("participation_score", MatchKind.RANGE, "registration")

    # Voting history
    ELECTION_TYPE = ("voting_events", MatchKind.EVENT, "voting_history", "election_type")
    ELECTION_DATE = ("voting_events", MatchKind.EVENT, "voting_history", "election_date")
    BALLOT_STYLE = ("voting_events", MatchKind.EVENT, "voting_history", "ballot_style")
    EVENT_PARTY = ("voting_events", MatchKind.EVENT, "voting_history", "party")
    VOTE_METHOD = ("voting_events", MatchKind.EVENT_FLAG, "voting_history")
    ELECTION_YEAR = ("participated_election_years", MatchKind.OVERLAPS, "voting_history")
    NEVER_VOTED = ("derived_last_vote_date", MatchKind.IS_NULL, "voting_history")
    NOT_VOTED_SINCE = ("derived_last_vote_date", MatchKind.NULL_OR_BEFORE, "voting_history")

    def __init__(
        self,
        column: str,
        match_kind: MatchKind,
        category: str,
        event_key: Optional[str] = None,
    ):
        self.column = column
        self.match_kind = match_kind
        self.category = category
        self.event_key = event_key

    @property
    def display_name(self) -> str:
        return " ".join(word.capitalize() for word in self.column.split("_"))


for _member in AllowedField:
    if not is_identifier(_member.column):
        raise ConfigurationError(f"AllowedField column is not a plain identifier: {_member.column!r}")


class Operator(Enum):
    EQ = "eq"
    IN = "in"
    ILIKE = "ilike"
    RANGE = "range"


@dataclass(frozen=True)
class FilterCriterion:
    """
    One typed filter condition.

    value shape by operator:
        EQ     -> scalar
        IN     -> non-empty tuple of scalars
        ILIKE  -> str (raw fragment, wrapping happens at compile time)
        RANGE  -> (low, high) numbers; one side may be None (open)
    """

    field: AllowedField
    operator: Operator
    value: Any

    def __post_init__(self):
        if not isinstance(self.field, AllowedField):
            raise ConfigurationError(f"Criterion field is not allow-listed: {self.field!r}")

        op, value = self.operator, self.value
        if op is Operator.IN:
            if not isinstance(value, tuple) or not value:
                raise ConfigurationError(f"IN criterion on {self.field.column} needs a non-empty tuple")
        elif op is Operator.RANGE:
            if (
                not isinstance(value, tuple)
                or len(value) != 2
                or all(v is None for v in value)
                or not all(v is None or isinstance(v, (int, float)) for v in value)
            ):
                raise ConfigurationError(f"RANGE criterion on {self.field.column} needs a (low, high) pair")
        elif op is Operator.ILIKE:
            if not isinstance(value, str):
                raise ConfigurationError(f"ILIKE criterion on {self.field.column} needs a string")
        elif isinstance(value, (tuple, list, dict)):
            raise ConfigurationError(f"EQ criterion on {self.field.column} needs a scalar")

    @property
    def scalar_values(self) -> Tuple[Scalar, ...]:
        """Every scalar this criterion binds."""
        if isinstance(self.value, tuple):
            return self.value
        return (self.value,)


# --- Geography -----------------------------------------------------------

ALL_AREAS = "ALL"


class AreaType(Enum):
    COUNTY = "County"
    DISTRICT = "District"
    ZIP_CODE = "ZipCode"


class DistrictType(Enum):
    CONGRESSIONAL = "Congressional"
    STATE_SENATE = "StateSenate"
    STATE_HOUSE = "StateHouse"

    @property
    def field(self) -> AllowedField:
        return {
            DistrictType.CONGRESSIONAL: AllowedField.CONGRESSIONAL_DISTRICT,
            DistrictType.STATE_SENATE: AllowedField.STATE_SENATE_DISTRICT,
            DistrictType.STATE_HOUSE: AllowedField.STATE_HOUSE_DISTRICT,
        }[self]


class SubAreaType(Enum):
    PRECINCT = "Precinct"
    MUNICIPALITY = "Municipality"
    ZIP_CODE = "ZipCode"

    @property
    def field(self) -> AllowedField:
        return {
            SubAreaType.PRECINCT: AllowedField.COUNTY_PRECINCT,
            SubAreaType.MUNICIPALITY: AllowedField.MUNICIPAL_PRECINCT,
            SubAreaType.ZIP_CODE: AllowedField.RESIDENCE_ZIPCODE,
        }[self]


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned lon/lat box, EPSG:4326."""
    xmin: float
    ymin: float
    xmax: float
    ymax: float

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.xmin, self.ymin, self.xmax, self.ymax)

    def to_dict(self) -> dict[str, Any]:
        return {"bbox": list(self.as_tuple())}


@dataclass(frozen=True)
class SubArea:
    sub_area_type: SubAreaType
    value: str


@dataclass(frozen=True)
class CountyScope:
    """
    A county, optionally narrowed to one precinct, municipality or zip.

    ``breakdown`` is set when every sub-area of the county is requested
    (subAreaValue ALL): the scope covers the whole county and its geo
    units are the sub-areas of that type.
    """
    county: str
    sub_area: Optional[SubArea] = None
    breakdown: Optional[SubAreaType] = None

    area_type = AreaType.COUNTY

    @property
    def is_statewide(self) -> bool:
        return self.county.upper() == ALL_AREAS

    @property
    def unit_field(self) -> AllowedField:
        """Column whose values are this scope's geo units."""
        if self.sub_area:
            return self.sub_area.sub_area_type.field
        if self.breakdown:
            return self.breakdown.field
        return AllowedField.COUNTY_NAME

    @property
    def unit_type(self) -> str:
        if self.sub_area:
            return self.sub_area.sub_area_type.value
        if self.breakdown:
            return self.breakdown.value
        return self.area_type.value

    def unit_label(self, value: str) -> str:
        if self.unit_field is AllowedField.COUNTY_NAME:
            return f"County {value}"
        kind = "Zip Code" if self.unit_type == SubAreaType.ZIP_CODE.value else self.unit_type
        return f"{kind} {value} (County {self.county})"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"areaType": self.area_type.value, "areaValue": self.county}
        if self.sub_area:
            data["subAreaType"] = self.sub_area.sub_area_type.value
            data["subAreaValue"] = self.sub_area.value
        elif self.breakdown:
            data["subAreaType"] = self.breakdown.value
            data["subAreaValue"] = ALL_AREAS
        return data


@dataclass(frozen=True)
class DistrictScope:
    district_type: DistrictType
    district: str

    area_type = AreaType.DISTRICT

    @property
    def is_statewide(self) -> bool:
        return self.district.upper() == ALL_AREAS

    @property
    def unit_field(self) -> AllowedField:
        return self.district_type.field

    @property
    def unit_type(self) -> str:
        return self.district_type.value

    def unit_label(self, value: str) -> str:
        return f"District {value}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "areaType": self.area_type.value,
            "areaValue": self.district,
            "districtType": self.district_type.value,
        }


@dataclass(frozen=True)
class ZipCodeScope:
    zipcode: str

    area_type = AreaType.ZIP_CODE

    @property
    def is_statewide(self) -> bool:
        return self.zipcode.upper() == ALL_AREAS

    @property
    def unit_field(self) -> AllowedField:
        return AllowedField.RESIDENCE_ZIPCODE

    @property
    def unit_type(self) -> str:
        return self.area_type.value

    def unit_label(self, value: str) -> str:
        return f"Zip Code {value}"

    def to_dict(self) -> dict[str, Any]:
        return {"areaType": self.area_type.value, "areaValue": self.zipcode}


AreaScope = Union[CountyScope, DistrictScope, ZipCodeScope]
GeographyScope = Union[BoundingBox, CountyScope, DistrictScope, ZipCodeScope]


@dataclass(frozen=True)
class FilterSpec:
    """Ordered criteria plus an optional geography. Empty matches everything."""

    criteria: Tuple[FilterCriterion, ...] = ()
    geography: Optional[GeographyScope] = None

    @property
    def is_empty(self) -> bool:
        return not self.criteria and self.geography is None

    def has_field(self, allowed: AllowedField) -> bool:
        return any(c.field is allowed for c in self.criteria)

    def criteria_for(self, allowed: AllowedField) -> Tuple[FilterCriterion, ...]:
        return tuple(c for c in self.criteria if c.field is allowed)


# --- Compiled output -----------------------------------------------------

@dataclass(frozen=True)
class CompiledPredicate:
    """
    Parameterized SQL boolean expression, without a leading WHERE.

    clause_text only holds column references, keywords and ``%s``
    placeholders; the number of placeholders always equals
    ``len(parameters)``. Top-level terms are AND-joined, so two predicates
    can be AND-combined without extra parentheses.
    """

    clause_text: str = ""
    parameters: Tuple[Any, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not isinstance(self.parameters, tuple):
            object.__setattr__(self, "parameters", tuple(self.parameters))
        if self.placeholder_count != len(self.parameters):
            raise ConfigurationError(
                f"Predicate has {self.placeholder_count} placeholders "
                f"but {len(self.parameters)} parameters"
            )

    @property
    def placeholder_count(self) -> int:
        return self.clause_text.count(PLACEHOLDER)

    @property
    def is_empty(self) -> bool:
        return not self.clause_text

    def and_(self, other: Optional["CompiledPredicate"]) -> "CompiledPredicate":
        """AND-combine with another predicate; empty sides drop out."""
        if other is None or other.is_empty:
            return self
        if self.is_empty:
            return other
        return CompiledPredicate(
            f"{self.clause_text} AND {other.clause_text}",
            self.parameters + other.parameters,
        )

    def where(self) -> str:
        """``WHERE <clause>`` or an empty string."""
        return f"WHERE {self.clause_text}" if self.clause_text else ""


EMPTY_PREDICATE = CompiledPredicate()
