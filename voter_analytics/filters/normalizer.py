"""
Raw request parameters -> typed FilterSpec.

The normalizer is the only place user input is interpreted. Everything it
returns is closed and typed: field names are AllowedField members and
values are plain scalars that will only ever be bound as parameters.

Normalization is deterministic. Values are stripped, de-duplicated and
sorted inside a field, and criteria are emitted in AllowedField order, so
two inputs that differ only in value order or repetition normalize (and
therefore compile) identically. Age filters are relative to a reference
date (``as_of``, default today).
"""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any, Mapping, Optional, Sequence, Union

from ..constants import (
    AGE_BANDS,
    AGE_BANDS_BY_LABEL,
    MAX_AGE,
    MAX_ELECTION_YEAR,
    MIN_AGE,
    MIN_ELECTION_YEAR,
    SCORE_RANGES,
    SCORE_RANGES_BY_KEY,
    VOTE_METHODS,
)
from ..exceptions import ValidationError
from ..models.filters import (
    ALL_AREAS,
    TEXT_KINDS,
    AllowedField,
    AreaScope,
    AreaType,
    BoundingBox,
    CountyScope,
    DistrictScope,
    DistrictType,
    FilterCriterion,
    FilterSpec,
    GeographyScope,
    MatchKind,
    Operator,
    SubArea,
    SubAreaType,
    ZipCodeScope,
)
from ..models.requests import Dimension, TurnoutRequest
from ..models.voter import is_registration_number

RawValue = Union[str, Sequence[str]]

REGISTRATION_NUMBER_KEY = "registrationNumber"
SCORE_RANGE_KEY = "scoreRange"
AGE_RANGE_KEY = "ageRange"
AGE_MIN_KEY = "ageMin"
AGE_MAX_KEY = "ageMax"
BBOX_KEY = "bbox"
AREA_KEYS = ("areaType", "areaValue", "districtType", "subAreaType", "subAreaValue")

# Request keys that differ from the column they filter
PARAM_KEYS: dict[str, AllowedField] = {
    REGISTRATION_NUMBER_KEY: AllowedField.VOTER_REGISTRATION_NUMBER,
    "firstName": AllowedField.FIRST_NAME,
    "lastName": AllowedField.LAST_NAME,
    "electionType": AllowedField.ELECTION_TYPE,
    "electionDate": AllowedField.ELECTION_DATE,
    "electionYear": AllowedField.ELECTION_YEAR,
    "ballotStyle": AllowedField.BALLOT_STYLE,
    "eventParty": AllowedField.EVENT_PARTY,
    "voterEventMethod": AllowedField.VOTE_METHOD,
    "neverVoted": AllowedField.NEVER_VOTED,
    "notVotedSinceYear": AllowedField.NOT_VOTED_SINCE,
}

FIELD_KEYS: dict[str, AllowedField] = {
    f.column: f
    for f in AllowedField
    if f.match_kind in TEXT_KINDS and f not in PARAM_KEYS.values()
}
FIELD_KEYS.update(PARAM_KEYS)

AGE_KEYS = (AGE_RANGE_KEY, AGE_MIN_KEY, AGE_MAX_KEY)

ACCEPTED_KEYS = frozenset(FIELD_KEYS) | {SCORE_RANGE_KEY, BBOX_KEY, *AGE_KEYS, *AREA_KEYS}

_KEY_BY_FIELD = {f: k for k, f in FIELD_KEYS.items()}
_FIELD_ORDER = {f: i for i, f in enumerate(AllowedField)}


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v is not None]
    return [str(value)]


def _split_values(raw: RawValue) -> tuple[list[str], bool]:
    """
    Flatten repeated and comma-separated values.

    Returns the non-blank stripped values and whether a blank value was
    given. A repeated value that is entirely blank (``county_name=``)
    counts as a blank; empty fragments between commas of a non-blank value
    are dropped. A key present with no values at all is a blank.
    """
    values: list[str] = []
    has_blank = False
    for item in _as_list(raw):
        parts = [part.strip() for part in item.split(",")]
        non_blank = [p for p in parts if p]
        if not non_blank:
            has_blank = True
        values.extend(non_blank)
    return values, has_blank or not values


def _single(raw: Any) -> Optional[str]:
    """Last non-blank value of a single-valued parameter, or None."""
    values = [v.strip() for v in _as_list(raw) if v.strip()]
    return values[-1] if values else None


def _eq_or_in(allowed: AllowedField, values: Sequence[Any]) -> list[FilterCriterion]:
    if len(values) == 1:
        return [FilterCriterion(allowed, Operator.EQ, values[0])]
    return [FilterCriterion(allowed, Operator.IN, tuple(values))]


def _parse_date(raw: Any, key: str) -> date:
    if isinstance(raw, date):
        return raw
    try:
        return datetime.strptime(str(raw), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(
            f"Invalid {key}: {raw}",
            code="INVALID_ELECTION_DATE",
            field_name=key,
            field_value=raw,
            expected="YYYY-MM-DD",
        )


def _parse_int(raw: str, key: str, low: int, high: int, code: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        value = None
    if value is None or not low <= value <= high:
        raise ValidationError(
            f"Invalid {key}: {raw}",
            code=code,
            field_name=key,
            field_value=raw,
            expected=f"integer {low}-{high}",
        )
    return value


def _text_criteria(allowed: AllowedField, raw: RawValue) -> list[FilterCriterion]:
    values, blank = _split_values(raw)
    # Present but empty still constrains: col = '' joins the OR group
    criteria = [FilterCriterion(allowed, Operator.EQ, "")] if blank else []
    if not values:
        return criteria

    if allowed.match_kind is MatchKind.EXACT_CI:
        values = [v.upper() for v in values]
    values = sorted(set(values))

    if allowed is AllowedField.VOTER_REGISTRATION_NUMBER:
        for value in values:
            if not is_registration_number(value):
                raise ValidationError(
                    "Registration number must be exactly 8 digits.",
                    code="INVALID_REGISTRATION_NUMBER",
                    field_name=REGISTRATION_NUMBER_KEY,
                    field_value=value,
                    expected="8 digits",
                )

    if allowed.match_kind in (MatchKind.FUZZY, MatchKind.PREFIX):
        return criteria + [FilterCriterion(allowed, Operator.ILIKE, v) for v in values]
    return criteria + _eq_or_in(allowed, values)


def _history_criteria(allowed: AllowedField, raw: RawValue) -> list[FilterCriterion]:
    """Voting-history filters; these take no blank values."""
    key = _KEY_BY_FIELD[allowed]
    values, _ = _split_values(raw)
    if not values:
        raise ValidationError(f"{key} must not be blank.", field_name=key)

    if allowed is AllowedField.ELECTION_TYPE:
        return _eq_or_in(allowed, sorted({v.upper() for v in values}))

    if allowed is AllowedField.ELECTION_DATE:
        return _eq_or_in(allowed, sorted({_parse_date(v, key).isoformat() for v in values}))

    if allowed is AllowedField.VOTE_METHOD:
        methods = sorted({v.lower() for v in values})
        for method in methods:
            if method not in VOTE_METHODS:
                raise ValidationError(
                    f"Unknown {key}: {method}",
                    field_name=key,
                    field_value=method,
                    expected=", ".join(VOTE_METHODS),
                )
        return _eq_or_in(allowed, methods)

    if allowed is AllowedField.ELECTION_YEAR:
        years = sorted({
            _parse_int(v, key, MIN_ELECTION_YEAR, MAX_ELECTION_YEAR, "INVALID_YEAR")
            for v in values
        })
        return _eq_or_in(allowed, years)

    if allowed is AllowedField.NEVER_VOTED:
        flags = {v.lower() for v in values}
        if not flags <= {"true", "false"} or len(flags) > 1:
            raise ValidationError(
                f"Invalid {key}: {','.join(sorted(flags))}",
                field_name=key,
                expected="true or false",
            )
        # false leaves the voting history unconstrained
        return [FilterCriterion(allowed, Operator.EQ, True)] if flags == {"true"} else []

    if allowed is AllowedField.NOT_VOTED_SINCE:
        if len(set(values)) > 1:
            raise ValidationError(f"{key} takes a single year.", code="INVALID_YEAR", field_name=key)
        year = _parse_int(values[0], key, MIN_ELECTION_YEAR, MAX_ELECTION_YEAR, "INVALID_YEAR")
        return [FilterCriterion(allowed, Operator.EQ, date(year, 1, 1))]

    # ballotStyle, eventParty: matched as given
    return _eq_or_in(allowed, sorted(set(values)))


def _field_criteria(allowed: AllowedField, raw: RawValue) -> list[FilterCriterion]:
    if allowed.match_kind in TEXT_KINDS:
        return _text_criteria(allowed, raw)
    return _history_criteria(allowed, raw)


def _score_range_criteria(raw: RawValue) -> list[FilterCriterion]:
    keys, _ = _split_values(raw)
    if not keys:
        raise ValidationError(
            "scoreRange must name at least one score range.",
            code="INVALID_SCORE_RANGE",
            field_name=SCORE_RANGE_KEY,
            expected=", ".join(SCORE_RANGES_BY_KEY),
        )
    unknown = sorted(set(keys) - set(SCORE_RANGES_BY_KEY))
    if unknown:
        raise ValidationError(
            f"Unknown score range: {unknown[0]}",
            code="INVALID_SCORE_RANGE",
            field_name=SCORE_RANGE_KEY,
            field_value=unknown[0],
            expected=", ".join(SCORE_RANGES_BY_KEY),
        )
    wanted = set(keys)
    return [
        FilterCriterion(AllowedField.PARTICIPATION_SCORE, Operator.RANGE, (r.min, r.max))
        for r in SCORE_RANGES
        if r.key in wanted
    ]


def _birth_years(year: int, min_age: Optional[int], max_age: Optional[int]) -> FilterCriterion:
    """Ages min_age..max_age in ``year`` as a birth_year range; None is open."""
    low = year - max_age if max_age is not None else None
    high = year - min_age if min_age is not None else None
    return FilterCriterion(AllowedField.BIRTH_YEAR, Operator.RANGE, (low, high))


def _age_criteria(raw_params: Mapping[str, RawValue], as_of: date) -> list[FilterCriterion]:
    """
    ageRange (age band labels, ORed) or an ageMin/ageMax pair.

    The two forms are mutually exclusive.
    """
    has_bounds = AGE_MIN_KEY in raw_params or AGE_MAX_KEY in raw_params
    if AGE_RANGE_KEY in raw_params:
        if has_bounds:
            raise ValidationError(
                "ageRange cannot be combined with ageMin/ageMax.",
                code="INVALID_AGE_RANGE",
                field_name=AGE_RANGE_KEY,
            )
        labels, _ = _split_values(raw_params[AGE_RANGE_KEY])
        unknown = sorted(set(labels) - set(AGE_BANDS_BY_LABEL))
        if not labels or unknown:
            raise ValidationError(
                f"Unknown age range: {unknown[0] if unknown else ''}",
                code="INVALID_AGE_RANGE",
                field_name=AGE_RANGE_KEY,
                field_value=unknown[0] if unknown else None,
                expected=", ".join(AGE_BANDS_BY_LABEL),
            )
        wanted = set(labels)
        return [
            _birth_years(as_of.year, band.min_age, band.max_age)
            for band in AGE_BANDS
            if band.label in wanted
        ]

    if not has_bounds:
        return []

    bounds = {}
    for key in (AGE_MIN_KEY, AGE_MAX_KEY):
        text = _single(raw_params.get(key))
        bounds[key] = (
            _parse_int(text, key, MIN_AGE, MAX_AGE, "INVALID_AGE_RANGE") if text is not None else None
        )
    min_age, max_age = bounds[AGE_MIN_KEY], bounds[AGE_MAX_KEY]
    if min_age is None and max_age is None:
        raise ValidationError("ageMin/ageMax must not be blank.", code="INVALID_AGE_RANGE", field_name=AGE_MIN_KEY)
    if min_age is not None and max_age is not None and min_age > max_age:
        raise ValidationError(
            "ageMin must not exceed ageMax.",
            code="INVALID_AGE_RANGE",
            field_name=AGE_MIN_KEY,
            field_value=min_age,
        )
    return [_birth_years(as_of.year, min_age, max_age)]


def parse_bbox(raw: Any) -> BoundingBox:
    """Parse ``xmin,ymin,xmax,ymax`` into a BoundingBox."""
    text = _single(raw) or ""
    parts = [p.strip() for p in text.split(",")]

    def fail(reason: str) -> ValidationError:
        return ValidationError(
            f"Invalid bbox: {reason}",
            code="INVALID_BBOX",
            field_name=BBOX_KEY,
            field_value=text,
            expected="xmin,ymin,xmax,ymax",
        )

    if len(parts) != 4:
        raise fail(f"expected 4 values, got {len(parts) if text else 0}")
    try:
        xmin, ymin, xmax, ymax = (float(p) for p in parts)
    except ValueError:
        raise fail("values must be numbers")
    if not all(math.isfinite(v) for v in (xmin, ymin, xmax, ymax)):
        raise fail("values must be finite")
    if xmin > xmax or ymin > ymax:
        raise fail("min must not exceed max")
    return BoundingBox(xmin, ymin, xmax, ymax)


def _enum_value(enum_cls, raw: Optional[str], key: str):
    for member in enum_cls:
        if member.value == raw:
            return member
    raise ValidationError(
        f"Unsupported {key}: {raw}",
        field_name=key,
        field_value=raw,
        expected=", ".join(m.value for m in enum_cls),
    )


def parse_area(mapping: Mapping[str, Any]) -> Optional[AreaScope]:
    """
    Build an AreaScope from areaType/areaValue/districtType/subAreaType/subAreaValue.

    Returns None when no area parameter is present. Sub-areas are only
    accepted with a specific County and must come as a type/value pair.
    """
    area_type_raw = _single(mapping.get("areaType"))
    area_value = _single(mapping.get("areaValue"))
    district_type_raw = _single(mapping.get("districtType"))
    sub_type_raw = _single(mapping.get("subAreaType"))
    sub_value = _single(mapping.get("subAreaValue"))

    if not any((area_type_raw, area_value, district_type_raw, sub_type_raw, sub_value)):
        return None

    if area_type_raw is None:
        raise ValidationError("areaType is required with area parameters.", field_name="areaType")
    area_type = _enum_value(AreaType, area_type_raw, "areaType")
    if area_value is None:
        raise ValidationError("areaValue is required.", field_name="areaValue")

    if (sub_type_raw or sub_value) and area_type is not AreaType.COUNTY:
        raise ValidationError(
            f"subAreaType is only allowed with areaType County, not {area_type.value}.",
            code="INVALID_SUB_AREA",
            field_name="subAreaType",
            field_value=sub_type_raw,
            expected="areaType County",
        )
    if district_type_raw and area_type is not AreaType.DISTRICT:
        raise ValidationError(
            f"districtType is only allowed with areaType District, not {area_type.value}.",
            field_name="districtType",
            field_value=district_type_raw,
        )

    if area_type is AreaType.DISTRICT:
        if district_type_raw is None:
            raise ValidationError("districtType is required for areaType District.", field_name="districtType")
        return DistrictScope(_enum_value(DistrictType, district_type_raw, "districtType"), area_value)

    if area_type is AreaType.ZIP_CODE:
        return ZipCodeScope(area_value)

    sub_area = None
    breakdown = None
    if sub_type_raw or sub_value:
        if not (sub_type_raw and sub_value):
            raise ValidationError(
                "subAreaType and subAreaValue must be given together.",
                code="INVALID_SUB_AREA",
                field_name="subAreaType" if not sub_type_raw else "subAreaValue",
            )
        sub_type = _enum_value(SubAreaType, sub_type_raw, "subAreaType")
        if area_value.upper() == ALL_AREAS:
            raise ValidationError(
                f"subAreaType {sub_type.value} needs a specific county, not ALL.",
                code="INVALID_SUB_AREA",
                field_name="subAreaValue",
                field_value=sub_value,
            )
        if sub_value.upper() == ALL_AREAS:
            # Whole county, one geo unit per sub-area
            breakdown = sub_type
        else:
            sub_area = SubArea(sub_type, sub_value)
    return CountyScope(area_value, sub_area, breakdown)


def parse_geography(mapping: Mapping[str, Any]) -> Optional[GeographyScope]:
    """
    bbox or area scope from a parameter mapping; they are mutually exclusive.

    Area keys that are present but blank count as absent.
    """
    has_bbox = mapping.get(BBOX_KEY) is not None
    has_area = any(_single(mapping.get(k)) is not None for k in AREA_KEYS)
    if has_bbox and has_area:
        raise ValidationError(
            "bbox cannot be combined with area parameters.",
            code="CONFLICTING_GEOGRAPHY",
            field_name=BBOX_KEY,
        )
    if has_bbox:
        return parse_bbox(mapping[BBOX_KEY])
    return parse_area(mapping)


def normalize(raw_params: Mapping[str, RawValue], as_of: Optional[date] = None) -> FilterSpec:
    """
    Normalize raw request parameters into a FilterSpec.

    Args:
        raw_params: Request parameters, each a string or list of strings
        as_of: Reference date for age filters (default: today)

    Raises:
        ValidationError: on unknown keys or malformed values
    """
    unknown = sorted(k for k in raw_params if k not in ACCEPTED_KEYS)
    if unknown:
        raise ValidationError(
            f"Unknown filter field: {unknown[0]}",
            code="UNKNOWN_FILTER_FIELD",
            field_name=unknown[0],
        )

    criteria: list[FilterCriterion] = []
    for key, raw in raw_params.items():
        if key in FIELD_KEYS:
            criteria.extend(_field_criteria(FIELD_KEYS[key], raw))
        elif key == SCORE_RANGE_KEY:
            criteria.extend(_score_range_criteria(raw))
    criteria.extend(_age_criteria(raw_params, as_of or date.today()))

    # Stable sort keeps the sorted value order inside each field
    criteria.sort(key=lambda c: _FIELD_ORDER[c.field])

    return FilterSpec(criteria=tuple(criteria), geography=parse_geography(raw_params))


def _parse_dimension(raw: Any, key: str) -> Dimension:
    for member in Dimension:
        if member.value == raw:
            return member
    raise ValidationError(
        f"Invalid {key}: {raw}",
        code="INVALID_DATA_POINT",
        field_name=key,
        field_value=raw,
        expected=", ".join(d.value for d in Dimension),
    )


def normalize_turnout_request(body: Any) -> TurnoutRequest:
    """
    Validate a turnout analysis request body.

    Expected shape::

        {
            "geography": {"areaType": ..., "areaValue": ..., "subAreaType"?: ...,
                          "subAreaValue"?: ..., "districtType"?: ...},
            "electionDate": "YYYY-MM-DD",
            "reportDataPoints": ["Race" | "Gender" | "AgeRange", ...],
            "chartDataPoint": one of the above or null,
            "includeCensusData": bool
        }
    """
    if not isinstance(body, Mapping):
        raise ValidationError("Request body must be an object.", code="INVALID_REQUEST_BODY")

    geography_raw = body.get("geography")
    if not isinstance(geography_raw, Mapping):
        raise ValidationError(
            "geography is required.", code="INVALID_REQUEST_BODY", field_name="geography"
        )
    geography = parse_area(geography_raw)
    if geography is None:
        raise ValidationError(
            "geography needs areaType and areaValue.",
            code="INVALID_REQUEST_BODY",
            field_name="geography",
        )

    if body.get("electionDate") in (None, ""):
        raise ValidationError(
            "electionDate is required.", code="INVALID_ELECTION_DATE", field_name="electionDate"
        )
    election_date = _parse_date(body["electionDate"], "electionDate")

    points_raw = body.get("reportDataPoints") or []
    if not isinstance(points_raw, (list, tuple)):
        raise ValidationError(
            "reportDataPoints must be a list.",
            code="INVALID_REQUEST_BODY",
            field_name="reportDataPoints",
        )
    report_points: list[Dimension] = []
    for raw in points_raw:
        dimension = _parse_dimension(raw, "reportDataPoints")
        if dimension not in report_points:
            report_points.append(dimension)

    chart_raw = body.get("chartDataPoint")
    chart_point = _parse_dimension(chart_raw, "chartDataPoint") if chart_raw else None

    include_census = body.get("includeCensusData", False)
    if not isinstance(include_census, bool):
        raise ValidationError(
            "includeCensusData must be a boolean.",
            code="INVALID_REQUEST_BODY",
            field_name="includeCensusData",
        )

    return TurnoutRequest(
        geography=geography,
        election_date=election_date,
        report_data_points=tuple(report_points),
        chart_data_point=chart_point,
        include_census_data=include_census,
    )
