"""
FilterSpec -> parameterized SQL predicate.

Column names only ever come from AllowedField / VoterColumn members and
values only ever travel in ``parameters``. Same-field criteria OR together,
different fields AND together.
"""

from __future__ import annotations

import json
from datetime import date
from typing import Optional

from ..exceptions import ConfigurationError
from ..models.filters import (
    EMPTY_PREDICATE,
    PLACEHOLDER,
    TEXT_KINDS,
    AllowedField,
    AreaScope,
    BoundingBox,
    CompiledPredicate,
    CountyScope,
    DistrictScope,
    FilterCriterion,
    FilterSpec,
    MatchKind,
    Operator,
    ZipCodeScope,
)
from ..models.voter import ADDRESS_COLUMNS, VoterColumn, VoterRecord
from .geometry import build_geometry_predicate

VOTING_EVENTS_COLUMN = VoterColumn.VOTING_EVENTS.value


def escape_like(value: str) -> str:
    """Escape LIKE metacharacters so a fragment matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _comparison(allowed: AllowedField, value) -> CompiledPredicate:
    """One comparison of ``allowed`` against one value."""
    column = allowed.column
    kind = allowed.match_kind

    if kind in TEXT_KINDS and value == "":
        return CompiledPredicate(f"{column} = {PLACEHOLDER}", ("",))
    if kind is MatchKind.EXACT_CI:
        return CompiledPredicate(f"UPPER({column}) = UPPER({PLACEHOLDER})", (value,))
    if kind is MatchKind.FUZZY:
        return CompiledPredicate(f"{column} ILIKE {PLACEHOLDER}", (f"%{escape_like(value)}%",))
    if kind is MatchKind.PREFIX:
        return CompiledPredicate(f"{column} ILIKE {PLACEHOLDER}", (f"{escape_like(value)}%",))
    if kind is MatchKind.EVENT:
        return _contains_event({allowed.event_key: value})
    if kind is MatchKind.EVENT_FLAG:
        return _contains_event({value: "Y"})
    if kind is MatchKind.IS_NULL:
        return CompiledPredicate(f"{column} IS NULL")
    if kind is MatchKind.NULL_OR_BEFORE:
        return CompiledPredicate(f"({column} IS NULL OR {column} < {PLACEHOLDER})", (value,))
    return CompiledPredicate(f"{column} = {PLACEHOLDER}", (value,))


def _contains_event(event: dict) -> CompiledPredicate:
    """Voter has at least one voting event carrying every key of ``event``."""
    return CompiledPredicate(
        f"{VOTING_EVENTS_COLUMN} @> {PLACEHOLDER}::jsonb", (json.dumps([event]),)
    )


def _range(column: str, low, high) -> CompiledPredicate:
    if low is None:
        return CompiledPredicate(f"{column} <= {PLACEHOLDER}", (high,))
    if high is None:
        return CompiledPredicate(f"{column} >= {PLACEHOLDER}", (low,))
    return CompiledPredicate(f"{column} BETWEEN {PLACEHOLDER} AND {PLACEHOLDER}", (low, high))


def _render_criterion(criterion: FilterCriterion) -> list[CompiledPredicate]:
    if not isinstance(criterion.field, AllowedField):
        raise ConfigurationError(f"Criterion field is not allow-listed: {criterion.field!r}")

    allowed = criterion.field
    if criterion.operator is Operator.RANGE:
        low, high = criterion.value
        return [_range(allowed.column, low, high)]
    if allowed.match_kind is MatchKind.OVERLAPS:
        # One array literal, one placeholder per element
        values = criterion.scalar_values
        array = ", ".join(PLACEHOLDER for _ in values)
        return [CompiledPredicate(f"{allowed.column} && ARRAY[{array}]::int[]", values)]
    return [_comparison(allowed, value) for value in criterion.scalar_values]


def _or_group(comparisons: list[CompiledPredicate]) -> CompiledPredicate:
    if len(comparisons) == 1:
        return comparisons[0]
    params: tuple = ()
    for c in comparisons:
        params += c.parameters
    return CompiledPredicate("(" + " OR ".join(c.clause_text for c in comparisons) + ")", params)


def build_area_predicate(scope: Optional[AreaScope]) -> CompiledPredicate:
    """
    County / district / zipcode comparison for an area scope.

    A state-wide scope (area value ALL) constrains nothing.
    """
    if scope is None or scope.is_statewide:
        return EMPTY_PREDICATE

    if isinstance(scope, CountyScope):
        predicate = _comparison(AllowedField.COUNTY_NAME, scope.county)
        if scope.sub_area is not None:
            predicate = predicate.and_(
                _comparison(scope.sub_area.sub_area_type.field, scope.sub_area.value)
            )
        return predicate
    if isinstance(scope, DistrictScope):
        return _comparison(scope.district_type.field, scope.district)
    if isinstance(scope, ZipCodeScope):
        return _comparison(AllowedField.RESIDENCE_ZIPCODE, scope.zipcode)

    raise ConfigurationError(f"Unsupported area scope: {scope!r}")


def compile_filter_spec(spec: FilterSpec) -> CompiledPredicate:
    """
    Compile a FilterSpec into a CompiledPredicate.

    Example:
        county_name IN (FULTON, COBB) and gender = F compiles to
        ``(UPPER(county_name) = UPPER(%s) OR UPPER(county_name) = UPPER(%s))
        AND UPPER(gender) = UPPER(%s)`` with ('COBB', 'FULTON', 'F').
    """
    groups: dict[AllowedField, list[CompiledPredicate]] = {}
    for criterion in spec.criteria:
        groups.setdefault(criterion.field, []).extend(_render_criterion(criterion))

    predicate = EMPTY_PREDICATE
    for comparisons in groups.values():
        predicate = predicate.and_(_or_group(comparisons))

    geography = spec.geography
    if isinstance(geography, BoundingBox):
        predicate = predicate.and_(build_geometry_predicate(geography))
    elif geography is not None:
        predicate = predicate.and_(build_area_predicate(geography))

    return predicate


def build_voted_predicate(election_date: date) -> CompiledPredicate:
    """Voter has a voting event on ``election_date`` (jsonb containment)."""
    return _contains_event({"election_date": election_date.isoformat()})


def build_same_address_predicate(voter: VoterRecord) -> CompiledPredicate:
    """
    Other voters at exactly the same residence address.

    Address components are matched null-aware: a NULL component on the
    voter only matches NULL on the other side.
    """
    predicate = EMPTY_PREDICATE
    for column in ADDRESS_COLUMNS:
        value = getattr(voter, column.value)
        if value is None:
            predicate = predicate.and_(CompiledPredicate(f"{column.value} IS NULL"))
        else:
            predicate = predicate.and_(
                CompiledPredicate(f"{column.value} = {PLACEHOLDER}", (value,))
            )
    return predicate.and_(
        CompiledPredicate(
            f"{VoterColumn.REGISTRATION_NUMBER.value} <> {PLACEHOLDER}",
            (voter.voter_registration_number,),
        )
    )
