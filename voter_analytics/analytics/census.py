"""
Census enrichment for turnout geo units.

Each geo unit of a turnout scope (county, ZCTA, district, precinct or
municipality) resolves to its own census key. Census tract metrics for
that unit are aggregated and merged into the unit's row; a unit with no
census match yields null metrics, never a dropped row.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional

from ..constants import county_fips
from ..exceptions import QueryExecutionError
from ..logger import get_logger
from ..models.filters import (
    PLACEHOLDER,
    AllowedField,
    BoundingBox,
    DistrictScope,
    DistrictType,
    GeographyScope,
)
from ..models.results import GeoUnitReport
from ..models.voter import VoterColumn
from ..persistence.repository import VoterStore

logger = get_logger(__name__)


# (output name, aggregate expression over the census tract table)
CENSUS_METRICS: tuple[tuple[str, str], ...] = (
    ("tractCount", "COUNT(DISTINCT tract_id)"),
    ("totalPopulation", "SUM(total_population)"),
    ("avgMedianHouseholdIncome", "AVG(median_household_income)"),
    ("avgPctBachelorsOrHigher", "AVG(pct_bachelors_degree_or_higher) / 100.0"),
    ("avgUnemploymentRate", "AVG(unemployment_rate) / 100.0"),
    ("totalCvap", "SUM(cvap_total)"),
    (
        "pctCvapWhiteAlone",
        "CASE WHEN SUM(cvap_total) > 0 THEN SUM(cvap_white_alone)::numeric / SUM(cvap_total) END",
    ),
    (
        "pctCvapBlackAlone",
        "CASE WHEN SUM(cvap_total) > 0 THEN SUM(cvap_black_alone)::numeric / SUM(cvap_total) END",
    ),
    (
        "pctCvapHispanicOrLatino",
        "CASE WHEN SUM(cvap_total) > 0 "
        "THEN SUM(cvap_hispanic_or_latino)::numeric / SUM(cvap_total) END",
    ),
    ("censusDataSourceYear", "MAX(census_data_year)"),
)

CENSUS_METRIC_NAMES = tuple(name for name, _ in CENSUS_METRICS)


class CensusUnit(Enum):
    COUNTY = "county"
    ZCTA = "zcta"
    DISTRICT = "district"
    PRECINCT = "precinct"
    MUNICIPALITY = "municipality"


@dataclass(frozen=True)
class CensusKey:
    """
    Lookup key for one geography unit.

    Precincts and municipalities are only unique within a county, so their
    keys carry the county name.
    """
    unit: CensusUnit
    value: str
    district_type: Optional[DistrictType] = None
    county: Optional[str] = None


def resolve_census_key(scope: Optional[GeographyScope], unit_value: Optional[str]) -> Optional[CensusKey]:
    """
    Resolve one geo unit of a scope to its census key.

    County units -> 5-digit county FIPS, zip codes -> ZCTA, districts ->
    (district type, id), precincts and municipalities -> (county, id).
    Bounding boxes, the Unknown unit and unknown counties have no key.
    """
    if scope is None or isinstance(scope, BoundingBox) or not unit_value:
        return None
    value = unit_value.strip()
    unit_field = scope.unit_field
    if unit_field is AllowedField.COUNTY_NAME:
        fips = county_fips(value)
        return CensusKey(CensusUnit.COUNTY, fips) if fips else None
    if unit_field is AllowedField.RESIDENCE_ZIPCODE:
        return CensusKey(CensusUnit.ZCTA, value[:5])
    if isinstance(scope, DistrictScope):
        return CensusKey(CensusUnit.DISTRICT, value, district_type=scope.district_type)
    if unit_field is AllowedField.COUNTY_PRECINCT:
        return CensusKey(CensusUnit.PRECINCT, value, county=scope.county)
    return CensusKey(CensusUnit.MUNICIPALITY, value, county=scope.county)


class CensusProvider(ABC):
    """Source of census metrics for a geography unit."""

    @abstractmethod
    def lookup(self, key: CensusKey) -> Optional[dict[str, Any]]:
        """Metrics keyed by CENSUS_METRIC_NAMES, or None when the unit has no data."""
        pass


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    return value


class StoreCensusProvider(CensusProvider):
    """
    Aggregates the census tract table for the tracts inside a unit.

    Counties match on the tract-id FIPS prefix; every other unit matches
    the tracts its registered voters live in.
    """

    def __init__(self, store: VoterStore, census_table: str, voter_table: str):
        self.store = store
        self.census_table = census_table
        self.voter_table = voter_table

    def _tract_filter(self, key: CensusKey) -> tuple[str, tuple]:
        if key.unit is CensusUnit.COUNTY:
            return f"tract_id LIKE {PLACEHOLDER}", (f"{key.value}%",)

        if key.unit is CensusUnit.ZCTA:
            comparison = f"{AllowedField.RESIDENCE_ZIPCODE.column} = {PLACEHOLDER}"
            params: tuple = (key.value,)
        elif key.unit is CensusUnit.DISTRICT:
            column = key.district_type.field.column
            comparison = f"UPPER({column}) = UPPER({PLACEHOLDER})"
            params = (key.value,)
        else:
            column = (
                AllowedField.COUNTY_PRECINCT if key.unit is CensusUnit.PRECINCT
                else AllowedField.MUNICIPAL_PRECINCT
            ).column
            comparison = (
                f"UPPER({AllowedField.COUNTY_NAME.column}) = UPPER({PLACEHOLDER}) "
                f"AND UPPER({column}) = UPPER({PLACEHOLDER})"
            )
            params = (key.county, key.value)
        tract = VoterColumn.CENSUS_TRACT.value
        subquery = (
            f"SELECT DISTINCT {tract} FROM {self.voter_table} "
            f"WHERE {comparison} AND {tract} IS NOT NULL"
        )
        return f"tract_id IN ({subquery})", params

    def build_statement(self, key: CensusKey) -> tuple[str, tuple]:
        where, params = self._tract_filter(key)
        columns = ", ".join(f'{expr} AS "{name}"' for name, expr in CENSUS_METRICS)
        return f"SELECT {columns} FROM {self.census_table} WHERE {where}", params

    def lookup(self, key: CensusKey) -> Optional[dict[str, Any]]:
        statement, params = self.build_statement(key)
        try:
            rows = self.store.fetch_all(statement, params)
        except QueryExecutionError as e:
            logger.warning(f"Census lookup failed for {key.unit.value} {key.value}: {e.message}")
            return None
        if not rows or not rows[0].get("tractCount"):
            logger.debug(f"No census tracts for {key.unit.value} {key.value}")
            return None
        return {name: _plain(rows[0].get(name)) for name in CENSUS_METRIC_NAMES}


def empty_census() -> dict[str, Any]:
    return {name: None for name in CENSUS_METRIC_NAMES}


def merge_census(
    report: GeoUnitReport,
    metrics_by_unit: Mapping[Optional[str], Optional[dict[str, Any]]],
) -> GeoUnitReport:
    """Attach each row's unit metrics (or all-null metrics) in place."""
    for row in report.rows:
        metrics = metrics_by_unit.get(row.unit_value)
        row.census = dict(metrics) if metrics else empty_census()
    return report
