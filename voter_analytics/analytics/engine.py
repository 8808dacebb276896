"""
Aggregation engine.

Executes compiled predicates against the voter table in four query
shapes: row list, scalar aggregate, grouped breakdown (by demographic
dimension or by geo unit) and per-value counts. Every statement goes
through _fetch, which consults the query-result cache when one is
configured.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Union

from ..config import get_config
from ..constants import AGE_BANDS, AGE_BANDS_VERSION, UNKNOWN_LABEL
from ..exceptions import ConfigurationError
from ..logger import get_logger
from ..models.filters import (
    PLACEHOLDER,
    TEXT_KINDS,
    AllowedField,
    AreaScope,
    BoundingBox,
    CompiledPredicate,
    MatchKind,
)
from ..models.requests import Dimension
from ..models.results import (
    GeoUnitReport,
    GeoUnitRow,
    ScalarResult,
    TurnoutReport,
    TurnoutRow,
    ValueCount,
)
from ..models.voter import VoterColumn, VoterRecord
from ..persistence.cache import MISS, QueryResultCache
from ..persistence.repository import VoterStore
from ..utils.numbers import percentage, round_half_away, to_int
from ..utils.timing import timed_query
from ..filters.geometry import build_geometry_predicate
from .census import CensusKey, CensusProvider, merge_census, resolve_census_key

logger = get_logger(__name__)


@dataclass(frozen=True)
class Count:
    """COUNT(*) over the scope."""


# Averageable columns -> whether 0 means "no data" and is excluded
AVERAGEABLE = {
    VoterColumn.PARTICIPATION_SCORE: True,
    VoterColumn.BIRTH_YEAR: False,
}


@dataclass(frozen=True)
class Average:
    column: VoterColumn = VoterColumn.PARTICIPATION_SCORE

    def __post_init__(self):
        if self.column not in AVERAGEABLE:
            raise ConfigurationError(f"Column cannot be averaged: {self.column!r}")

    @property
    def ignore_zero(self) -> bool:
        return AVERAGEABLE[self.column]


Metric = Union[Count, Average]


def _columns(columns: Sequence[VoterColumn], what: str) -> str:
    for column in columns:
        if not isinstance(column, VoterColumn):
            raise ConfigurationError(f"{what} column is not a VoterColumn: {column!r}")
    return ", ".join(c.value for c in columns)


def _age_band_case(election_year: int) -> CompiledPredicate:
    """CASE expression bucketing election_year - birth_year into AGE_BANDS."""
    birth_year = VoterColumn.BIRTH_YEAR.value
    age = f"({PLACEHOLDER} - {birth_year})"
    parts = [f"WHEN {birth_year} IS NULL THEN {PLACEHOLDER}"]
    params: list[Any] = [UNKNOWN_LABEL]

    for band in AGE_BANDS:
        if band.min_age is None:
            parts.append(f"WHEN {age} <= {PLACEHOLDER} THEN {PLACEHOLDER}")
            params += [election_year, band.max_age, band.label]
        elif band.max_age is None:
            parts.append(f"WHEN {age} >= {PLACEHOLDER} THEN {PLACEHOLDER}")
            params += [election_year, band.min_age, band.label]
        else:
            parts.append(f"WHEN {age} BETWEEN {PLACEHOLDER} AND {PLACEHOLDER} THEN {PLACEHOLDER}")
            params += [election_year, band.min_age, band.max_age, band.label]

    clause = "CASE " + " ".join(parts) + f" ELSE {PLACEHOLDER} END"
    params.append(UNKNOWN_LABEL)
    return CompiledPredicate(clause, tuple(params))


def _dimension_expression(dimension: Dimension, election_year: Optional[int]) -> CompiledPredicate:
    if dimension is Dimension.AGE_RANGE:
        if election_year is None:
            raise ConfigurationError("AgeRange breakdown needs an election year")
        return _age_band_case(election_year)
    column = dimension.field.column
    # Blank and NULL both fall into the Unknown row
    return CompiledPredicate(f"NULLIF(UPPER(TRIM({column})), '')")


def _unit_sort_key(value: str) -> tuple:
    """Numeric unit ids (districts, zips) sort numerically, names alphabetically."""
    return (0, int(value), value) if value.isdigit() else (1, 0, value)


class AggregationEngine:
    """
    Runs the query shapes against the voter table.

    Usage:
        engine = AggregationEngine(PostgresVoterStore(), QueryResultCache())
        result = engine.scalar_aggregate(predicate, Average())
    """

    def __init__(
        self,
        store: VoterStore,
        cache: Optional[QueryResultCache] = None,
        voter_table: Optional[str] = None,
    ):
        self.store = store
        self.cache = cache
        self.voter_table = voter_table or get_config().db.qualified_voter_table

    def _fetch(self, statement: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Execute through the cache; cache key is (statement, params)."""
        params = tuple(params)
        key = (statement, params)
        if self.cache is not None:
            rows = self.cache.get(key)
            if rows is not MISS:
                logger.debug("Query cache hit")
                return rows

        with timed_query("voter query", logger) as timing:
            rows = self.store.fetch_all(statement, params)
            timing.row_count = len(rows)

        if self.cache is not None:
            self.cache.put(key, rows)
        return rows

    def _from(self, scope: CompiledPredicate) -> str:
        where = scope.where()
        return f"FROM {self.voter_table} {where}" if where else f"FROM {self.voter_table}"

    @staticmethod
    def _scope(predicate: CompiledPredicate, geometry: Optional[BoundingBox]) -> CompiledPredicate:
        if geometry is None:
            return predicate
        return predicate.and_(build_geometry_predicate(geometry))

    def list_rows(
        self,
        predicate: CompiledPredicate,
        projection: Sequence[VoterColumn],
        order_by: Sequence[VoterColumn],
        limit: Optional[int] = None,
        offset: int = 0,
        geometry: Optional[BoundingBox] = None,
    ) -> list[VoterRecord]:
        """
        Projected voter rows in an explicit order.

        Raises:
            ConfigurationError: on an empty projection or ordering
        """
        if not projection:
            raise ConfigurationError("list_rows needs at least one projected column")
        if not order_by:
            raise ConfigurationError("list_rows needs an explicit ordering")

        scope = self._scope(predicate, geometry)
        statement = (
            f"SELECT {_columns(projection, 'Projection')} {self._from(scope)} "
            f"ORDER BY {_columns(order_by, 'Order')}"
        )
        params = list(scope.parameters)
        if limit is not None:
            statement += f" LIMIT {PLACEHOLDER}"
            params.append(int(limit))
        if offset:
            statement += f" OFFSET {PLACEHOLDER}"
            params.append(int(offset))

        return [VoterRecord.from_row(row) for row in self._fetch(statement, params)]

    def scalar_aggregate(
        self,
        predicate: CompiledPredicate,
        metric: Metric,
        geometry: Optional[BoundingBox] = None,
    ) -> ScalarResult:
        """
        Count or average over the scope.

        value is None when nothing matched (or nothing could be averaged);
        averages are rounded half away from zero to one decimal.
        """
        scope = self._scope(predicate, geometry)
        if isinstance(metric, Average):
            column = metric.column.value
            target = f"NULLIF({column}, 0)" if metric.ignore_zero else column
            select = f"COUNT(*) AS matched_count, AVG({target}) AS value"
        elif isinstance(metric, Count):
            select = "COUNT(*) AS matched_count"
        else:
            raise ConfigurationError(f"Unsupported metric: {metric!r}")

        statement = f"SELECT {select} {self._from(scope)}"
        rows = self._fetch(statement, scope.parameters)
        row = rows[0] if rows else {}

        matched = to_int(row.get("matched_count"))
        if matched == 0:
            return ScalarResult(value=None, matched_count=0)
        if isinstance(metric, Count):
            return ScalarResult(value=float(matched), matched_count=matched)
        return ScalarResult(value=round_half_away(row.get("value")), matched_count=matched)

    def grouped_breakdown(
        self,
        predicate: CompiledPredicate,
        dimension: Dimension,
        voted_predicate: CompiledPredicate,
        election_year: Optional[int] = None,
        geometry: Optional[BoundingBox] = None,
    ) -> TurnoutReport:
        """
        Total and voted counts per dimension value.

        Rows partition the scope: null or blank values land in an Unknown
        row, and AgeRange always reports every band, so the row totals add
        up to the scope's Count.
        """
        if voted_predicate.is_empty:
            raise ConfigurationError("grouped_breakdown needs a voted predicate")

        scope = self._scope(predicate, geometry)
        expression = _dimension_expression(dimension, election_year)
        statement = (
            f"SELECT {expression.clause_text} AS dimension_value, "
            f"COUNT(*) AS total_voters, "
            f"COUNT(*) FILTER (WHERE {voted_predicate.clause_text}) AS voted_count "
            f"{self._from(scope)} GROUP BY 1 ORDER BY 1"
        )
        params = expression.parameters + voted_predicate.parameters + scope.parameters

        counts: dict[str, list[int]] = {}
        for row in self._fetch(statement, params):
            label = row.get("dimension_value") or UNKNOWN_LABEL
            bucket = counts.setdefault(str(label), [0, 0])
            bucket[0] += to_int(row.get("total_voters"))
            bucket[1] += to_int(row.get("voted_count"))

        if dimension is Dimension.AGE_RANGE:
            labels = [band.label for band in AGE_BANDS]
            if UNKNOWN_LABEL in counts:
                labels.append(UNKNOWN_LABEL)
        else:
            labels = sorted(label for label in counts if label != UNKNOWN_LABEL)
            if UNKNOWN_LABEL in counts:
                labels.append(UNKNOWN_LABEL)

        rows = []
        for label in labels:
            total, voted = counts.get(label, (0, 0))
            rows.append(TurnoutRow(
                dimension_value=label,
                total_voters=total,
                voted_count=voted,
                turnout_pct=percentage(voted, total),
            ))

        return TurnoutReport(
            breakdown_dimension=dimension,
            rows=rows,
            age_bands_version=AGE_BANDS_VERSION if dimension is Dimension.AGE_RANGE else None,
        )

    def geo_unit_breakdown(
        self,
        predicate: CompiledPredicate,
        scope: AreaScope,
        voted_predicate: CompiledPredicate,
    ) -> GeoUnitReport:
        """
        Total and voted counts per geo unit of ``scope``.

        Units are counties for a County scope (every county when the area
        is ALL), the sub-areas of a county broken down by sub-area type,
        districts, or zip codes. Voters without a unit value share an
        Unknown row, so the rows partition the scope.
        """
        if voted_predicate.is_empty:
            raise ConfigurationError("geo_unit_breakdown needs a voted predicate")

        allowed = scope.unit_field
        unit = f"TRIM(CAST({allowed.column} AS TEXT))"
        if allowed.match_kind is MatchKind.EXACT_CI:
            unit = f"UPPER({unit})"
        statement = (
            f"SELECT NULLIF({unit}, '') AS geo_unit, "
            f"COUNT(*) AS total_voters, "
            f"COUNT(*) FILTER (WHERE {voted_predicate.clause_text}) AS voted_count "
            f"{self._from(predicate)} GROUP BY 1 ORDER BY 1"
        )
        params = voted_predicate.parameters + predicate.parameters

        counts: dict[Optional[str], list[int]] = {}
        for row in self._fetch(statement, params):
            value = row.get("geo_unit")
            bucket = counts.setdefault(str(value) if value is not None else None, [0, 0])
            bucket[0] += to_int(row.get("total_voters"))
            bucket[1] += to_int(row.get("voted_count"))

        units: list[Optional[str]] = sorted((u for u in counts if u is not None), key=_unit_sort_key)
        if None in counts:
            units.append(None)

        rows = []
        for value in units:
            total, voted = counts[value]
            rows.append(GeoUnitRow(
                unit_value=value,
                label=scope.unit_label(value) if value is not None else UNKNOWN_LABEL,
                total_voters=total,
                voted_count=voted,
                turnout_pct=percentage(voted, total),
            ))
        return GeoUnitReport(unit_type=scope.unit_type, rows=rows)

    def distinct_values(self, field: AllowedField, limit: int) -> list[str]:
        """Sorted distinct non-blank values of an allow-listed field."""
        if not isinstance(field, AllowedField):
            raise ConfigurationError(f"Field is not allow-listed: {field!r}")
        column = field.column
        statement = (
            f"SELECT DISTINCT {column} AS value FROM {self.voter_table} "
            f"WHERE {column} IS NOT NULL AND TRIM(CAST({column} AS TEXT)) <> '' "
            f"ORDER BY {column} LIMIT {PLACEHOLDER}"
        )
        return [str(row["value"]) for row in self._fetch(statement, (int(limit),))]

    def value_counts(
        self,
        predicate: CompiledPredicate,
        field: AllowedField,
        limit: int,
    ) -> list[ValueCount]:
        """
        Voter count per value of ``field`` inside the scope, largest first.

        Null and blank values are counted together under Unknown.
        """
        if not isinstance(field, AllowedField) or field.match_kind not in TEXT_KINDS:
            raise ConfigurationError(f"Field cannot be counted by value: {field!r}")
        column = field.column
        statement = (
            f"SELECT NULLIF(TRIM(CAST({column} AS TEXT)), '') AS label, COUNT(*) AS voter_count "
            f"{self._from(predicate)} GROUP BY 1 ORDER BY 2 DESC, 1 LIMIT {PLACEHOLDER}"
        )
        rows = self._fetch(statement, predicate.parameters + (int(limit),))
        return [
            ValueCount(
                label=str(row["label"]) if row.get("label") is not None else UNKNOWN_LABEL,
                count=to_int(row.get("voter_count")),
            )
            for row in rows
        ]

    def attach_census(
        self,
        report: GeoUnitReport,
        scope: Optional[AreaScope],
        provider: CensusProvider,
    ) -> GeoUnitReport:
        """
        Merge each geo unit's census metrics into its row.

        Every distinct census key is looked up once, concurrently.
        """
        keys = {row.unit_value: resolve_census_key(scope, row.unit_value) for row in report.rows}
        wanted = {key for key in keys.values() if key is not None}

        found: dict[CensusKey, Optional[dict[str, Any]]] = {}
        if wanted:
            max_workers = min(get_config().lookup.max_workers, len(wanted))
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                future_to_key = {executor.submit(provider.lookup, key): key for key in wanted}
                for future in as_completed(future_to_key):
                    key = future_to_key[future]
                    found[key] = future.result()
                    if found[key] is None:
                        logger.info(f"No census data for {key.unit.value} {key.value}")

        return merge_census(
            report,
            {unit: found.get(key) if key is not None else None for unit, key in keys.items()},
        )
