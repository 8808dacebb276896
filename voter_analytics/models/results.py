"""
Result models produced by the aggregation engine and services.

Every model is request-scoped and serializes to the camelCase JSON
contract consumed by the presentation layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from ..constants import score_label
from ..utils.numbers import percentage
from .requests import Dimension
from .voter import VoterRecord


@dataclass(frozen=True)
class ScalarResult:
    """Count or average over a filtered scope. value is None iff nothing matched."""
    value: Optional[float]
    matched_count: int


@dataclass(frozen=True)
class ParticipationScoreResult:
    score: Optional[float]
    voter_count: int

    @property
    def score_label(self) -> Optional[str]:
        return score_label(self.score)

    def to_dict(self) -> dict[str, Any]:
        return {"score": self.score, "voterCount": self.voter_count}


@dataclass
class TurnoutRow:
    dimension_value: str
    total_voters: int
    voted_count: int
    turnout_pct: Optional[float]

    def to_dict(self) -> dict[str, Any]:
        return {
            "dimensionValue": self.dimension_value,
            "totalVoters": self.total_voters,
            "votedCount": self.voted_count,
            "turnoutPct": self.turnout_pct,
        }


@dataclass(frozen=True)
class ChartPoint:
    dimension_value: str
    value: Optional[float]

    def to_dict(self) -> dict[str, Any]:
        return {"dimensionValue": self.dimension_value, "value": self.value}


CHART_COLUMNS = ("turnout_pct", "total_voters", "voted_count")


@dataclass
class TurnoutReport:
    """
    Turnout broken down by one dimension.

    Rows partition the scope: the sum of total_voters over rows equals the
    number of voters matching the predicate.
    """

    breakdown_dimension: Dimension
    rows: list[TurnoutRow] = field(default_factory=list)
    age_bands_version: Optional[int] = None

    @property
    def total_voters(self) -> int:
        return sum(r.total_voters for r in self.rows)

    @property
    def voted_count(self) -> int:
        return sum(r.voted_count for r in self.rows)

    def row(self, dimension_value: str) -> Optional[TurnoutRow]:
        for r in self.rows:
            if r.dimension_value == dimension_value:
                return r
        return None

    def to_chart_series(self, column: str = "turnout_pct") -> list[ChartPoint]:
        if column not in CHART_COLUMNS:
            raise ValueError(f"Unsupported chart column: {column}")
        return [ChartPoint(r.dimension_value, getattr(r, column)) for r in self.rows]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "breakdownDimension": self.breakdown_dimension.value,
            "rows": [r.to_dict() for r in self.rows],
        }
        if self.age_bands_version is not None:
            data["ageBandsVersion"] = self.age_bands_version
        return data


@dataclass
class GeoUnitRow:
    """Turnout for one geo unit (unit_value None for the Unknown row)."""
    unit_value: Optional[str]
    label: str
    total_voters: int
    voted_count: int
    turnout_pct: Optional[float]
    census: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "geoUnit": self.unit_value,
            "geoLabel": self.label,
            "totalVoters": self.total_voters,
            "votedCount": self.voted_count,
            "turnoutPct": self.turnout_pct,
        }
        if self.census is not None:
            data["census"] = self.census
        return data


@dataclass
class GeoUnitReport:
    """
    Turnout per geo unit of a scope: one row per county, district,
    precinct, municipality or zip code.

    Rows partition the scope; voters with no unit value share an Unknown
    row at the end.
    """

    unit_type: str
    rows: list[GeoUnitRow] = field(default_factory=list)

    @property
    def total_voters(self) -> int:
        return sum(r.total_voters for r in self.rows)

    @property
    def voted_count(self) -> int:
        return sum(r.voted_count for r in self.rows)

    def row(self, unit_value: Optional[str]) -> Optional[GeoUnitRow]:
        for r in self.rows:
            if r.unit_value == unit_value:
                return r
        return None

    def to_dict(self) -> dict[str, Any]:
        return {"unitType": self.unit_type, "rows": [r.to_dict() for r in self.rows]}


@dataclass(frozen=True)
class TurnoutSummary:
    total_voters: int
    voted_count: int

    @property
    def turnout_pct(self) -> Optional[float]:
        return percentage(self.voted_count, self.total_voters)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalVoters": self.total_voters,
            "votedCount": self.voted_count,
            "turnoutPct": self.turnout_pct,
        }


@dataclass
class TurnoutAnalysisResult:
    summary: TurnoutSummary
    metadata: dict[str, Any]
    reports: list[TurnoutReport] = field(default_factory=list)
    chart: Optional[list[ChartPoint]] = None
    chart_dimension: Optional[Dimension] = None
    geo_units: Optional[GeoUnitReport] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"summary": self.summary.to_dict()}
        if self.geo_units is not None:
            data["geoUnits"] = self.geo_units.to_dict()
        if self.reports:
            data["report"] = [r.to_dict() for r in self.reports]
        if self.chart is not None:
            data["chart"] = {
                "dimension": self.chart_dimension.value if self.chart_dimension else None,
                "series": [p.to_dict() for p in self.chart],
            }
        data["metadata"] = self.metadata
        return data


@dataclass
class FieldValues:
    field_name: str
    category: str
    display_name: str
    values: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.field_name,
            "displayName": self.display_name,
            "category": self.category,
            "values": self.values,
            "count": len(self.values),
        }


@dataclass
class LookupResult:
    """Enumerated values per field; fields whose lookup failed are in ``failed``."""

    fields: list[FieldValues] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    timestamp: str = ""

    @property
    def succeeded(self) -> list[str]:
        return [f.field_name for f in self.fields]

    def to_dict(self) -> dict[str, Any]:
        return {
            "fields": [f.to_dict() for f in self.fields],
            "failed": dict(self.failed),
            "timestamp": self.timestamp,
        }


@dataclass
class VoterPage:
    voters: list[VoterRecord]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size

    def to_dict(self) -> dict[str, Any]:
        return {
            "voters": [v.to_dict() for v in self.voters],
            "total": self.total,
            "page": self.page,
            "pageSize": self.page_size,
            "totalPages": self.total_pages,
        }


@dataclass(frozen=True)
class ValueCount:
    label: str
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"label": self.label, "count": self.count}


@dataclass
class VoterSummary:
    """
    Voter counts per value of the summary fields, grouped by section.

    Every section is present; a section that was not requested, or a field
    whose query failed, maps to an empty list. Failed fields are also
    named in ``failed``.
    """

    sections: dict[str, dict[str, list[ValueCount]]] = field(default_factory=dict)
    failed: dict[str, str] = field(default_factory=dict)
    timestamp: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            name: {column: [c.to_dict() for c in counts] for column, counts in fields.items()}
            for name, fields in self.sections.items()
        }
        data["failed"] = dict(self.failed)
        data["timestamp"] = self.timestamp
        return data
