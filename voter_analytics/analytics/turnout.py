"""
Turnout analysis service.

Turns a turnout request body into per-geo-unit turnout rows (which also
give the overall summary), per-dimension turnout reports, an optional
chart series and, on request, census enrichment of each geo unit.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from ..config import get_config
from ..filters.compiler import build_area_predicate, build_voted_predicate
from ..filters.normalizer import normalize_turnout_request
from ..logger import get_logger
from ..models.requests import Dimension, TurnoutRequest
from ..models.results import TurnoutAnalysisResult, TurnoutReport, TurnoutSummary
from .census import CensusProvider, StoreCensusProvider
from .engine import AggregationEngine

logger = get_logger(__name__)

NOTE_SUCCESS = "Data successfully processed."
NOTE_NO_DATA = "No data found for the given criteria."


class TurnoutAnalysisService:
    """
    Usage:
        service = TurnoutAnalysisService(engine)
        result = service.analyze({
            "geography": {"areaType": "County", "areaValue": "FULTON"},
            "electionDate": "2020-11-03",
            "reportDataPoints": ["AgeRange"],
            "includeCensusData": False,
        })
    """

    def __init__(
        self,
        engine: AggregationEngine,
        census_provider: Optional[CensusProvider] = None,
    ):
        self.engine = engine
        self._census_provider = census_provider

    @property
    def census_provider(self) -> CensusProvider:
        if self._census_provider is None:
            self._census_provider = StoreCensusProvider(
                self.engine.store,
                census_table=get_config().db.qualified_census_table,
                voter_table=self.engine.voter_table,
            )
        return self._census_provider

    def analyze(self, body: Any) -> TurnoutAnalysisResult:
        """
        Run a turnout analysis.

        Raises:
            ValidationError: on a malformed request body
            QueryExecutionError: if a store call fails
        """
        request = normalize_turnout_request(body)
        return self.run(request)

    def run(self, request: TurnoutRequest) -> TurnoutAnalysisResult:
        predicate = build_area_predicate(request.geography)
        voted = build_voted_predicate(request.election_date)
        logger.info(
            f"Turnout analysis: {request.geography.to_dict()} on "
            f"{request.election_date.isoformat()}"
        )

        geo_units = self.engine.geo_unit_breakdown(predicate, request.geography, voted)
        summary = TurnoutSummary(geo_units.total_voters, geo_units.voted_count)

        reports: dict[Dimension, TurnoutReport] = {}
        for dimension in request.report_data_points:
            reports[dimension] = self.engine.grouped_breakdown(
                predicate, dimension, voted, election_year=request.election_year
            )

        chart = None
        if request.chart_data_point is not None:
            chart_report = reports.get(request.chart_data_point)
            if chart_report is None:
                chart_report = self.engine.grouped_breakdown(
                    predicate, request.chart_data_point, voted,
                    election_year=request.election_year,
                )
            chart = chart_report.to_chart_series("turnout_pct")

        if request.include_census_data:
            self.engine.attach_census(geo_units, request.geography, self.census_provider)

        metadata = {
            "requestParameters": request.to_dict(),
            "generatedAt": datetime.now(timezone.utc).isoformat(),
            "notes": NOTE_SUCCESS if summary.total_voters > 0 else NOTE_NO_DATA,
        }
        return TurnoutAnalysisResult(
            summary=summary,
            metadata=metadata,
            reports=list(reports.values()),
            chart=chart,
            chart_dimension=request.chart_data_point,
            geo_units=geo_units,
        )
