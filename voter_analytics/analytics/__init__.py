"""
Aggregation engine and the services built on it.
"""

from .census import (
    CENSUS_METRIC_NAMES,
    CensusKey,
    CensusProvider,
    CensusUnit,
    StoreCensusProvider,
    resolve_census_key,
)
from .engine import AggregationEngine, Average, Count
from .lookup import FieldLookupService
from .summary import VoterSummaryService
from .turnout import TurnoutAnalysisService
from .voters import VoterQueryService

__all__ = [
    "CENSUS_METRIC_NAMES",
    "CensusKey",
    "CensusProvider",
    "CensusUnit",
    "StoreCensusProvider",
    "resolve_census_key",
    "AggregationEngine",
    "Average",
    "Count",
    "FieldLookupService",
    "VoterSummaryService",
    "TurnoutAnalysisService",
    "VoterQueryService",
]
