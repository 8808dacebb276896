"""
Data models for the voter analytics engine.

Filter models describe what to query; result models are request-scoped
and serialize to the camelCase JSON contract.
"""

from .filters import (
    ALL_AREAS,
    EMPTY_PREDICATE,
    AllowedField,
    AreaScope,
    AreaType,
    BoundingBox,
    CompiledPredicate,
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
from .voter import VoterColumn, VoterRecord
from .requests import Dimension, TurnoutRequest
from .results import (
    ChartPoint,
    FieldValues,
    GeoUnitReport,
    GeoUnitRow,
    LookupResult,
    ParticipationScoreResult,
    ScalarResult,
    TurnoutAnalysisResult,
    TurnoutReport,
    TurnoutRow,
    TurnoutSummary,
    ValueCount,
    VoterPage,
    VoterSummary,
)

__all__ = [
    # Filter models
    "ALL_AREAS",
    "EMPTY_PREDICATE",
    "AllowedField",
    "AreaScope",
    "AreaType",
    "BoundingBox",
    "CompiledPredicate",
    "CountyScope",
    "DistrictScope",
    "DistrictType",
    "FilterCriterion",
    "FilterSpec",
    "GeographyScope",
    "MatchKind",
    "Operator",
    "SubArea",
    "SubAreaType",
    "ZipCodeScope",

    # Voter models
    "VoterColumn",
    "VoterRecord",

    # Requests
    "Dimension",
    "TurnoutRequest",

    # Results
    "ChartPoint",
    "FieldValues",
    "GeoUnitReport",
    "GeoUnitRow",
    "LookupResult",
    "ParticipationScoreResult",
    "ScalarResult",
    "TurnoutAnalysisResult",
    "TurnoutReport",
    "TurnoutRow",
    "TurnoutSummary",
    "ValueCount",
    "VoterPage",
    "VoterSummary",
]
