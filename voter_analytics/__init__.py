"""
Voter filter and turnout analytics engine for the Georgia voter
registration list (PostgreSQL + PostGIS).
"""

__version__ = "1.0.0"

from .config import Config, get_config, reset_config
from .exceptions import (
    ConfigurationError,
    NotFoundError,
    QueryExecutionError,
    ValidationError,
    VoterAnalyticsError,
)
from .models import CompiledPredicate, FilterSpec
from .filters import compile_filter_spec, normalize, normalize_turnout_request
from .persistence import PostgresVoterStore, QueryResultCache, VoterStore
from .analytics import (
    AggregationEngine,
    FieldLookupService,
    TurnoutAnalysisService,
    VoterQueryService,
)

__all__ = [
    "__version__",
    "Config",
    "get_config",
    "reset_config",
    "ConfigurationError",
    "NotFoundError",
    "QueryExecutionError",
    "ValidationError",
    "VoterAnalyticsError",
    "CompiledPredicate",
    "FilterSpec",
    "compile_filter_spec",
    "normalize",
    "normalize_turnout_request",
    "PostgresVoterStore",
    "QueryResultCache",
    "VoterStore",
    "AggregationEngine",
    "FieldLookupService",
    "TurnoutAnalysisService",
    "VoterQueryService",
]
