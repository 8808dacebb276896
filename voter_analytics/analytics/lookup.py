"""
Field-value lookup.

Enumerates the distinct values of the lookup fields concurrently. A field
whose lookup fails is reported in LookupResult.failed; the other fields
are still returned.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Optional, Sequence

from ..config import get_config
from ..constants import LOOKUP_FIELDS, LookupField
from ..exceptions import QUERY_FAILED_MESSAGE, ValidationError, VoterAnalyticsError
from ..logger import get_logger
from ..models.results import FieldValues, LookupResult
from .engine import AggregationEngine

logger = get_logger(__name__)

CATEGORIES = tuple(sorted({f.category for f in LOOKUP_FIELDS}))


class FieldLookupService:
    def __init__(self, engine: AggregationEngine, max_workers: Optional[int] = None):
        self.engine = engine
        self.max_workers = max_workers or get_config().lookup.max_workers

    def _select(
        self,
        fields: Optional[Sequence[str]],
        category: Optional[str],
    ) -> list[LookupField]:
        selected = list(LOOKUP_FIELDS)
        if category is not None:
            if category not in CATEGORIES:
                raise ValidationError(
                    f"Unknown category: {category}",
                    field_name="category",
                    field_value=category,
                    expected=", ".join(CATEGORIES),
                )
            selected = [f for f in selected if f.category == category]
        if fields:
            known = {f.field.column for f in LOOKUP_FIELDS}
            unknown = sorted(set(fields) - known)
            if unknown:
                raise ValidationError(
                    f"Unknown lookup field: {unknown[0]}",
                    code="UNKNOWN_FILTER_FIELD",
                    field_name=unknown[0],
                )
            wanted = set(fields)
            selected = [f for f in selected if f.field.column in wanted]
        return selected

    def _fetch_field(self, lookup_field: LookupField) -> FieldValues:
        allowed = lookup_field.field
        values = self.engine.distinct_values(allowed, lookup_field.limit)
        return FieldValues(
            field_name=allowed.column,
            category=allowed.category,
            display_name=allowed.display_name,
            values=values,
        )

    def lookup(
        self,
        fields: Optional[Sequence[str]] = None,
        category: Optional[str] = None,
    ) -> LookupResult:
        """
        Distinct values for the selected lookup fields.

        Args:
            fields: Column names to enumerate (default: all lookup fields)
            category: Restrict to one category (address, district, ...)

        Returns:
            LookupResult with successful fields in lookup-table order and
            a message per failed field
        """
        selected = self._select(fields, category)
        by_name: dict[str, FieldValues] = {}
        failed: dict[str, str] = {}

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_field = {
                executor.submit(self._fetch_field, f): f
                for f in selected
            }

            for future in as_completed(future_to_field):
                name = future_to_field[future].field.column
                try:
                    by_name[name] = future.result()
                except VoterAnalyticsError as e:
                    logger.warning(f"Lookup failed for {name}: {e}")
                    failed[name] = e.public_message
                except Exception as e:
                    logger.error(f"Unexpected lookup error for {name}: {type(e).__name__}: {e}")
                    failed[name] = QUERY_FAILED_MESSAGE

        ordered = [by_name[f.field.column] for f in selected if f.field.column in by_name]
        if failed:
            logger.info(f"Lookup returned {len(ordered)} fields, {len(failed)} failed")

        return LookupResult(
            fields=ordered,
            failed=failed,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
