"""
Voter summary counts.

Counts the voters inside a filter scope per value of each summary field
(status, status reason, city, zip, districts, race, gender), concurrently.
A field whose query fails is reported in VoterSummary.failed and answers
an empty list.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date, datetime, timezone
from typing import Mapping, Optional

from ..config import get_config
from ..constants import SUMMARY_LIMIT, SUMMARY_SECTIONS
from ..exceptions import QUERY_FAILED_MESSAGE, ValidationError, VoterAnalyticsError
from ..filters.compiler import compile_filter_spec
from ..filters.normalizer import RawValue, normalize
from ..logger import get_logger
from ..models.results import ValueCount, VoterSummary
from .engine import AggregationEngine

logger = get_logger(__name__)

SECTION_NAMES = tuple(s.name for s in SUMMARY_SECTIONS)


class VoterSummaryService:
    """
    Usage:
        service = VoterSummaryService(engine)
        summary = service.summarize({"county_name": "FULTON"}, section="demographics")
    """

    def __init__(self, engine: AggregationEngine, max_workers: Optional[int] = None):
        self.engine = engine
        self.max_workers = max_workers or get_config().lookup.max_workers

    def summarize(
        self,
        params: Mapping[str, RawValue],
        section: Optional[str] = None,
        as_of: Optional[date] = None,
    ) -> VoterSummary:
        """
        Per-value voter counts for the summary fields inside a filter scope.

        Args:
            params: Filter parameters, as accepted by normalize()
            section: Only count this section's fields; the others stay empty
            as_of: Reference date for age filters

        Raises:
            ValidationError: on an unknown section or malformed parameters
        """
        if section is not None and section not in SECTION_NAMES:
            raise ValidationError(
                f"Unknown summary section: {section}",
                field_name="section",
                field_value=section,
                expected=", ".join(SECTION_NAMES),
            )
        predicate = compile_filter_spec(normalize(params, as_of=as_of))

        sections: dict[str, dict[str, list[ValueCount]]] = {
            s.name: {f.column: [] for f in s.fields} for s in SUMMARY_SECTIONS
        }
        selected = [
            (s.name, f) for s in SUMMARY_SECTIONS
            if section is None or s.name == section
            for f in s.fields
        ]
        failed: dict[str, str] = {}

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_field = {
                executor.submit(self.engine.value_counts, predicate, f, SUMMARY_LIMIT): (name, f)
                for name, f in selected
            }

            for future in as_completed(future_to_field):
                name, allowed = future_to_field[future]
                try:
                    sections[name][allowed.column] = future.result()
                except VoterAnalyticsError as e:
                    logger.warning(f"Summary counts failed for {allowed.column}: {e}")
                    failed[allowed.column] = e.public_message
                except Exception as e:
                    logger.error(
                        f"Unexpected summary error for {allowed.column}: {type(e).__name__}: {e}"
                    )
                    failed[allowed.column] = QUERY_FAILED_MESSAGE

        logger.info(f"Summary counted {len(selected) - len(failed)} fields, {len(failed)} failed")
        return VoterSummary(
            sections=sections,
            failed=failed,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
