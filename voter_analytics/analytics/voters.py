"""
Voter query service: participation score, map statistics, voter lists
and single-voter lookups.
"""

from __future__ import annotations

from typing import Mapping, Optional

from ..exceptions import NotFoundError, ValidationError
from ..filters.compiler import build_same_address_predicate, compile_filter_spec
from ..filters.normalizer import RawValue, normalize
from ..logger import get_logger
from ..models.filters import (
    AllowedField,
    BoundingBox,
    CompiledPredicate,
    FilterCriterion,
    FilterSpec,
    Operator,
)
from ..models.results import ParticipationScoreResult, VoterPage
from ..models.voter import (
    LIST_COLUMNS,
    PROFILE_COLUMNS,
    VoterColumn,
    VoterRecord,
    is_registration_number,
)
from .engine import AggregationEngine, Average, Count

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500

NAME_ORDER = (VoterColumn.LAST_NAME, VoterColumn.FIRST_NAME)
LIST_ORDER = NAME_ORDER + (VoterColumn.REGISTRATION_NUMBER,)


def registration_predicate(registration_number: str) -> CompiledPredicate:
    if not is_registration_number(registration_number):
        raise ValidationError(
            "Registration number must be exactly 8 digits.",
            code="INVALID_REGISTRATION_NUMBER",
            field_name="registrationNumber",
            field_value=registration_number,
            expected="8 digits",
        )
    spec = FilterSpec(criteria=(
        FilterCriterion(AllowedField.VOTER_REGISTRATION_NUMBER, Operator.EQ, registration_number),
    ))
    return compile_filter_spec(spec)


class VoterQueryService:
    """Read-only voter queries on top of the aggregation engine."""

    def __init__(self, engine: AggregationEngine):
        self.engine = engine

    def participation_score(self, params: Mapping[str, RawValue]) -> ParticipationScoreResult:
        """
        Average participation score of the voters matching params.

        With no filters at all this is the average over the whole table.
        A registration-number filter that matches nobody is a NotFoundError
        rather than an empty average.
        """
        spec = normalize(params)
        if spec.is_empty:
            logger.info("Participation score requested without filters; averaging all voters")

        result = self.engine.scalar_aggregate(compile_filter_spec(spec), Average())
        if result.matched_count == 0 and spec.has_field(AllowedField.VOTER_REGISTRATION_NUMBER):
            raise NotFoundError("Voter not found", entity="voter")
        return ParticipationScoreResult(score=result.value, voter_count=result.matched_count)

    def map_stats(self, params: Mapping[str, RawValue]) -> ParticipationScoreResult:
        """Score and voter count inside the map viewport (bbox is required)."""
        spec = normalize(params)
        if not isinstance(spec.geography, BoundingBox):
            raise ValidationError(
                "bbox is required for map statistics.",
                code="INVALID_BBOX",
                field_name="bbox",
                expected="xmin,ymin,xmax,ymax",
            )
        result = self.engine.scalar_aggregate(compile_filter_spec(spec), Average())
        return ParticipationScoreResult(score=result.value, voter_count=result.matched_count)

    def list_voters(
        self,
        params: Mapping[str, RawValue],
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> VoterPage:
        if page < 1:
            raise ValidationError("page must be at least 1.", field_name="page", field_value=page)
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValidationError(
                f"pageSize must be between 1 and {MAX_PAGE_SIZE}.",
                field_name="pageSize",
                field_value=page_size,
            )

        predicate = compile_filter_spec(normalize(params))
        total = self.engine.scalar_aggregate(predicate, Count()).matched_count
        voters: list[VoterRecord] = []
        if total:
            voters = self.engine.list_rows(
                predicate,
                LIST_COLUMNS,
                LIST_ORDER,
                limit=page_size,
                offset=(page - 1) * page_size,
            )
        return VoterPage(voters=voters, total=total, page=page, page_size=page_size)

    def get_voter(self, registration_number: str) -> VoterRecord:
        """
        Full profile of one voter.

        Raises:
            ValidationError: if the number is not 8 digits
            NotFoundError: if no voter has that number
        """
        registration_number = (registration_number or "").strip()
        rows = self.engine.list_rows(
            registration_predicate(registration_number),
            PROFILE_COLUMNS,
            (VoterColumn.REGISTRATION_NUMBER,),
            limit=1,
        )
        if not rows:
            raise NotFoundError("Voter not found", entity="voter", key=registration_number)
        return rows[0]

    def other_voters_at_address(
        self,
        registration_number: str,
        limit: Optional[int] = None,
    ) -> list[VoterRecord]:
        """Voters registered at exactly the same address, excluding this one."""
        voter = self.get_voter(registration_number)
        return self.engine.list_rows(
            build_same_address_predicate(voter),
            LIST_COLUMNS,
            NAME_ORDER,
            limit=limit,
        )
