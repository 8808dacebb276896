"""
Typed turnout-analysis request.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Optional

from .filters import AllowedField, AreaScope


class Dimension(Enum):
    """Demographic dimension a turnout report is broken down by."""
    RACE = "Race"
    GENDER = "Gender"
    AGE_RANGE = "AgeRange"

    @property
    def field(self) -> Optional[AllowedField]:
        """Grouping column; AgeRange is derived from birth_year instead."""
        return {
            Dimension.RACE: AllowedField.RACE,
            Dimension.GENDER: AllowedField.GENDER,
            Dimension.AGE_RANGE: None,
        }[self]


@dataclass(frozen=True)
class TurnoutRequest:
    geography: AreaScope
    election_date: date
    report_data_points: tuple[Dimension, ...] = ()
    chart_data_point: Optional[Dimension] = None
    include_census_data: bool = False

    @property
    def election_year(self) -> int:
        return self.election_date.year

    def to_dict(self) -> dict[str, Any]:
        return {
            "geography": self.geography.to_dict(),
            "electionDate": self.election_date.isoformat(),
            "reportDataPoints": [d.value for d in self.report_data_points],
            "chartDataPoint": self.chart_data_point.value if self.chart_data_point else None,
            "includeCensusData": self.include_census_data,
        }
