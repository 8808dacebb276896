"""
Fixed reference tables: score ranges, age bands, lookup fields and
Georgia county FIPS codes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .models.filters import AllowedField

UNKNOWN_LABEL = "Unknown"

GA_STATE_FIPS = "13"


@dataclass(frozen=True)
class ScoreRange:
    key: str
    label: str
    min: float
    max: float

    def contains(self, score: float) -> bool:
        return self.min <= score <= self.max


SCORE_RANGES: tuple[ScoreRange, ...] = (
    ScoreRange("needs_attention", "Needs Attention", 1.0, 2.9),
    ScoreRange("needs_review", "Needs Review", 3.0, 4.9),
    ScoreRange("participates", "Participates", 5.0, 6.4),
    ScoreRange("power_voter", "Power Voter", 6.5, 9.9),
    ScoreRange("super_power_voter", "Super Power Voter", 10.0, 10.0),
)

SCORE_RANGES_BY_KEY = {r.key: r for r in SCORE_RANGES}

MIN_SCORE = 1.0
MAX_SCORE = 10.0


def score_label(score: Optional[float]) -> Optional[str]:
    """Label of the score range containing score, if any."""
    if score is None:
        return None
    for score_range in SCORE_RANGES:
        if score_range.contains(score):
            return score_range.label
    return None


@dataclass(frozen=True)
class AgeBand:
    """Inclusive age band; a missing bound is open-ended."""
    label: str
    min_age: Optional[int]
    max_age: Optional[int]


# Bump the version whenever band boundaries change; reports carry it.
AGE_BANDS_VERSION = 2

AGE_BANDS: tuple[AgeBand, ...] = (
    AgeBand("Under 18", None, 17),
    AgeBand("18-24", 18, 24),
    AgeBand("25-34", 25, 34),
    AgeBand("35-44", 35, 44),
    AgeBand("45-54", 45, 54),
    AgeBand("55-64", 55, 64),
    AgeBand("65-74", 65, 74),
    AgeBand("75+", 75, None),
)

AGE_BANDS_BY_LABEL = {band.label: band for band in AGE_BANDS}

MIN_AGE = 0
MAX_AGE = 130

MIN_ELECTION_YEAR = 1900
MAX_ELECTION_YEAR = 2100

# Voting event flags set to "Y" on a history record
VOTE_METHODS = ("absentee", "provisional", "supplemental")


@dataclass(frozen=True)
class LookupField:
    field: AllowedField
    limit: int

    @property
    def category(self) -> str:
        return self.field.category


LOOKUP_FIELDS: tuple[LookupField, ...] = (
    LookupField(AllowedField.RESIDENCE_CITY, 1000),
    LookupField(AllowedField.RESIDENCE_ZIPCODE, 1000),
    LookupField(AllowedField.COUNTY_NAME, 500),
    LookupField(AllowedField.CONGRESSIONAL_DISTRICT, 50),
    LookupField(AllowedField.STATE_SENATE_DISTRICT, 100),
    LookupField(AllowedField.STATE_HOUSE_DISTRICT, 200),
    LookupField(AllowedField.GENDER, 10),
    LookupField(AllowedField.RACE, 50),
    LookupField(AllowedField.STATUS, 20),
    LookupField(AllowedField.LAST_PARTY_VOTED, 50),
)


@dataclass(frozen=True)
class SummarySection:
    name: str
    fields: tuple[AllowedField, ...]


# Per-value voter counts reported by the summary, grouped for display
SUMMARY_SECTIONS: tuple[SummarySection, ...] = (
    SummarySection("voting_info", (
        AllowedField.STATUS,
        AllowedField.STATUS_REASON,
        AllowedField.RESIDENCE_CITY,
        AllowedField.RESIDENCE_ZIPCODE,
    )),
    SummarySection("districts", (
        AllowedField.COUNTY_NAME,
        AllowedField.CONGRESSIONAL_DISTRICT,
        AllowedField.STATE_SENATE_DISTRICT,
        AllowedField.STATE_HOUSE_DISTRICT,
    )),
    SummarySection("demographics", (
        AllowedField.RACE,
        AllowedField.GENDER,
    )),
)

SUMMARY_LIMIT = 500


# 3-digit county FIPS codes within Georgia (state 13)
GA_COUNTY_FIPS: dict[str, str] = {
    name: f"{code:03d}"
    for code, name in (
        (1, "Appling"), (3, "Atkinson"), (5, "Bacon"), (7, "Baker"), (9, "Baldwin"),
        (11, "Banks"), (13, "Barrow"), (15, "Bartow"), (17, "Ben Hill"), (19, "Berrien"),
        (21, "Bibb"), (23, "Bleckley"), (25, "Brantley"), (27, "Brooks"), (29, "Bryan"),
        (31, "Bulloch"), (33, "Burke"), (35, "Butts"), (37, "Calhoun"), (39, "Camden"),
        (43, "Candler"), (45, "Carroll"), (47, "Catoosa"), (49, "Charlton"), (51, "Chatham"),
        (53, "Chattahoochee"), (55, "Chattooga"), (57, "Cherokee"), (59, "Clarke"), (61, "Clay"),
        (63, "Clayton"), (65, "Clinch"), (67, "Cobb"), (69, "Coffee"), (71, "Colquitt"),
        (73, "Columbia"), (75, "Cook"), (77, "Coweta"), (79, "Crawford"), (81, "Crisp"),
        (83, "Dade"), (85, "Dawson"), (87, "Decatur"), (89, "DeKalb"), (91, "Dodge"),
        (93, "Dooly"), (95, "Dougherty"), (97, "Douglas"), (99, "Early"), (101, "Echols"),
        (103, "Effingham"), (105, "Elbert"), (107, "Emanuel"), (109, "Evans"), (111, "Fannin"),
        (113, "Fayette"), (115, "Floyd"), (117, "Forsyth"), (119, "Franklin"), (121, "Fulton"),
        (123, "Gilmer"), (125, "Glascock"), (127, "Glynn"), (129, "Gordon"), (131, "Grady"),
        (133, "Greene"), (135, "Gwinnett"), (137, "Habersham"), (139, "Hall"), (141, "Hancock"),
        (143, "Haralson"), (145, "Harris"), (147, "Hart"), (149, "Heard"), (151, "Henry"),
        (153, "Houston"), (155, "Irwin"), (157, "Jackson"), (159, "Jasper"), (161, "Jeff Davis"),
        (163, "Jefferson"), (165, "Jenkins"), (167, "Johnson"), (169, "Jones"), (171, "Lamar"),
        (173, "Lanier"), (175, "Laurens"), (177, "Lee"), (179, "Liberty"), (181, "Lincoln"),
        (183, "Long"), (185, "Lowndes"), (187, "Lumpkin"), (189, "McDuffie"), (191, "McIntosh"),
        (193, "Macon"), (195, "Madison"), (197, "Marion"), (199, "Meriwether"), (201, "Miller"),
        (205, "Mitchell"), (207, "Monroe"), (209, "Montgomery"), (211, "Morgan"), (213, "Murray"),
        (215, "Muscogee"), (217, "Newton"), (219, "Oconee"), (221, "Oglethorpe"), (223, "Paulding"),
        (225, "Peach"), (227, "Pickens"), (229, "Pierce"), (231, "Pike"), (233, "Polk"),
        (235, "Pulaski"), (237, "Putnam"), (239, "Quitman"), (241, "Rabun"), (243, "Randolph"),
        (245, "Richmond"), (247, "Rockdale"), (249, "Schley"), (251, "Screven"), (253, "Seminole"),
        (255, "Spalding"), (257, "Stephens"), (259, "Stewart"), (261, "Sumter"), (263, "Talbot"),
        (265, "Taliaferro"), (267, "Tattnall"), (269, "Taylor"), (271, "Telfair"), (273, "Terrell"),
        (275, "Thomas"), (277, "Tift"), (279, "Toombs"), (281, "Towns"), (283, "Treutlen"),
        (285, "Troup"), (287, "Turner"), (289, "Twiggs"), (291, "Union"), (293, "Upson"),
        (295, "Walker"), (297, "Walton"), (299, "Ware"), (301, "Warren"), (303, "Washington"),
        (305, "Wayne"), (307, "Webster"), (309, "Wheeler"), (311, "White"), (313, "Whitfield"),
        (315, "Wilcox"), (317, "Wilkes"), (319, "Wilkinson"), (321, "Worth"),
    )
}


def county_fips(county_name: str) -> Optional[str]:
    """5-digit state+county FIPS for a Georgia county name (case-insensitive)."""
    wanted = county_name.strip().upper()
    for name, code in GA_COUNTY_FIPS.items():
        if name.upper() == wanted:
            return GA_STATE_FIPS + code
    return None
