import pytest

from conftest import VOTER_TABLE, FakeVoterStore
from voter_analytics.analytics.census import (
    CENSUS_METRIC_NAMES,
    CensusKey,
    CensusProvider,
    CensusUnit,
    StoreCensusProvider,
    resolve_census_key,
)
from voter_analytics.analytics.engine import AggregationEngine, Count
from voter_analytics.analytics.turnout import NOTE_NO_DATA, NOTE_SUCCESS, TurnoutAnalysisService
from voter_analytics.exceptions import QueryExecutionError, ValidationError
from voter_analytics.filters import build_area_predicate
from voter_analytics.models import (
    BoundingBox,
    CountyScope,
    DistrictScope,
    DistrictType,
    SubArea,
    SubAreaType,
    ZipCodeScope,
)

AGE_ROWS = [
    {"dimension_value": "18-24", "total_voters": 120, "voted_count": 60},
    {"dimension_value": "25-34", "total_voters": 300, "voted_count": 190},
    {"dimension_value": "45-54", "total_voters": 250, "voted_count": 200},
    {"dimension_value": "75+", "total_voters": 80, "voted_count": 70},
    {"dimension_value": "Unknown", "total_voters": 15, "voted_count": 3},
]
GENDER_ROWS = [
    {"dimension_value": "F", "total_voters": 400, "voted_count": 300},
    {"dimension_value": "M", "total_voters": 350, "voted_count": 220},
    {"dimension_value": None, "total_voters": 15, "voted_count": 3},
]
COUNTY_ROWS = [
    {"geo_unit": "FULTON", "total_voters": 765, "voted_count": 523},
]
PRECINCT_ROWS = [
    {"geo_unit": None, "total_voters": 15, "voted_count": 3},
    {"geo_unit": "02B", "total_voters": 350, "voted_count": 220},
    {"geo_unit": "01A", "total_voters": 400, "voted_count": 300},
]
COUNTY_TOTAL = 765


def fulton_responder(statement, params):
    if "AS geo_unit" in statement:
        return PRECINCT_ROWS if "county_precinct" in statement else COUNTY_ROWS
    if "GROUP BY" in statement:
        return AGE_ROWS if "CASE WHEN birth_year" in statement else GENDER_ROWS
    if "COUNT(*) AS matched_count" in statement:
        voted = "voting_events @>" in statement
        return [{"matched_count": 473 if voted else COUNTY_TOTAL}]
    return []


class StaticCensus(CensusProvider):
    def __init__(self, metrics):
        self.metrics = metrics
        self.keys = []

    def lookup(self, key):
        self.keys.append(key)
        if callable(self.metrics):
            return self.metrics(key)
        return self.metrics


@pytest.fixture
def fulton_store():
    return FakeVoterStore(fulton_responder)


@pytest.fixture
def service(fulton_store):
    return TurnoutAnalysisService(AggregationEngine(fulton_store, voter_table=VOTER_TABLE))


def census_service(store, census):
    return TurnoutAnalysisService(
        AggregationEngine(store, voter_table=VOTER_TABLE), census_provider=census
    )


def body(**overrides):
    data = {
        "geography": {"areaType": "County", "areaValue": "FULTON"},
        "electionDate": "2020-11-03",
        "reportDataPoints": ["AgeRange"],
        "chartDataPoint": None,
        "includeCensusData": False,
    }
    data.update(overrides)
    return data


PRECINCTS = {"areaType": "County", "areaValue": "FULTON", "subAreaType": "Precinct", "subAreaValue": "ALL"}


@pytest.mark.regression
def test_age_report_partitions_the_county(service, fulton_store):
    result = service.analyze(body())

    (report,) = result.reports
    labels = [r.dimension_value for r in report.rows]
    assert labels == [
        "Under 18", "18-24", "25-34", "35-44", "45-54", "55-64", "65-74", "75+", "Unknown",
    ]
    engine = service.engine
    count = engine.scalar_aggregate(build_area_predicate(CountyScope("FULTON")), Count())
    assert report.total_voters == count.matched_count == COUNTY_TOTAL
    for row in report.rows:
        assert row.turnout_pct is None or 0 <= row.turnout_pct <= 100


def test_turnout_scope_has_no_status_filter(service, fulton_store):
    service.analyze(body())

    statement, params = fulton_store.calls[0]
    assert "status" not in statement
    assert params[-1] == "FULTON"


def test_summary_comes_from_the_geo_units(service, fulton_store):
    result = service.analyze(body())

    assert result.summary.total_voters == COUNTY_TOTAL
    assert result.summary.voted_count == 523
    assert result.summary.turnout_pct == 68.4
    assert len(fulton_store.calls) == 2


def test_summary_without_reports_needs_one_query(service, fulton_store):
    result = service.analyze(body(reportDataPoints=[]))

    assert result.reports == []
    assert result.summary.total_voters == COUNTY_TOTAL
    assert result.summary.voted_count == 523
    assert len(fulton_store.calls) == 1
    assert "report" not in result.to_dict()


def test_single_county_is_one_geo_unit(service):
    result = service.analyze(body())

    data = result.to_dict()["geoUnits"]
    assert data["unitType"] == "County"
    assert data["rows"] == [{
        "geoUnit": "FULTON",
        "geoLabel": "County FULTON",
        "totalVoters": 765,
        "votedCount": 523,
        "turnoutPct": 68.4,
    }]


@pytest.mark.regression
def test_every_precinct_gets_its_own_row(service, fulton_store):
    result = service.analyze(body(geography=PRECINCTS, reportDataPoints=[]))

    statement, params = fulton_store.calls[0]
    assert statement.startswith("SELECT NULLIF(UPPER(TRIM(CAST(county_precinct AS TEXT))), '') AS geo_unit")
    assert "GROUP BY 1" in statement
    assert "WHERE UPPER(county_name) = UPPER(%s)" in statement
    assert params[-1] == "FULTON"

    geo_units = result.geo_units
    assert geo_units.unit_type == "Precinct"
    assert [(r.unit_value, r.label, r.turnout_pct) for r in geo_units.rows] == [
        ("01A", "Precinct 01A (County FULTON)", 75.0),
        ("02B", "Precinct 02B (County FULTON)", 62.9),
        (None, "Unknown", 20.0),
    ]
    assert geo_units.total_voters == result.summary.total_voters == COUNTY_TOTAL


def test_statewide_groups_by_county():
    store = FakeVoterStore(lambda s, p: [
        {"geo_unit": "FULTON", "total_voters": 10, "voted_count": 5},
        {"geo_unit": "COBB", "total_voters": 20, "voted_count": 5},
    ])
    service = TurnoutAnalysisService(AggregationEngine(store, voter_table=VOTER_TABLE))

    result = service.analyze(body(
        geography={"areaType": "County", "areaValue": "ALL"}, reportDataPoints=[],
    ))

    statement, params = store.calls[0]
    assert "CAST(county_name AS TEXT)" in statement
    assert len(params) == 1
    assert [r.unit_value for r in result.geo_units.rows] == ["COBB", "FULTON"]
    assert result.summary.total_voters == 30


def test_statewide_district_groups_by_district():
    store = FakeVoterStore(lambda s, p: [
        {"geo_unit": "10", "total_voters": 10, "voted_count": 5},
        {"geo_unit": "9", "total_voters": 20, "voted_count": 5},
    ])
    service = TurnoutAnalysisService(AggregationEngine(store, voter_table=VOTER_TABLE))

    result = service.analyze(body(
        geography={"areaType": "District", "districtType": "Congressional", "areaValue": "ALL"},
        reportDataPoints=[],
    ))

    assert "CAST(congressional_district AS TEXT)" in store.calls[0][0]
    assert [(r.unit_value, r.label) for r in result.geo_units.rows] == [
        ("9", "District 9"),
        ("10", "District 10"),
    ]


def test_chart_reuses_matching_report(service, fulton_store):
    result = service.analyze(body(chartDataPoint="AgeRange"))

    assert len(fulton_store.calls) == 2
    assert [p.dimension_value for p in result.chart] == [
        r.dimension_value for r in result.reports[0].rows
    ]
    assert result.chart[2].value == 63.3


def test_chart_for_another_dimension_runs_its_own_breakdown(service, fulton_store):
    result = service.analyze(body(chartDataPoint="Gender"))

    assert len(fulton_store.calls) == 3
    data = result.to_dict()
    assert data["chart"]["dimension"] == "Gender"
    assert data["chart"]["series"] == [
        {"dimensionValue": "F", "value": 75.0},
        {"dimensionValue": "M", "value": 62.9},
        {"dimensionValue": "Unknown", "value": 20.0},
    ]
    assert len(data["report"]) == 1


def test_metadata(service):
    result = service.analyze(body())

    metadata = result.to_dict()["metadata"]
    assert metadata["notes"] == NOTE_SUCCESS
    assert metadata["requestParameters"]["electionDate"] == "2020-11-03"
    assert metadata["requestParameters"]["geography"] == {"areaType": "County", "areaValue": "FULTON"}
    assert metadata["generatedAt"]


def test_no_data_note():
    store = FakeVoterStore(lambda s, p: [])
    service = TurnoutAnalysisService(AggregationEngine(store, voter_table=VOTER_TABLE))

    result = service.analyze(body(reportDataPoints=["Race"]))

    assert result.reports[0].rows == []
    assert result.metadata["notes"] == NOTE_NO_DATA
    assert result.summary.turnout_pct is None


@pytest.mark.regression
def test_sub_area_outside_county_never_reaches_the_store(service, fulton_store):
    geography = {
        "areaType": "District",
        "districtType": "Congressional",
        "areaValue": "5",
        "subAreaType": "Precinct",
        "subAreaValue": "01A",
    }

    with pytest.raises(ValidationError) as exc:
        service.analyze(body(geography=geography))

    assert exc.value.code == "INVALID_SUB_AREA"
    assert fulton_store.calls == []


def test_census_is_merged_into_each_geo_unit(fulton_store):
    census = StaticCensus({name: 1 for name in CENSUS_METRIC_NAMES})

    result = census_service(fulton_store, census).analyze(body(includeCensusData=True))

    assert census.keys == [CensusKey(CensusUnit.COUNTY, "13121")]
    (row,) = result.geo_units.rows
    assert row.census == {name: 1 for name in CENSUS_METRIC_NAMES}
    assert "census" in result.to_dict()["geoUnits"]["rows"][0]
    assert "census" not in result.to_dict()["report"][0]["rows"][0]


@pytest.mark.regression
def test_census_is_keyed_per_precinct(fulton_store):
    census = StaticCensus(lambda key: {"tractCount": 2 if key.value == "01A" else 3})

    result = census_service(fulton_store, census).analyze(
        body(geography=PRECINCTS, includeCensusData=True)
    )

    assert set(census.keys) == {
        CensusKey(CensusUnit.PRECINCT, "01A", county="FULTON"),
        CensusKey(CensusUnit.PRECINCT, "02B", county="FULTON"),
    }
    rows = {r.unit_value: r for r in result.geo_units.rows}
    assert rows["01A"].census == {"tractCount": 2}
    assert rows["02B"].census == {"tractCount": 3}
    assert rows[None].census == {name: None for name in CENSUS_METRIC_NAMES}


def test_missing_census_match_keeps_rows_with_null_metrics(fulton_store):
    result = census_service(fulton_store, StaticCensus(None)).analyze(
        body(geography=PRECINCTS, includeCensusData=True)
    )

    rows = result.geo_units.rows
    assert len(rows) == 3
    assert all(row.census == {name: None for name in CENSUS_METRIC_NAMES} for row in rows)


def test_statewide_scope_looks_up_each_county():
    store = FakeVoterStore(lambda s, p: [
        {"geo_unit": "COBB", "total_voters": 20, "voted_count": 5},
        {"geo_unit": "FULTON", "total_voters": 10, "voted_count": 5},
        {"geo_unit": "ATLANTIS", "total_voters": 1, "voted_count": 0},
    ])
    census = StaticCensus({"tractCount": 1})

    census_service(store, census).analyze(body(
        geography={"areaType": "County", "areaValue": "ALL"},
        includeCensusData=True,
        reportDataPoints=[],
    ))

    assert set(census.keys) == {
        CensusKey(CensusUnit.COUNTY, "13067"),
        CensusKey(CensusUnit.COUNTY, "13121"),
    }


def test_census_not_requested_leaves_rows_bare(service):
    result = service.analyze(body())

    assert result.geo_units.rows[0].census is None
    assert "census" not in result.to_dict()["geoUnits"]["rows"][0]


@pytest.mark.parametrize("scope, unit, key", [
    (CountyScope("Fulton"), "FULTON", CensusKey(CensusUnit.COUNTY, "13121")),
    (CountyScope("ALL"), "DEKALB", CensusKey(CensusUnit.COUNTY, "13089")),
    (CountyScope("Atlantis"), "ATLANTIS", None),
    (
        CountyScope("dekalb", SubArea(SubAreaType.PRECINCT, "01A")),
        "01A",
        CensusKey(CensusUnit.PRECINCT, "01A", county="dekalb"),
    ),
    (
        CountyScope("Cobb", breakdown=SubAreaType.MUNICIPALITY),
        "MARIETTA",
        CensusKey(CensusUnit.MUNICIPALITY, "MARIETTA", county="Cobb"),
    ),
    (
        CountyScope("Cobb", breakdown=SubAreaType.ZIP_CODE),
        "30060-1234",
        CensusKey(CensusUnit.ZCTA, "30060"),
    ),
    (ZipCodeScope("30303"), "30303", CensusKey(CensusUnit.ZCTA, "30303")),
    (
        DistrictScope(DistrictType.CONGRESSIONAL, "ALL"),
        "5",
        CensusKey(CensusUnit.DISTRICT, "5", DistrictType.CONGRESSIONAL),
    ),
    (CountyScope("Fulton"), None, None),
    (BoundingBox(-85, 31, -84, 32), "x", None),
    (None, "FULTON", None),
])
def test_resolve_census_key(scope, unit, key):
    assert resolve_census_key(scope, unit) == key


def test_store_census_provider_county_statement():
    store = FakeVoterStore(lambda s, p: [{"tractCount": 204, "totalPopulation": 1066710}])
    provider = StoreCensusProvider(store, "public.census", VOTER_TABLE)

    metrics = provider.lookup(CensusKey(CensusUnit.COUNTY, "13121"))

    statement, params = store.calls[0]
    assert "FROM public.census WHERE tract_id LIKE %s" in statement
    assert params == ("13121%",)
    assert metrics["tractCount"] == 204
    assert metrics["avgMedianHouseholdIncome"] is None
    assert set(metrics) == set(CENSUS_METRIC_NAMES)


def test_store_census_provider_district_uses_voter_tracts():
    store = FakeVoterStore(lambda s, p: [{"tractCount": 0}])
    provider = StoreCensusProvider(store, "public.census", VOTER_TABLE)

    metrics = provider.lookup(CensusKey(CensusUnit.DISTRICT, "55", DistrictType.STATE_HOUSE))

    statement, params = store.calls[0]
    assert (
        f"tract_id IN (SELECT DISTINCT census_tract FROM {VOTER_TABLE} "
        "WHERE UPPER(state_house_district) = UPPER(%s) AND census_tract IS NOT NULL)"
    ) in statement
    assert params == ("55",)
    assert metrics is None


def test_store_census_failure_degrades_to_none():
    def boom(statement, params):
        raise QueryExecutionError("timeout", statement=statement)

    provider = StoreCensusProvider(FakeVoterStore(boom), "public.census", VOTER_TABLE)

    assert provider.lookup(CensusKey(CensusUnit.ZCTA, "30303")) is None


def test_store_census_provider_precinct_is_scoped_to_its_county():
    store = FakeVoterStore(lambda s, p: [{"tractCount": 3}])
    provider = StoreCensusProvider(store, "public.census", VOTER_TABLE)

    provider.lookup(CensusKey(CensusUnit.PRECINCT, "01A", county="FULTON"))

    statement, params = store.calls[0]
    assert (
        "WHERE UPPER(county_name) = UPPER(%s) AND UPPER(county_precinct) = UPPER(%s) "
        "AND census_tract IS NOT NULL"
    ) in statement
    assert params == ("FULTON", "01A")
