import json
from datetime import date

import pytest

from voter_analytics.exceptions import ConfigurationError
from voter_analytics.filters import (
    build_area_predicate,
    build_same_address_predicate,
    build_voted_predicate,
    compile_filter_spec,
    escape_like,
    normalize,
)
from voter_analytics.models import (
    AllowedField,
    CompiledPredicate,
    CountyScope,
    DistrictScope,
    DistrictType,
    FilterCriterion,
    FilterSpec,
    Operator,
    SubAreaType,
    ZipCodeScope,
)
from voter_analytics.models.voter import VoterRecord


def compile_params(params):
    return compile_filter_spec(normalize(params))


def test_empty_spec_compiles_to_empty_predicate():
    predicate = compile_filter_spec(FilterSpec())

    assert predicate == CompiledPredicate("", ())
    assert predicate.where() == ""


def test_case_insensitive_equality():
    predicate = compile_params({"county_name": "fulton"})

    assert predicate.clause_text == "UPPER(county_name) = UPPER(%s)"
    assert predicate.parameters == ("FULTON",)
    assert predicate.where() == "WHERE UPPER(county_name) = UPPER(%s)"


def test_same_field_values_or_together():
    predicate = compile_params({"county_name": "FULTON,COBB"})

    assert predicate.clause_text == (
        "(UPPER(county_name) = UPPER(%s) OR UPPER(county_name) = UPPER(%s))"
    )
    assert predicate.parameters == ("COBB", "FULTON")


def test_different_fields_and_together():
    predicate = compile_params({"gender": "F", "county_name": "COBB"})

    assert predicate.clause_text == (
        "UPPER(county_name) = UPPER(%s) AND UPPER(gender) = UPPER(%s)"
    )
    assert predicate.parameters == ("COBB", "F")


def test_exact_zipcode():
    predicate = compile_params({"residence_zipcode": "30303"})

    assert predicate.clause_text == "residence_zipcode = %s"
    assert predicate.parameters == ("30303",)


def test_fuzzy_match_is_wrapped_and_escaped():
    predicate = compile_params({"residence_street_name": "50%_off"})

    assert predicate.clause_text == "residence_street_name ILIKE %s"
    assert predicate.parameters == ("%50\\%\\_off%",)


def test_escape_like_escapes_backslash_first():
    assert escape_like("a\\b%c_d") == "a\\\\b\\%c\\_d"


def test_multiple_fuzzy_fragments_or_together():
    predicate = compile_params({"residence_city": "Atlanta,Decatur"})

    assert predicate.clause_text == (
        "(residence_city ILIKE %s OR residence_city ILIKE %s)"
    )
    assert predicate.parameters == ("%Atlanta%", "%Decatur%")


def test_blank_value_is_plain_equality():
    predicate = compile_params({"race": "", "residence_city": " "})

    assert predicate.clause_text == "residence_city = %s AND race = %s"
    assert predicate.parameters == ("", "")


def test_score_ranges():
    predicate = compile_params({"scoreRange": "needs_review,participates"})

    assert predicate.clause_text == (
        "(participation_score BETWEEN %s AND %s OR participation_score BETWEEN %s AND %s)"
    )
    assert predicate.parameters == (3.0, 4.9, 5.0, 6.4)


@pytest.mark.regression
def test_blank_repeat_stays_in_the_or_group():
    predicate = compile_params({"county_name": ["FULTON", ""]})

    assert predicate.clause_text == "(county_name = %s OR UPPER(county_name) = UPPER(%s))"
    assert predicate.parameters == ("", "FULTON")


def test_name_prefix_match():
    predicate = compile_params({"lastName": "O_Neil"})

    assert predicate.clause_text == "last_name ILIKE %s"
    assert predicate.parameters == ("O\\_Neil%",)


def test_age_bands_compile_to_birth_year_ranges():
    spec = normalize({"ageRange": "Under 18,25-34"}, as_of=date(2024, 3, 1))

    predicate = compile_filter_spec(spec)

    assert predicate.clause_text == "(birth_year >= %s OR birth_year BETWEEN %s AND %s)"
    assert predicate.parameters == (2007, 1990, 1999)


def test_age_max_compiles_to_lower_birth_year_bound():
    spec = normalize({"ageMax": "30"}, as_of=date(2024, 3, 1))

    predicate = compile_filter_spec(spec)

    assert predicate.clause_text == "birth_year >= %s"
    assert predicate.parameters == (1994,)


def test_voting_event_filters_use_jsonb_containment():
    predicate = compile_params({"electionType": "general,special", "voterEventMethod": "provisional"})

    assert predicate.clause_text == (
        "(voting_events @> %s::jsonb OR voting_events @> %s::jsonb) "
        "AND voting_events @> %s::jsonb"
    )
    assert [json.loads(p) for p in predicate.parameters] == [
        [{"election_type": "GENERAL"}],
        [{"election_type": "SPECIAL"}],
        [{"provisional": "Y"}],
    ]


def test_election_date_filter():
    predicate = compile_params({"electionDate": "2020-11-03"})

    assert predicate.clause_text == "voting_events @> %s::jsonb"
    assert json.loads(predicate.parameters[0]) == [{"election_date": "2020-11-03"}]


def test_election_years_bind_one_placeholder_each():
    predicate = compile_params({"electionYear": "2022,2018,2020"})

    assert predicate.clause_text == "participated_election_years && ARRAY[%s, %s, %s]::int[]"
    assert predicate.parameters == (2018, 2020, 2022)


def test_never_voted_and_not_voted_since():
    assert compile_params({"neverVoted": "true"}).clause_text == "derived_last_vote_date IS NULL"

    predicate = compile_params({"notVotedSinceYear": "2020"})

    assert predicate.clause_text == (
        "(derived_last_vote_date IS NULL OR derived_last_vote_date < %s)"
    )
    assert predicate.parameters == (date(2020, 1, 1),)


def test_placeholder_count_matches_scalar_values():
    spec = normalize({
        "county_name": "FULTON,COBB,DEKALB",
        "gender": "F",
        "residence_city": "Atlanta",
        "scoreRange": "power_voter",
        "registrationNumber": "12345678",
    })
    scalar_count = sum(len(c.scalar_values) for c in spec.criteria)

    predicate = compile_filter_spec(spec)

    assert predicate.placeholder_count == scalar_count == len(predicate.parameters)


def test_compilation_is_deterministic():
    a = compile_params({"county_name": ["FULTON", "COBB"], "gender": "F", "residence_city": "b,a"})
    b = compile_params({"residence_city": ["a", "b", "a"], "gender": "f", "county_name": "cobb,fulton"})

    assert a.clause_text == b.clause_text
    assert a.parameters == b.parameters


@pytest.mark.regression
def test_county_with_zip_sub_area():
    predicate = compile_params({
        "areaType": "County",
        "areaValue": "Fulton",
        "subAreaType": "ZipCode",
        "subAreaValue": "30301",
    })

    assert predicate.clause_text == "UPPER(county_name) = UPPER(%s) AND residence_zipcode = %s"
    assert predicate.parameters == ("Fulton", "30301")


def test_filters_and_area_combine():
    predicate = compile_params({"gender": "M", "areaType": "ZipCode", "areaValue": "30303"})

    assert predicate.clause_text == "UPPER(gender) = UPPER(%s) AND residence_zipcode = %s"
    assert predicate.parameters == ("M", "30303")


@pytest.mark.parametrize("scope, clause, params", [
    (CountyScope("ALL"), "", ()),
    (DistrictScope(DistrictType.CONGRESSIONAL, "all"), "", ()),
    (ZipCodeScope("ALL"), "", ()),
    (DistrictScope(DistrictType.STATE_SENATE, "42"), "UPPER(state_senate_district) = UPPER(%s)", ("42",)),
    (ZipCodeScope("30303"), "residence_zipcode = %s", ("30303",)),
    (CountyScope("Fulton", breakdown=SubAreaType.PRECINCT), "UPPER(county_name) = UPPER(%s)", ("Fulton",)),
])
def test_area_predicates(scope, clause, params):
    predicate = build_area_predicate(scope)

    assert predicate.clause_text == clause
    assert predicate.parameters == params


def test_bbox_appends_geometry_predicate():
    predicate = compile_params({"status": "ACTIVE", "bbox": "-85,31,-84,32"})

    assert predicate.clause_text == (
        "UPPER(status) = UPPER(%s) AND "
        "ST_Intersects(geom, ST_SetSRID(ST_GeomFromGeoJSON(%s), 4326))"
    )
    assert predicate.parameters[0] == "ACTIVE"
    assert json.loads(predicate.parameters[1])["type"] == "Polygon"


def test_criterion_rejects_non_allow_listed_field():
    with pytest.raises(ConfigurationError):
        FilterCriterion("county_name; DROP TABLE voters", Operator.EQ, "x")


def test_criterion_rejects_wrong_value_shape():
    with pytest.raises(ConfigurationError):
        FilterCriterion(AllowedField.COUNTY_NAME, Operator.IN, ())
    with pytest.raises(ConfigurationError):
        FilterCriterion(AllowedField.PARTICIPATION_SCORE, Operator.RANGE, (1.0,))
    with pytest.raises(ConfigurationError):
        FilterCriterion(AllowedField.BIRTH_YEAR, Operator.RANGE, (None, None))


def test_predicate_placeholder_mismatch_is_rejected():
    with pytest.raises(ConfigurationError):
        CompiledPredicate("county_name = %s AND gender = %s", ("FULTON",))


def test_voted_predicate():
    predicate = build_voted_predicate(date(2020, 11, 3))

    assert predicate.clause_text == "voting_events @> %s::jsonb"
    assert json.loads(predicate.parameters[0]) == [{"election_date": "2020-11-03"}]


def test_same_address_predicate_is_null_aware():
    voter = VoterRecord(
        voter_registration_number="12345678",
        residence_street_number="100",
        residence_street_name="PEACHTREE",
        residence_street_type="ST",
        residence_city="ATLANTA",
        residence_zipcode="30303",
    )

    predicate = build_same_address_predicate(voter)

    assert predicate.clause_text == (
        "residence_street_number = %s AND residence_pre_direction IS NULL AND "
        "residence_street_name = %s AND residence_street_type = %s AND "
        "residence_post_direction IS NULL AND residence_apt_unit_number IS NULL AND "
        "residence_city = %s AND residence_zipcode = %s AND "
        "voter_registration_number <> %s"
    )
    assert predicate.parameters == ("100", "PEACHTREE", "ST", "ATLANTA", "30303", "12345678")
