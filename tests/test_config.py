import pytest

from voter_analytics.config import DBConfig, get_config, is_identifier
from voter_analytics.exceptions import ConfigurationError


def test_defaults(monkeypatch):
    for key in ("DB_SCHEMA", "VOTER_TABLE", "QUERY_CACHE_MAX_ENTRIES", "LOOKUP_MAX_WORKERS"):
        monkeypatch.delenv(key, raising=False)

    config = get_config()

    assert config.db.qualified_voter_table == "public.ga_voter_registration_list"
    assert config.db.qualified_census_table == "public.stg_processed_census_tract_data"
    assert config.cache.max_entries == 512
    assert config.cache.ttl_sec == 3600.0
    assert config.lookup.max_workers == 4


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("QUERY_CACHE_ENABLED", "off")
    monkeypatch.setenv("QUERY_CACHE_TTL_SEC", "90")
    monkeypatch.setenv("DB_POOL_MAX", "not-a-number")

    config = get_config()

    assert config.cache.enabled is False
    assert config.cache.ttl_sec == 90.0
    assert config.db.pool_max == 10


@pytest.mark.parametrize("name, ok", [
    ("ga_voter_registration_list", True),
    ("_staging2", True),
    ("2020_voters", False),
    ("voters;drop", False),
    ("public.voters", False),
    ("", False),
])
def test_is_identifier(name, ok):
    assert is_identifier(name) is ok


def test_invalid_schema_is_a_configuration_error():
    db = DBConfig(schema="bad schema")

    with pytest.raises(ConfigurationError) as exc:
        db.qualified_voter_table

    assert exc.value.details["config_key"] == "DB_SCHEMA"
    assert exc.value.to_response()["error"]["message"] == "Internal server error."
