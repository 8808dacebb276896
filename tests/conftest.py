import pytest

from voter_analytics.analytics.engine import AggregationEngine
from voter_analytics.config import reset_config
from voter_analytics.persistence.repository import VoterStore

VOTER_TABLE = "public.voters"


class FakeVoterStore(VoterStore):
    """
    Records every (statement, params) pair and answers through ``responder``.

    responder(statement, params) -> list of row dicts; it may raise to
    simulate a store failure.
    """

    def __init__(self, responder=None):
        self.responder = responder or (lambda statement, params: [])
        self.calls = []
        self.closed = False

    def fetch_all(self, statement, params=()):
        params = tuple(params)
        self.calls.append((statement, params))
        return self.responder(statement, params)

    def close(self):
        self.closed = True

    @property
    def statements(self):
        return [statement for statement, _ in self.calls]


@pytest.fixture(autouse=True)
def fresh_config():
    reset_config()
    yield
    reset_config()


@pytest.fixture
def store():
    return FakeVoterStore()


@pytest.fixture
def engine(store):
    return AggregationEngine(store, voter_table=VOTER_TABLE)
