import pytest

from edugraph.config.settings import get_settings
from edugraph.events.publisher import RecordingPublisher
from edugraph.services.graph.writer import AggregateWriter
from fakes import FakeGraphStore


@pytest.fixture(autouse=True)
def test_env(monkeypatch):
    monkeypatch.setenv('APP_ENV', 'dev')
    monkeypatch.setenv('NEO4J_URI', 'bolt://localhost:7687')
    monkeypatch.setenv('NEO4J_USER', 'neo4j')
    monkeypatch.setenv('NEO4J_PASSWORD', 'test')
    monkeypatch.setenv('NEO4J_EXPLICIT_TX', 'true')
    monkeypatch.setenv('EVENTS_ENABLED', 'false')
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(params=[True, False], ids=["tx", "compensating"])
def store(request):
    return FakeGraphStore(supports_transactions=request.param)


@pytest.fixture
def tx_store():
    return FakeGraphStore(supports_transactions=True)


@pytest.fixture
def seq_store():
    return FakeGraphStore(supports_transactions=False)


@pytest.fixture
def events():
    return RecordingPublisher()


@pytest.fixture
def writer(store, events):
    return AggregateWriter(store, publish=events)
