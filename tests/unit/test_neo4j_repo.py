from unittest.mock import MagicMock

import pytest
from neo4j.exceptions import ServiceUnavailable

from edugraph.schemas.graph import NodeKind
from edugraph.services.graph import cypher
from edugraph.services.graph.neo4j_repo import Neo4jRepo


class _Record:
    def __init__(self, data):
        self._data = data

    def data(self):
        return self._data


def _driver(session):
    driver = MagicMock()
    driver.session.return_value.__enter__.return_value = session
    driver.session.return_value.__exit__.return_value = False
    return driver


def test_write_runs_in_managed_transaction():
    tx = MagicMock()
    tx.run.return_value = [_Record({"id": "q1"})]
    session = MagicMock()
    session.execute_write.side_effect = lambda fn: fn(tx)
    repo = Neo4jRepo(driver=_driver(session), backoff_sec=0)
    rows = repo.write(cypher.create_node(NodeKind.QUESTION), {"props": {"id": "q1"}})
    assert rows == [{"id": "q1"}]
    tx.run.assert_called_once_with(cypher.create_node(NodeKind.QUESTION), {"props": {"id": "q1"}})


def test_read_retries_connection_errors():
    session = MagicMock()
    session.execute_read.side_effect = [ServiceUnavailable("down"), [{"id": "c1"}]]
    repo = Neo4jRepo(driver=_driver(session), max_retries=3, backoff_sec=0)
    assert repo.read(cypher.find_ids(NodeKind.CONCEPT), {"ids": ["c1"]}) == [{"id": "c1"}]
    assert session.execute_read.call_count == 2


def test_read_gives_up_after_max_retries():
    session = MagicMock()
    session.execute_read.side_effect = ServiceUnavailable("down")
    repo = Neo4jRepo(driver=_driver(session), max_retries=2, backoff_sec=0)
    with pytest.raises(ServiceUnavailable):
        repo.read(cypher.list_nodes(NodeKind.CONCEPT))
    assert session.execute_read.call_count == 2


def test_other_errors_are_not_retried():
    session = MagicMock()
    session.execute_write.side_effect = ValueError("bad")
    repo = Neo4jRepo(driver=_driver(session), max_retries=3, backoff_sec=0)
    with pytest.raises(ValueError):
        repo.write(cypher.merge_node(NodeKind.USER), {"id": "u1"})
    assert session.execute_write.call_count == 1


def test_transaction_rolls_back_and_closes_when_not_committed():
    session = MagicMock()
    driver = MagicMock()
    driver.session.return_value = session
    repo = Neo4jRepo(driver=driver)
    with pytest.raises(RuntimeError):
        with repo.transaction() as tx:
            raise RuntimeError("boom")
    session.begin_transaction.return_value.rollback.assert_called_once()
    session.close.assert_called_once()
    assert tx.rolled_back


def test_transaction_commit():
    session = MagicMock()
    driver = MagicMock()
    driver.session.return_value = session
    repo = Neo4jRepo(driver=driver)
    with repo.transaction() as tx:
        tx.run(cypher.merge_node(NodeKind.USER), {"id": "u1"})
        tx.commit()
    neo_tx = session.begin_transaction.return_value
    neo_tx.commit.assert_called_once()
    neo_tx.rollback.assert_not_called()
    session.close.assert_called_once()


def test_supports_transactions_follows_settings(monkeypatch):
    from edugraph.config.settings import get_settings

    monkeypatch.setenv("NEO4J_EXPLICIT_TX", "false")
    get_settings.cache_clear()
    assert Neo4jRepo(driver=MagicMock()).supports_transactions is False
    assert Neo4jRepo(driver=MagicMock(), explicit_transactions=True).supports_transactions is True


def test_verify_reports_unreachable_server():
    driver = MagicMock()
    repo = Neo4jRepo(driver=driver)
    assert repo.verify() is True
    driver.verify_connectivity.side_effect = ServiceUnavailable("down")
    assert repo.verify() is False
