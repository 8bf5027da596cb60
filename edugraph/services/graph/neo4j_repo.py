import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol

from neo4j import GraphDatabase
from neo4j.exceptions import ServiceUnavailable, SessionExpired

from edugraph.config.settings import get_settings
from edugraph.core.correlation import get_correlation_id
from edugraph.core.logging import logger
from edugraph.services.graph.cypher import describe


RETRYABLE_ERRORS = (ServiceUnavailable, SessionExpired)


class GraphTransaction(Protocol):
    def run(self, query: str, params: Dict | None = None) -> List[Dict]: ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...


class GraphStore(Protocol):
    supports_transactions: bool

    def read(self, query: str, params: Dict | None = None) -> List[Dict]: ...
    def write(self, query: str, params: Dict | None = None) -> List[Dict]: ...
    def transaction(self): ...


def _op_name(query: str) -> str:
    info = describe(query)
    return info.op if info else "adhoc"


class Neo4jTransaction:
    def __init__(self, tx):
        self._tx = tx
        self.committed = False
        self.rolled_back = False

    @property
    def open(self) -> bool:
        return not (self.committed or self.rolled_back)

    def run(self, query: str, params: Dict | None = None) -> List[Dict]:
        logger.debug("neo4j_tx_run", op=_op_name(query), correlation_id=get_correlation_id() or "")
        res = self._tx.run(query, params or {})
        return [r.data() for r in res]

    def commit(self) -> None:
        self._tx.commit()
        self.committed = True

    def rollback(self) -> None:
        if not self.open:
            return
        self._tx.rollback()
        self.rolled_back = True


class Neo4jRepo:
    def __init__(self, uri: Optional[str] = None, user: Optional[str] = None, password: Optional[str] = None,
                 database: Optional[str] = None, max_retries: Optional[int] = None, backoff_sec: Optional[float] = None,
                 explicit_transactions: Optional[bool] = None, driver=None):
        settings = get_settings()
        self.uri = uri or settings.neo4j_uri
        self.user = user or settings.neo4j_user
        self.password = password or settings.neo4j_password.get_secret_value()
        self.database = database or settings.neo4j_database
        self.max_retries = max_retries if max_retries is not None else settings.neo4j_max_retries
        self.backoff_sec = backoff_sec if backoff_sec is not None else settings.neo4j_backoff_sec
        self.supports_transactions = (
            explicit_transactions if explicit_transactions is not None else settings.neo4j_explicit_tx
        )
        if driver is not None:
            self.driver = driver
        else:
            if not self.uri or not self.user or not self.password:
                raise RuntimeError('Missing Neo4j connection environment variables')
            self.driver = GraphDatabase.driver(self.uri, auth=(self.user, self.password))

    def close(self):
        self.driver.close()

    def _retry(self, fn: Callable[[Any], Any]) -> Any:
        attempt = 0
        while True:
            try:
                with self.driver.session(database=self.database) as session:
                    return fn(session)
            except RETRYABLE_ERRORS as e:
                attempt += 1
                if attempt >= self.max_retries:
                    raise
                logger.warning("neo4j_retry", attempt=attempt, error=type(e).__name__)
                time.sleep(self.backoff_sec * attempt)

    def write(self, query: str, params: Dict | None = None) -> List[Dict]:
        def _fn(session):
            logger.info("neo4j_write", op=_op_name(query), correlation_id=get_correlation_id() or "")
            return session.execute_write(lambda tx: [r.data() for r in tx.run(query, params or {})])
        return self._retry(_fn)

    def read(self, query: str, params: Dict | None = None) -> List[Dict]:
        def _fn(session):
            logger.info("neo4j_read", op=_op_name(query), correlation_id=get_correlation_id() or "")
            return session.execute_read(lambda tx: [r.data() for r in tx.run(query, params or {})])
        return self._retry(_fn)

    @contextmanager
    def transaction(self) -> Iterator[Neo4jTransaction]:
        """Explicit transaction; rolled back unless committed, session always closed."""
        session = self.driver.session(database=self.database)
        try:
            handle = Neo4jTransaction(session.begin_transaction())
            try:
                yield handle
            finally:
                if handle.open:
                    try:
                        handle.rollback()
                    except Exception as e:
                        logger.error("neo4j_rollback_failed", error=type(e).__name__)
        finally:
            session.close()

    def verify(self) -> bool:
        try:
            self.driver.verify_connectivity()
            return True
        except RETRYABLE_ERRORS:
            return False
