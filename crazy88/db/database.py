"""
Database engine, session scope and keyed upsert
"""
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Sequence

from sqlalchemy import create_engine, event
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from crazy88.db.tables import Base


logger = logging.getLogger(__name__)


class Database:
    """
    SQLAlchemy engine plus session factory

    Usage:
        db = Database("sqlite:///crazy88.db")
        with db.session() as s:
            ...
    """

    def __init__(self, url: str, echo: bool = False) -> None:
        kwargs: Dict[str, Any] = {"echo": echo}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool

        self.url = url
        self._engine: Engine = create_engine(url, **kwargs)
        if self._engine.dialect.name == "sqlite":
            event.listen(self._engine, "connect", _enable_sqlite_foreign_keys)

        self._sessionmaker = sessionmaker(
            bind=self._engine,
            expire_on_commit=False,
            autoflush=False,
        )

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def dialect(self) -> str:
        return self._engine.dialect.name

    def create_schema(self) -> None:
        Base.metadata.create_all(self._engine)
        logger.info(f"✅ Schema ready on {self._engine.url.render_as_string(hide_password=True)}")

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Session that commits on success and rolls back on any exception"""
        session: Session = self._sessionmaker()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self._engine.dispose()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def upsert(session: Session, model, values: Dict[str, Any], key: Sequence[str]) -> Any:
    """
    INSERT ... ON CONFLICT (key) DO UPDATE, returning the row id

    Every column in `values` outside the key is overwritten, so repeated calls with the
    same key fully replace the row instead of merging into it.

    Args:
        session: Open session
        model: Mapped table class with an `id` column
        values: Complete target row
        key: Columns of the unique constraint to resolve conflicts on

    Returns:
        Primary key of the inserted or updated row
    """
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(model).values(**values)
    elif dialect == "sqlite":
        stmt = sqlite.insert(model).values(**values)
    else:
        raise NotImplementedError(f"upsert not supported on {dialect}")

    update_cols = {name: stmt.excluded[name] for name in values if name not in key}
    stmt = stmt.on_conflict_do_update(index_elements=list(key), set_=update_cols)
    stmt = stmt.returning(model.id)
    return session.execute(stmt).scalar_one()
