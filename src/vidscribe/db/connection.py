"""Engine and session management with SQLAlchemy 2.0."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from vidscribe.db.tables import Base


class Database:
    """Owns the engine and hands out transactional sessions.

    Example:
        ```python
        db = Database("sqlite:///vidscribe.db")
        db.create_all()
        with db.session() as session:
            session.add(row)
        ```
    """

    def __init__(self, url: str, *, echo: bool = False) -> None:
        self.url = url
        self.engine = self._create_engine(url, echo)
        self._session_factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
        )

    @staticmethod
    def _create_engine(url: str, echo: bool) -> Engine:
        kwargs: dict = {"echo": echo}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if url in ("sqlite://", "sqlite:///:memory:"):
                # One shared connection, otherwise every session sees an empty database
                kwargs["poolclass"] = StaticPool

        engine = create_engine(url, **kwargs)

        if url.startswith("sqlite"):
            @event.listens_for(engine, "connect")
            def _enable_foreign_keys(dbapi_connection, _record) -> None:
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

        return engine

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session that commits on success and rolls back on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def scope(self, session: Session | None) -> Iterator[Session]:
        """Join the caller's transaction if one is given, else open a new one."""
        if session is not None:
            yield session
            return
        with self.session() as own:
            yield own

    def dispose(self) -> None:
        self.engine.dispose()
