from __future__ import annotations

import typing as t

from flask import Flask
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, scoped_session, sessionmaker


Base = declarative_base()

_engine: Engine | None = None
SessionLocal: scoped_session = scoped_session(
    sessionmaker(autocommit=False, autoflush=False)
)


def get_engine() -> Engine:
    """
    Return the global SQLAlchemy engine.

    This expects that ``init_db(app)`` has been called during application
    startup to configure the engine from Flask config.
    """
    if _engine is None:  # type: ignore[truthy-function]
        raise RuntimeError("Database engine is not initialized. Call init_db(app) first.")
    return t.cast(Engine, _engine)


def engine_options(database_uri: str, timeout: float, pool_size: int) -> dict[str, t.Any]:
    """
    Build ``create_engine`` keyword arguments that bound every store call.

    SQLite only understands a lock wait timeout; server databases also get a
    connect timeout, a per-statement timeout and a bounded pool checkout.
    """
    backend = make_url(database_uri).get_backend_name()
    if backend == "sqlite":
        return {"connect_args": {"timeout": timeout}}

    options: dict[str, t.Any] = {
        "pool_size": pool_size,
        "pool_timeout": timeout,
        "pool_pre_ping": True,
    }
    if backend == "postgresql":
        options["connect_args"] = {
            "connect_timeout": max(1, int(timeout)),
            "options": f"-c statement_timeout={int(timeout * 1000)}",
        }
    return options


def init_db(app: Flask) -> Engine:
    """
    Initialize the SQLAlchemy engine and session factory for the Flask app.

    Reads the database URL from ``app.config['SQLALCHEMY_DATABASE_URI']``.
    When ``CREATE_SCHEMA`` is set the tables are created directly, which is
    how tests and throwaway SQLite databases skip Alembic.
    """
    global _engine

    database_uri = app.config.get("SQLALCHEMY_DATABASE_URI")
    if not database_uri:
        raise RuntimeError(
            "SQLALCHEMY_DATABASE_URI is not configured on the Flask app."
        )

    if _engine is not None:
        dispose_db()

    _engine = create_engine(
        database_uri,
        future=app.config.get("SQLALCHEMY_FUTURE", True),
        echo=app.config.get("SQLALCHEMY_ECHO", False),
        **engine_options(
            database_uri,
            timeout=app.config.get("STORE_TIMEOUT_SECONDS", 10.0),
            pool_size=app.config.get("DB_POOL_SIZE", 10),
        ),
    )
    SessionLocal.configure(bind=_engine)

    if app.config.get("CREATE_SCHEMA", False):
        create_schema()

    @app.teardown_appcontext
    def remove_session(_exc: BaseException | None) -> None:  # type: ignore[unused-variable]
        """Remove the scoped session at the end of the request."""

        SessionLocal.remove()

    return _engine


def create_schema() -> None:
    """Create all tables on the configured engine."""
    # Import models so that Base.metadata is populated.
    from vanish.domain import models as _models  # noqa: F401

    Base.metadata.create_all(get_engine())


def dispose_db() -> None:
    """Close pooled connections and forget the global engine."""
    global _engine

    SessionLocal.remove()
    if _engine is not None:
        _engine.dispose()
        _engine = None
