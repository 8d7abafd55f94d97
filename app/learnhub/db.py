from __future__ import annotations

import re
from contextlib import contextmanager
from collections.abc import Generator

from flask import Flask, g
from sqlalchemy import create_engine, event
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

# SQLite: "UNIQUE constraint failed: skill_paths.slug"
_SQLITE_UNIQUE_RE = re.compile(r"UNIQUE constraint failed: ([\w.,\s]+)")
# Postgres: 'duplicate key value violates unique constraint "..." DETAIL: Key (slug)=(x) already exists.'
_PG_UNIQUE_KEY_RE = re.compile(r"Key \(([^)]*)\)=")
_PG_UNIQUE_VIOLATION = "23505"


def init_db(app: Flask) -> None:
    db_url = app.config["DATABASE_URL"]
    is_postgres = db_url.startswith("postgres")
    engine_kwargs: dict[str, object] = {
        "future": True,
        "pool_pre_ping": True,
    }
    if is_postgres:
        engine_kwargs.update(
            {
                "pool_recycle": 1800,
                "pool_size": 5,
                "max_overflow": 10,
                "pool_timeout": 30,
            }
        )
    engine = create_engine(db_url, **engine_kwargs)
    if app.config.get("ENV") != "production":
        @event.listens_for(engine, "checkout")
        def _receive_checkout(dbapi_connection, connection_record, connection_proxy):  # type: ignore[no-redef]
            app.logger.debug("DB connection checkout from pool")
    app.extensions["sqlalchemy_engine"] = engine
    app.extensions["sqlalchemy_sessionmaker"] = sessionmaker(
        bind=engine,
        class_=Session,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


def db_session(app: Flask | None = None) -> Session:
    """
    Request-scoped session. Use inside request handlers.
    """
    if hasattr(g, "db_session") and g.db_session is not None:
        return g.db_session
    if app is None:
        from flask import current_app

        app = current_app
    sm = app.extensions["sqlalchemy_sessionmaker"]
    g.db_session = sm()  # type: ignore[assignment]
    return g.db_session


def teardown_db_session(_exc: BaseException | None) -> None:
    s: Session | None = getattr(g, "db_session", None)
    if s is not None:
        if _exc is not None:
            s.rollback()
        s.close()
        g.db_session = None


@contextmanager
def session_scope(app: Flask) -> Generator[Session, None, None]:
    """
    Non-request helper for scripts and tests: yields a session and commits/rolls back.
    """
    sm = app.extensions["sqlalchemy_sessionmaker"]
    s: Session = sm()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()


def unique_violation_fields(exc: IntegrityError) -> list[str] | None:
    """
    Column names behind a unique-constraint violation, or None when the
    IntegrityError is something else (NOT NULL, foreign key, ...).

    An empty list means "unique violation, columns unknown".
    """
    orig = getattr(exc, "orig", None)
    text = str(orig if orig is not None else exc)

    m = _SQLITE_UNIQUE_RE.search(text)
    if m:
        cols = [c.strip() for c in m.group(1).split(",") if c.strip()]
        return [c.rsplit(".", 1)[-1] for c in cols]

    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode == _PG_UNIQUE_VIOLATION or "duplicate key value" in text:
        m = _PG_UNIQUE_KEY_RE.search(text)
        if m:
            return [c.strip() for c in m.group(1).split(",") if c.strip()]
        return []
    return None
