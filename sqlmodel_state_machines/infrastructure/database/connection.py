"""
Database Connection Manager.

This module handles the low-level details of connecting to the database.
It exposes a cached SQLModel engine which is used when a machine has to open
its own Session (the subject is not attached to one and none was passed).
"""

from functools import lru_cache

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from ...config import settings


def enable_sqlite_savepoints(engine: Engine) -> Engine:
    """
    pysqlite does not emit BEGIN itself, which breaks SAVEPOINT handling.
    Take over transaction control so nested transitions can roll back.
    """

    @event.listens_for(engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def build_engine(url: str, echo: bool = False) -> Engine:
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool
        return enable_sqlite_savepoints(create_engine(url, echo=echo, **kwargs))
    return create_engine(url, echo=echo)


# echo=False in production to avoid leaking sensitive data in logs
@lru_cache()
def get_engine() -> Engine:
    return build_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)


def get_session() -> Session:
    # Subjects stay readable after the machine commits and closes its session
    return Session(get_engine(), expire_on_commit=False)


def init_db(engine: Engine | None = None):
    """
    Idempotent initialization.
    Creates tables if they do not exist.
    Useful for local dev or simple deployments.
    """
    SQLModel.metadata.create_all(engine or get_engine())
