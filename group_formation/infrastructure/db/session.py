# group_formation/infrastructure/db/session.py
from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from group_formation.config.settings import settings

Base = declarative_base()


def make_engine(url: str, echo: bool = False):
    """
    Build an engine for the given URL.

    SQLite needs cross-thread access because FastAPI runs sync endpoints in a
    threadpool; in-memory SQLite additionally needs a single shared connection.
    """
    kwargs = {"echo": echo, "future": True}
    sqlite = url.startswith("sqlite")
    if sqlite:
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs.update(
            pool_pre_ping=True,      # validates connections
            pool_recycle=300,        # kills idle connections
            pool_size=10,
            max_overflow=20,
        )
    eng = create_engine(url, **kwargs)
    if sqlite:
        _emit_sqlite_begin(eng)
    return eng


def _emit_sqlite_begin(eng):
    """
    pysqlite only sends BEGIN before the first INSERT/UPDATE/DELETE, so the
    SELECTs ahead of it run outside the transaction. Emit BEGIN ourselves
    when SQLAlchemy starts one.
    """

    @event.listens_for(eng, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(eng, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")


def make_session_factory(bind):
    return sessionmaker(
        bind=bind,
        expire_on_commit=False,
        autoflush=False,
    )


engine = make_engine(settings.DATABASE_URL, echo=settings.SQL_ECHO)

SessionLocal = make_session_factory(engine)

