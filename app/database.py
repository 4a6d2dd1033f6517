from sqlmodel import SQLModel, create_engine, Session
from .config import settings
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import NullPool, StaticPool


def _make_engine(url: str):
    if url.startswith("sqlite"):
        if url in {"sqlite://", "sqlite:///:memory:"}:
            # In-memory databases live on a single shared connection
            return create_engine(
                url,
                echo=settings.sql_echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        engine = create_engine(
            url,
            echo=settings.sql_echo,
            connect_args={"check_same_thread": False, "timeout": 60},
            poolclass=NullPool,  # avoid multiple pooled connections holding write locks
        )
        # Configure SQLite pragmas to reduce locking
        try:
            with engine.connect() as conn:
                conn.exec_driver_sql("PRAGMA journal_mode=WAL;")
                conn.exec_driver_sql("PRAGMA busy_timeout=60000;")
        except OperationalError:
            # If the database is momentarily locked (e.g., during reloader startup), continue without failing.
            pass
        return engine

    return create_engine(url, echo=settings.sql_echo)


engine = _make_engine(settings.database_url)


def get_session():
    with Session(engine) as session:
        yield session


def init_db(bind=None):
    from .models import user, expense, budget, recurring  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)
