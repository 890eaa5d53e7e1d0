from sqlmodel import SQLModel, create_engine, Session
from .config import settings
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import NullPool


def make_engine(database_url: str, echo: bool = False):
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 60},
            poolclass=NullPool,  # one write lock holder at a time
        )
        # WAL + busy timeout so concurrent budget refreshes queue instead of failing
        try:
            with engine.connect() as conn:
                conn.exec_driver_sql("PRAGMA journal_mode=WAL;")
                conn.exec_driver_sql("PRAGMA busy_timeout=60000;")
        except OperationalError:
            # Locked during reloader startup; pragmas get applied on the next boot.
            pass
        return engine
    return create_engine(database_url, echo=echo)


engine = make_engine(settings.database_url, echo=settings.sql_echo)


def get_session():
    with Session(engine) as session:
        yield session


def init_db(bind=None):
    from .models import budget_settings, goal, recurring_transaction, transaction, user  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)
