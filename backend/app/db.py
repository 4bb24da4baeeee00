from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# SQLAlchemy Base class for models to inherit
Base = declarative_base()


def make_engine(database_url: str):
    """Create an engine; in-memory SQLite is shared across threads via one connection."""
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(
        database_url,
        pool_pre_ping=True,   # helps avoid stale connections
    )


def make_session_factory(engine):
    """Factory that creates DB sessions bound to `engine`."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine) -> None:
    # Import models so their tables are registered on Base.metadata
    from app.models import run, run_track  # noqa: F401

    Base.metadata.create_all(bind=engine)
