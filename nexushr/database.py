from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def make_engine(database_url: str) -> Engine:
    """
    Engine for the local store.

    SQLite is the normal case (one file per device); the connection is shared
    with the scheduler threads, hence check_same_thread=False. An in-memory
    URL gets a StaticPool so every session sees the same database.
    """
    if database_url.startswith("postgresql"):
        return create_engine(database_url)
    if ":memory:" in database_url:
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(
        database_url, connect_args={"check_same_thread": False}
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine) -> None:
    """
    Registers the local tables and creates the schema.
    Called once when the service container is built.
    """
    # Import models so they are registered with Base.metadata before create_all
    from nexushr.models import local_record, outbox  # noqa: F401
    Base.metadata.create_all(bind=engine)
