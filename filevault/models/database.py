# filevault/models/database.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


def utcnow() -> datetime:
    # SQLite drops tzinfo, so timestamps are kept as naive UTC throughout
    return datetime.now(timezone.utc).replace(tzinfo=None)


class CollectionRecord:
    """Columns shared by every record kept in a collection table."""

    # Index of the record within its collection; loads are ordered by it
    position = Column(Integer, nullable=False, default=0)


def make_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Requests are served from a thread pool
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
