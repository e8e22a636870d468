# database.py

import threading

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from config import DATABASE_URL

# Base class for our database models
Base = declarative_base()

# One lock per database, shared by every store that writes to it
db_lock = threading.RLock()


def create_session_factory(database_url: str = DATABASE_URL):
    """
    Creates the engine, makes sure all tables exist and returns a session factory.
    The default URL is an in-memory SQLite database, so nothing outlives the process.
    """
    import models  # noqa: F401  (registers the tables on Base.metadata)

    engine_kwargs = {}
    if database_url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # Every session must see the same in-memory database
            engine_kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, **engine_kwargs)
    Base.metadata.create_all(bind=engine)

    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
