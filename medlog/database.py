import os

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# ----------------------------
# Setup
# ----------------------------
DATABASE_URL = os.getenv("MEDLOG_DATABASE_URL", "sqlite:///./medlog.db")

Base = declarative_base()


def make_engine(url: str = DATABASE_URL):
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        # in-memory databases vanish per connection unless the pool pins one
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url)


def make_session_factory(url: str = DATABASE_URL):
    from . import models  # noqa: F401  registers the tables on Base

    engine = make_engine(url)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
