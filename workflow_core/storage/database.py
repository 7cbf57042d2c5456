"""Database engine and session factory construction."""

from typing import Optional

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..core.logging import get_logger

logger = get_logger(__name__)

# Base class for all database models
Base = declarative_base()


def create_database_engine(database_url: str = "sqlite:///./workflows.db",
                           echo: bool = False,
                           connect_args: Optional[dict] = None) -> Engine:
    """Create a database engine; the caller owns it and disposes of it."""
    if connect_args is None:
        if database_url.startswith("sqlite"):
            connect_args = {"check_same_thread": False}
        else:
            connect_args = {}

    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args=connect_args,
            poolclass=StaticPool,
            echo=echo
        )
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args=connect_args
        )

    logger.info(f"Created database engine for {engine.url.render_as_string(hide_password=True)}")
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to the engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_schema(engine: Engine) -> None:
    """Create all database tables."""
    from . import models  # noqa: F401  registers the tables on Base

    Base.metadata.create_all(bind=engine)


def drop_schema(engine: Engine) -> None:
    """Drop all database tables."""
    Base.metadata.drop_all(bind=engine)
