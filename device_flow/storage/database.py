"""
Database connection helpers for device flow storage.

Production deployments create the schema with the alembic migrations under
`migrations/`; `init_db` exists for local SQLite setups and tests.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from device_flow.storage.base import Base


def create_db_engine(database_url: str) -> Engine:
    # Bound parameters would put raw device and user codes into error messages
    kwargs: dict = {'hide_parameters': True}
    if database_url.startswith('sqlite'):
        kwargs['connect_args'] = {'check_same_thread': False}
        if ':memory:' in database_url or database_url == 'sqlite://':
            # One shared connection, otherwise every session sees an empty db
            kwargs['poolclass'] = StaticPool
    return create_engine(database_url, **kwargs)


def create_session_maker(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    # Import the model so its table is registered on Base.metadata
    import device_flow.storage.device_authorization  # noqa: F401

    Base.metadata.create_all(engine)
