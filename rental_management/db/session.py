from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from rental_management.db.base import Base


def build_engine(database_url: str) -> Engine:
    return create_engine(
        database_url,
        pool_pre_ping=True,
        future=True,
    )


def build_session_factory(engine: Engine, create_tables: bool = True) -> sessionmaker:
    if create_tables:
        # Registers the table classes on Base.metadata before create_all.
        import rental_management.models.rental_models  # noqa: F401

        Base.metadata.create_all(bind=engine)
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )
