# storefront/database.py
from fastapi import Request
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

from storefront.core.config import get_settings

settings = get_settings()

# ---------------------------------------------------------
# Durable storage connection
#
# Local development uses a SQLite file. Production points DATABASE_URL
# at the Supabase Postgres pooler:
#
# - sslmode=require   : enforce SSL when running in the cloud
# - pool_size=1       : keep only 1 connection to the Supabase pooler
# - max_overflow=0    : do not open extra connections beyond the pool
# - pool_pre_ping=True: validate connections before using them
# ---------------------------------------------------------


def _build_engine(db_url: str):
    if db_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(db_url, echo=False, **kwargs)

    if db_url.startswith("postgres://"):
        db_url = db_url.replace("postgres://", "postgresql://", 1)

    # Append sslmode=require if it is not already present
    if "sslmode=" not in db_url:
        if "?" in db_url:
            db_url = db_url + "&sslmode=require"
        else:
            db_url = db_url + "?sslmode=require"

    return create_engine(
        db_url,
        echo=False,        # set to True if you want to debug SQL queries
        pool_pre_ping=True,
        pool_size=1,
        max_overflow=0,
    )


engine = _build_engine(settings.DATABASE_URL)


def create_db_and_tables(bind=None) -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    SQLModel.metadata.create_all(bind or engine)


def get_session(request: Request):
    """
    FastAPI dependency that yields a SQLModel Session bound to the
    app's engine (app.state.engine, see main.create_app).

    Usage:

        from fastapi import Depends

        @router.get("/example")
        def example_endpoint(session: Session = Depends(get_session)):
            ...
    """
    with Session(request.app.state.engine) as session:
        yield session
