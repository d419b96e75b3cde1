import os

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker


def normalize_database_url(value: str) -> str:
    """
    Hosted Postgres URLs usually arrive as `postgres://...` or `postgresql://...`.

    SQLAlchemy defaults `postgresql://` to the psycopg2 driver when no driver is specified.
    This app uses psycopg v3 (`psycopg`), so normalize to `postgresql+psycopg://...`.
    """

    url = value.strip()
    if url.startswith("postgresql+psycopg://"):
        return url
    if url.startswith("postgres://"):
        return "postgresql+psycopg://" + url[len("postgres://") :]
    if url.startswith("postgresql://"):
        return "postgresql+psycopg://" + url[len("postgresql://") :]
    return url


def engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # Sync FastAPI routes run in a threadpool.
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


DATABASE_URL = normalize_database_url(os.environ.get("DATABASE_URL", "sqlite:///./footymarket.db"))

engine = create_engine(DATABASE_URL, **engine_options(DATABASE_URL))
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

class Base(DeclarativeBase):
    pass

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
