from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, sessionmaker, DeclarativeBase
from app.settings import settings


def _connect_args(url: str) -> dict:
    # workers and the API share one file; waits instead of "database is locked"
    if url.startswith("sqlite"):
        return {"check_same_thread": False, "timeout": 30}
    return {}


engine = create_engine(
    settings.database_url, echo=False, future=True,
    connect_args=_connect_args(settings.database_url))
SessionLocal = sessionmaker(
    bind=engine, autoflush=False, autocommit=False, future=True)


class Base(DeclarativeBase):
    pass


def lock_for_write(session: Session, *tables) -> None:
    """Serialize a read-then-write section across processes.

    SQLite takes the database write lock up front (``BEGIN IMMEDIATE``);
    PostgreSQL locks the given tables until the transaction ends.
    """
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        session.execute(text("BEGIN IMMEDIATE"))
    elif dialect == "postgresql":
        for table in tables:
            session.execute(text(f"LOCK TABLE {table.__tablename__} IN SHARE ROW EXCLUSIVE MODE"))


def init_db():
    from infra.db.models import KeyValueRecord, QueueTask, RateLimitHit
    Base.metadata.create_all(bind=engine)
