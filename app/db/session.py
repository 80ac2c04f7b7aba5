from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from app.config.settings import settings


def _engine_options(database_url: str) -> dict:
    """Pool and driver options; SQLite gets a single-file friendly setup."""
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False, "timeout": 30}}
    return {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
        "isolation_level": "READ_COMMITTED",
    }


def enable_sqlite_foreign_keys(target: Engine):
    """SQLite ignores ON DELETE CASCADE unless the pragma is set per connection."""
    if target.dialect.name != "sqlite":
        return

    @event.listens_for(target, "connect")
    def _set_sqlite_pragma(dbapi_connection, _):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_engine(
    str(settings.DATABASE_URL),
    echo=False,
    **_engine_options(str(settings.DATABASE_URL)),
)
enable_sqlite_foreign_keys(engine)

SessionLocal = sessionmaker(bind=engine, class_=Session, expire_on_commit=False)


def get_sync_session():
    """Dependency to get sync database session"""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
