from __future__ import annotations

import os
import uuid
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, create_engine

from itinerary_cli.models import Settings

DEFAULT_SETTINGS: dict[str, str] = {
    "timezone": "UTC",
    "plan_limit": "10",
    "day_warning_min": "720",
    "default_duration_min": "60",
}
USER_ID_SETTING = "user_id"
SQLITE_BUSY_TIMEOUT_S = 30.0


# /apps/itinerary-cli/src/itinerary_cli/db.py -> /apps/itinerary-cli
PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_DB_PATH = PROJECT_ROOT / ".data" / "itinerary.sqlite"


def get_db_path() -> Path:
    db_path_env = os.getenv("ITIN_DB_PATH")
    if not db_path_env:
        return DEFAULT_DB_PATH

    candidate = Path(db_path_env).expanduser()
    if candidate.is_absolute():
        return candidate
    return (Path.cwd() / candidate).resolve()


def ensure_db_directory() -> Path:
    db_path = get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


def get_database_url(*, ensure_directory: bool = False) -> str:
    db_path = ensure_db_directory() if ensure_directory else get_db_path()
    return f"sqlite:///{db_path}"


def build_engine(url: str) -> Engine:
    """Create a SQLite engine whose transactions start with BEGIN IMMEDIATE.

    pysqlite's own transaction handling is switched off so that SQLAlchemy's
    ``begin`` takes the database write lock up front. Every transaction is
    therefore serializable and a second writer waits (up to the busy timeout)
    instead of observing intermediate state.
    """
    engine = create_engine(
        url,
        connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT_S},
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def get_engine(*, ensure_directory: bool = False) -> Engine:
    return build_engine(get_database_url(ensure_directory=ensure_directory))


def apply_migrations() -> None:
    ensure_db_directory()

    alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", get_database_url(ensure_directory=True))
    alembic_cfg.attributes["configure_logger"] = False
    command.upgrade(alembic_cfg, "head")


def seed_defaults() -> None:
    engine = get_engine(ensure_directory=True)

    with Session(engine) as session:
        for key, value in DEFAULT_SETTINGS.items():
            existing = session.get(Settings, key)
            if existing is None:
                session.add(Settings(key=key, value=value))

        # Local principal for a single-user install; ITIN_USER_ID overrides it.
        if session.get(Settings, USER_ID_SETTING) is None:
            session.add(Settings(key=USER_ID_SETTING, value=str(uuid.uuid4())))

        session.commit()


def initialize_database() -> Path:
    apply_migrations()
    seed_defaults()
    return get_db_path()
