"""Schema bootstrap run from the application lifespan."""

import logging
import time
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from storefront.config import settings
from storefront.models import Base  # registers every storefront table on Base.metadata
from storefront.models.database import _normalize_database_url, engine

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent
ALEMBIC_INI = PROJECT_ROOT / "alembic.ini"
ALEMBIC_DIR = PROJECT_ROOT / "alembic"


def _ping() -> None:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


def wait_for_db(retries: int, retry_delay_seconds: int) -> None:
    """Block until the database answers ``SELECT 1`` or ``retries`` is used up."""
    for attempt in range(1, retries + 1):
        try:
            _ping()
        except OperationalError as exc:
            logger.warning("Database not ready (%s/%s): %s", attempt, retries, exc)
            if attempt == retries:
                raise RuntimeError(
                    f"Database is unreachable after {retries} attempts; "
                    "the shop cannot take orders until DATABASE_URL points at a running server."
                ) from exc
            time.sleep(retry_delay_seconds)
        else:
            logger.info("Database ready after %s attempt(s)", attempt)
            return


def _alembic_config() -> Config:
    if not (ALEMBIC_INI.is_file() and ALEMBIC_DIR.is_dir()):
        raise RuntimeError(f"Alembic files not found under {PROJECT_ROOT}")
    config = Config(str(ALEMBIC_INI))
    config.set_main_option("script_location", str(ALEMBIC_DIR))
    config.set_main_option("sqlalchemy.url", _normalize_database_url(settings.DATABASE_URL))
    return config


def run_migrations() -> None:
    command.upgrade(_alembic_config(), "head")


def init_db() -> None:
    """SQLite (tests, local runs) gets ``create_all``; every other backend is migrated."""
    wait_for_db(
        retries=settings.DB_CONNECT_RETRIES,
        retry_delay_seconds=settings.DB_CONNECT_RETRY_DELAY_SECONDS,
    )
    if settings.DATABASE_URL.startswith("sqlite"):
        logger.info("Creating storefront tables with create_all")
        Base.metadata.create_all(bind=engine)
        return
    logger.info("Applying Alembic migrations")
    run_migrations()
