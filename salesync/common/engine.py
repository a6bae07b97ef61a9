"""
Database engine factory for the SQL datastore (PostgreSQL, MariaDB, SQLite).
"""

import logging
import time
import urllib.parse

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

from .config import DatabaseConfig, DatabaseType


logger = logging.getLogger(__name__)

DRIVERS = {
    DatabaseType.MARIADB: 'mysql+pymysql',
    DatabaseType.POSTGRESQL: 'postgresql+psycopg2',
}


def create_engine_from_config(
    db_config: DatabaseConfig,
    retries: int = 3,
    retry_delay: int = 5
) -> Engine:
    """
    Create SQLAlchemy engine from database configuration.

    SQLite files are opened lazily. Server databases get a pooled engine
    that is probed with SELECT 1; only that first connect is retried, since
    the server may still be starting. The sync itself is never retried.

    Args:
        db_config: Database configuration
        retries: Connection attempts before giving up
        retry_delay: Seconds between attempts

    Returns:
        Engine: SQLAlchemy engine

    Raises:
        ValueError: If database type is unsupported
        OperationalError: If the server is still unreachable after retries
    """
    url = _build_connection_string(db_config)

    if db_config.db_type == DatabaseType.SQLITE:
        logger.info(f"Using SQLite datastore at {db_config.database}")
        return create_engine(url)

    engine = create_engine(
        url,
        pool_size=db_config.pool_size,
        max_overflow=db_config.max_overflow,
        pool_timeout=db_config.pool_timeout,
        pool_recycle=db_config.pool_recycle,
        pool_pre_ping=db_config.pool_pre_ping,
    )

    for attempt in range(1, retries + 1):
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            break
        except OperationalError as e:
            logger.error(f"Connect attempt {attempt}/{retries} to {db_config.host} failed: {e}")
            if attempt == retries:
                engine.dispose()
                raise
            time.sleep(retry_delay)

    logger.info(f"Connected to {db_config.db_type.value} {db_config.host}/{db_config.database}")
    return engine


def _build_connection_string(db_config: DatabaseConfig) -> str:
    if db_config.db_type == DatabaseType.SQLITE:
        return f"sqlite:///{db_config.database}"

    driver = DRIVERS.get(db_config.db_type)
    if driver is None:
        raise ValueError(f"Unsupported database type: {db_config.db_type}")

    # Credentials may contain URL-reserved characters
    username = urllib.parse.quote_plus(db_config.username)
    password = urllib.parse.quote_plus(db_config.password)
    return f"{driver}://{username}:{password}@{db_config.host}:{db_config.port}/{db_config.database}"
