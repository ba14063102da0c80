import logging
import time
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from office_hours.core import config


logger = logging.getLogger(__name__)

engine = create_engine(
    config.DATABASE_URL,
    echo=config.DATABASE_ECHO,
    pool_pre_ping=True,
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_indexes_checked = False

INDEX_STATEMENTS = {
    'availability': [
        'CREATE INDEX IF NOT EXISTS idx_availability_booked_start ON availability(is_booked, start_time)',
        'CREATE INDEX IF NOT EXISTS idx_availability_professor_open '
        'ON availability(professor_id, is_booked, start_time)',
    ],
    'appointments': [
        'CREATE INDEX IF NOT EXISTS idx_appointments_student ON appointments(student_id)',
        'CREATE INDEX IF NOT EXISTS idx_appointments_professor ON appointments(professor_id)',
    ],
}


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def wait_for_database(
    retries: int | None = None,
    backoff_seconds: float | None = None,
) -> None:
    """Block until the database answers a trivial query.

    Retries on ``OperationalError`` with exponential backoff and re-raises the
    last error once ``retries`` attempts are used up.
    """
    attempts = retries if retries is not None else config.DB_CONNECT_RETRIES
    delay = backoff_seconds if backoff_seconds is not None else config.DB_CONNECT_BACKOFF_SECONDS

    for attempt in range(1, attempts + 1):
        try:
            with engine.connect() as connection:
                connection.execute(text('SELECT 1'))
            return
        except OperationalError:
            if attempt == attempts:
                logger.error('Database unreachable after %s attempts.', attempts)
                raise
            logger.warning(
                'Database connection attempt %s/%s failed, retrying in %.1fs.',
                attempt,
                attempts,
                delay,
            )
            time.sleep(delay)
            delay *= 2


def check_database_health() -> bool:
    try:
        with engine.connect() as connection:
            connection.execute(text('SELECT 1'))
    except SQLAlchemyError:
        logger.exception('Database health check failed.')
        return False
    return True


def ensure_indexes() -> None:
    global _indexes_checked

    if _indexes_checked:
        return

    with _schema_lock:
        if _indexes_checked:
            return

        existing_tables = set(inspect(engine).get_table_names())

        with engine.begin() as connection:
            for table_name, statements in INDEX_STATEMENTS.items():
                if table_name not in existing_tables:
                    continue
                for statement in statements:
                    connection.execute(text(statement))

        _indexes_checked = True
