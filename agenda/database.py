from threading import Lock

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from agenda.core import config


APPOINTMENT_OVERLAP_CONSTRAINT = 'appointments_no_overlap_per_professional'


def configure_sqlite_engine(target: Engine) -> Engine:
    """Make every SQLite transaction take the database write lock up front.

    pysqlite defers BEGIN until the first write, so two sessions could both
    read a free interval before either inserts. BEGIN IMMEDIATE serializes
    them at the store.

    Read-only sessions take the lock as well and hold it until the session
    closes, so concurrent availability reads on SQLite run one at a time.
    Other dialects are returned untouched.
    """
    if target.dialect.name != 'sqlite':
        return target

    @event.listens_for(target, 'connect')
    def _disable_pysqlite_begin(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(target, 'begin')
    def _begin_immediate(connection):
        connection.exec_driver_sql('BEGIN IMMEDIATE')

    return target


def build_engine(url: str) -> Engine:
    connect_args = {'check_same_thread': False} if url.startswith('sqlite') else {}
    return configure_sqlite_engine(create_engine(url, echo=config.DATABASE_ECHO, connect_args=connect_args))


engine = build_engine(config.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_appointment_schema_checked = False


def _install_overlap_constraint(connection) -> None:
    exists = connection.execute(
        text('SELECT 1 FROM pg_constraint WHERE conname = :name'),
        {'name': APPOINTMENT_OVERLAP_CONSTRAINT},
    ).first()
    if exists:
        return

    connection.execute(text('CREATE EXTENSION IF NOT EXISTS btree_gist'))
    connection.execute(
        text(
            f'ALTER TABLE appointments ADD CONSTRAINT {APPOINTMENT_OVERLAP_CONSTRAINT} '
            'EXCLUDE USING gist ('
            'business_id WITH =, '
            'professional_id WITH =, '
            "tsrange(start_time, end_time, '[)') WITH &&"
            ") WHERE (status = 'scheduled')"
        )
    )


def ensure_appointment_schema(bind: Engine | None = None) -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    target = bind or engine

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(target)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('business_id', 'ALTER TABLE appointments ADD COLUMN business_id VARCHAR'),
            ('service_id', 'ALTER TABLE appointments ADD COLUMN service_id VARCHAR'),
            ('client_id', 'ALTER TABLE appointments ADD COLUMN client_id VARCHAR'),
            ('notes', 'ALTER TABLE appointments ADD COLUMN notes VARCHAR'),
        ]

        with target.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_appointments_professional_start '
                    'ON appointments(business_id, professional_id, start_time)'
                )
            )
            if target.dialect.name == 'postgresql':
                _install_overlap_constraint(connection)

        _appointment_schema_checked = True


def apply_statement_timeout(db, timeout_seconds: float | None) -> None:
    """Bound the current transaction's statements and lock waits (PostgreSQL only)."""
    if not timeout_seconds or db.get_bind().dialect.name != 'postgresql':
        return

    milliseconds = int(timeout_seconds * 1000)
    db.execute(text(f'SET LOCAL statement_timeout = {milliseconds}'))
    db.execute(text(f'SET LOCAL lock_timeout = {milliseconds}'))


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
