from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.exc import IntegrityError

import agenda.database as database
from agenda.database import APPOINTMENT_OVERLAP_CONSTRAINT, configure_sqlite_engine, ensure_appointment_schema
from agenda.repositories.appointments import is_overlap_violation, professional_lock_key


@pytest.fixture
def legacy_engine(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(database, '_appointment_schema_checked', False)
    engine = configure_sqlite_engine(create_engine('sqlite:///:memory:'))
    with engine.begin() as connection:
        connection.execute(
            text(
                'CREATE TABLE appointments ('
                'id INTEGER PRIMARY KEY, professional_id VARCHAR, '
                'start_time DATETIME, end_time DATETIME, status VARCHAR)'
            )
        )
    try:
        yield engine
    finally:
        engine.dispose()


def test_ensure_appointment_schema_adds_missing_columns_and_index(legacy_engine) -> None:
    ensure_appointment_schema(bind=legacy_engine)

    inspector = inspect(legacy_engine)
    columns = {column['name'] for column in inspector.get_columns('appointments')}
    indexes = {index['name'] for index in inspector.get_indexes('appointments')}

    assert {'business_id', 'service_id', 'client_id', 'notes'} <= columns
    assert 'idx_appointments_professional_start' in indexes


def test_ensure_appointment_schema_runs_once(legacy_engine, monkeypatch: pytest.MonkeyPatch) -> None:
    ensure_appointment_schema(bind=legacy_engine)

    def fail_inspect(_target):
        raise AssertionError('schema inspected twice')

    monkeypatch.setattr(database, 'inspect', fail_inspect)

    ensure_appointment_schema(bind=legacy_engine)


def test_sqlite_read_transactions_also_begin_immediate() -> None:
    engine = configure_sqlite_engine(create_engine('sqlite:///:memory:'))
    statements = []
    event.listen(engine, 'before_cursor_execute', lambda _conn, _cursor, statement, *_args: statements.append(statement))

    try:
        with engine.connect() as connection:
            connection.execute(text('SELECT 1'))
    finally:
        engine.dispose()

    assert statements == ['BEGIN IMMEDIATE', 'SELECT 1']


def test_professional_lock_key_is_stable_and_scoped() -> None:
    assert professional_lock_key('biz-1', 'pro-1') == professional_lock_key('biz-1', 'pro-1')
    assert professional_lock_key('biz-1', 'pro-1') != professional_lock_key('biz-2', 'pro-1')
    assert 0 <= professional_lock_key('biz-1', 'pro-1') < 2 ** 32


def test_overlap_violation_is_recognized_by_constraint_name() -> None:
    orig = Exception('conflicting key value violates exclusion constraint')
    orig.diag = SimpleNamespace(constraint_name=APPOINTMENT_OVERLAP_CONSTRAINT)

    assert is_overlap_violation(IntegrityError('INSERT', {}, orig))
    assert not is_overlap_violation(IntegrityError('INSERT', {}, Exception('NOT NULL constraint failed')))
