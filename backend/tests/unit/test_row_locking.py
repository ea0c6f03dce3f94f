from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError

from bookati.core.exceptions import LockTimeoutException, RepositoryException
from bookati.database.session_utils import is_deadlock_error, is_lock_timeout_error
from bookati.models.slot import Slot
from bookati.repositories.base_repository import BaseRepository


class _DriverError(Exception):
    def __init__(self, message, pgcode=None):
        super().__init__(message)
        self.pgcode = pgcode


def _failing_query(error):
    query = Mock()
    query.with_for_update.return_value.populate_existing.return_value.all.side_effect = error
    return query


@pytest.mark.parametrize(
    "orig",
    [
        _DriverError("canceling statement due to lock timeout", pgcode="55P03"),
        _DriverError("deadlock detected", pgcode="40P01"),
    ],
)
def test_lock_wait_failures_become_lock_timeout(db, orig):
    repository = BaseRepository(db, Slot)
    error = OperationalError("SELECT ... FOR UPDATE", {}, orig)

    with pytest.raises(LockTimeoutException) as exc_info:
        repository.lock_rows(_failing_query(error), "slot", "slot-1")

    assert exc_info.value.details == {"resource": "slot", "resource_id": "slot-1"}
    assert exc_info.value.retryable is True


def test_other_operational_errors_are_repository_errors(db):
    repository = BaseRepository(db, Slot)
    error = OperationalError("SELECT", {}, _DriverError("server closed the connection"))

    with pytest.raises(RepositoryException):
        repository.lock_rows(_failing_query(error), "slot", "slot-1")


def test_lock_rows_returns_locked_rows(db, make_slot):
    slot = make_slot(2)
    repository = BaseRepository(db, Slot)

    rows = repository.lock_rows(db.query(Slot).filter(Slot.id == slot.id), "slot", slot.id)

    assert [row.id for row in rows] == [slot.id]


def test_error_classification_by_message():
    timeout = OperationalError("SELECT", {}, _DriverError("could not obtain lock on row"))
    deadlock = OperationalError("SELECT", {}, _DriverError("Deadlock detected"))

    assert is_lock_timeout_error(timeout)
    assert not is_deadlock_error(timeout)
    assert is_deadlock_error(deadlock)
