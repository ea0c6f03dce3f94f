from bookati.core.exceptions import (
    BookingInvariantViolation,
    InsufficientCapacityException,
    InvalidStatusTransitionException,
    LockTimeoutException,
    NotFoundException,
)


def test_insufficient_capacity_reports_counts():
    exc = InsufficientCapacityException(available=-2, requested=3, slot_id="s1")

    http_exc = exc.to_http_exception()

    assert http_exc.status_code == 409
    assert http_exc.detail["code"] == "INSUFFICIENT_CAPACITY"
    assert http_exc.detail["details"] == {"slot_id": "s1", "available": 0, "requested": 3}
    assert "Only 0 available" in http_exc.detail["message"]


def test_lock_timeout_asks_client_to_retry():
    http_exc = LockTimeoutException("slot", "s1").to_http_exception()

    assert http_exc.status_code == 503
    assert http_exc.headers == {"Retry-After": "1"}
    assert http_exc.detail["code"] == "LOCK_TIMEOUT"


def test_invariant_violation_is_a_server_error():
    exc = BookingInvariantViolation("broken split", details={"visitor_count": 2})

    http_exc = exc.to_http_exception()

    assert http_exc.status_code == 500
    assert exc.retryable is False
    assert http_exc.detail["details"] == {"visitor_count": 2}


def test_status_codes():
    assert NotFoundException("missing").to_http_exception().status_code == 404
    assert InvalidStatusTransitionException("cancelled", "pending").status_code == 422
    assert NotFoundException("missing").code == "NotFoundException"
