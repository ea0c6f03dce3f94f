from unittest.mock import Mock

import pytest

from bookati.monitoring.prometheus_metrics import REGISTRY
from bookati.services.base import BaseService


class _MeasuredService(BaseService):
    @BaseService.measure_operation("work")
    def work(self, fail=False):
        if fail:
            raise ValueError("boom")
        return "done"


def _operations(status):
    value = REGISTRY.get_sample_value(
        "bookati_service_operations_total",
        {"service": "_MeasuredService", "operation": "work", "status": status},
    )
    return value or 0.0


def _errors():
    value = REGISTRY.get_sample_value(
        "bookati_errors_total",
        {"service": "_MeasuredService", "operation": "work", "error_type": "ValueError"},
    )
    return value or 0.0


def test_measured_operations_are_exported_to_prometheus():
    service = _MeasuredService(Mock())
    ok_before, error_before, raised_before = _operations("success"), _operations("error"), _errors()

    assert service.work() == "done"
    with pytest.raises(ValueError):
        service.work(fail=True)

    assert _operations("success") == ok_before + 1
    assert _operations("error") == error_before + 1
    assert _errors() == raised_before + 1
