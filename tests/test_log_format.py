"""
Tests for the custom json log format and logging configuration
"""

# Standard
from unittest import mock
import logging

# First Party
from alog import AlogJsonFormatter

# Local
from converge8 import constants
from converge8.log_format import Converge8JsonFormatter, configure_logging
from converge8.test_helpers.helpers import (
    TEST_INSTANCE_NAME,
    TEST_NAMESPACE,
    library_config,
    setup_cr,
)

## Helpers #####################################################################


class AlogConfigureMock:
    def __init__(self):
        self.kwargs = None

    def __call__(self, **kwargs):
        self.kwargs = kwargs


def make_record(**extra):
    record = logging.LogRecord("TEST", logging.INFO, __file__, 1, "msg", (), None)
    for key, val in extra.items():
        setattr(record, key, val)
    return record


## Tests #######################################################################


def test_formatter_adds_resource_fields():
    """The manifest and scenario id are attached to each record"""
    formatter = Converge8JsonFormatter(setup_cr(), "scenario-1")
    record = make_record()
    with mock.patch.object(AlogJsonFormatter, "format", return_value="{}"):
        formatter.format(record)
    assert record.scenarioId == "scenario-1"
    assert record.kind == constants.MANAGED_KIND
    assert record.apiVersion == constants.MANAGED_API_VERSION
    assert record.resourceName == TEST_INSTANCE_NAME
    assert record.namespace == TEST_NAMESPACE


def test_formatter_record_resource_wins():
    """A resource attached to the record itself overrides the manifest"""
    formatter = Converge8JsonFormatter(setup_cr())
    record = make_record(resource=setup_cr(name="other"))
    with mock.patch.object(AlogJsonFormatter, "format", return_value="{}"):
        formatter.format(record)
    assert record.resourceName == "other"
    assert not hasattr(record, "scenarioId")


def test_formatter_prints_custom_fields():
    for field in ["kind", "apiVersion", "resourceName", "namespace", "scenarioId"]:
        assert field in Converge8JsonFormatter._FIELDS_TO_PRINT


def test_configure_logging_pretty():
    alog_mock = AlogConfigureMock()
    with mock.patch("alog.configure", alog_mock):
        configure_logging(setup_cr(), "id")
    assert alog_mock.kwargs.get("formatter") == "pretty"
    assert alog_mock.kwargs.get("default_level") == "info"
    assert alog_mock.kwargs.get("filters") == ""


def test_configure_logging_custom_json_formatter():
    """Make sure that if json logging is enabled, the custom formatter is
    used
    """
    alog_mock = AlogConfigureMock()
    with library_config(log_json=True, log_thread_id=True):
        with mock.patch("alog.configure", alog_mock):
            configure_logging(setup_cr(), "id")
    formatter = alog_mock.kwargs.get("formatter")
    assert isinstance(formatter, Converge8JsonFormatter)
    assert formatter.scenario_id == "id"
    assert alog_mock.kwargs.get("thread_id") is True
