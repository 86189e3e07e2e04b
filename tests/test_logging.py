"""Tests for structured log output and correlation ids."""

import json

import pytest

from tasklist.logging import (
    configure_logging,
    correlation_id_var,
    get_correlation_id,
    get_logger,
    set_correlation_id,
)


@pytest.fixture
def json_logs():
    configure_logging("INFO", json_output=True)
    yield
    configure_logging()


@pytest.fixture
def correlation_scope():
    """Restore the correlation id after the test sets one."""
    token = correlation_id_var.set(None)
    yield
    correlation_id_var.reset(token)


def test_set_correlation_id_generates_when_missing(correlation_scope):
    cid = set_correlation_id()

    assert len(cid) == 36
    assert get_correlation_id() == cid


def test_set_correlation_id_keeps_client_value(correlation_scope):
    assert set_correlation_id("req-42") == "req-42"
    assert get_correlation_id() == "req-42"


def test_events_render_as_json_with_correlation_id(json_logs, correlation_scope, capsys):
    set_correlation_id("req-7")

    get_logger("tests.logging").info("task_created", task_id="abc")

    record = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert record["event"] == "task_created"
    assert record["task_id"] == "abc"
    assert record["level"] == "info"
    assert record["correlation_id"] == "req-7"
    assert "timestamp" in record


def test_level_filter_drops_lower_events(capsys):
    configure_logging("WARNING", json_output=True)
    try:
        logger = get_logger("tests.logging.filtered")
        logger.info("quiet")
        logger.warning("loud")
    finally:
        configure_logging()

    lines = capsys.readouterr().out.strip().splitlines()
    assert [json.loads(line)["event"] for line in lines] == ["loud"]
