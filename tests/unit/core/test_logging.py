"""Tests for trendpulse.core.logging module."""

import pytest

from trendpulse.core.logging import add_app_context, get_logger, setup_logging


@pytest.mark.unit
def test_add_app_context():
    """Test app name and environment are attached to events."""
    event = add_app_context(None, "info", {"event": "hello"})

    assert event["app"] == "TrendPulse"
    assert event["env"] in ("development", "staging", "production")
    assert event["event"] == "hello"


@pytest.mark.unit
def test_logger_accepts_key_values():
    """Test a configured logger logs structured events."""
    setup_logging()
    logger = get_logger("trendpulse.test")

    logger.info("Scoring pass finished", events_scored=3)
