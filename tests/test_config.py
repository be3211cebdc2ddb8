"""
Tests for environment-driven scheduler settings.
"""

import pytest
from pydantic import ValidationError

from scheduler.config import SchedulerConfig


class TestFromEnv:
    def test_defaults_without_overrides(self, monkeypatch):
        monkeypatch.delenv("SCHEDULER_ROUTE_BUFFER_MINUTES", raising=False)
        monkeypatch.delenv("SCHEDULER_DEFAULT_PREFERRED_DAYS", raising=False)

        config = SchedulerConfig.from_env()

        assert config.route_buffer_minutes == 15
        assert config.default_preferred_days == [0, 1, 2, 3, 4]

    def test_overrides_are_coerced(self, monkeypatch):
        monkeypatch.setenv("SCHEDULER_ROUTE_BUFFER_MINUTES", "20")
        monkeypatch.setenv("SCHEDULER_OVERLOAD_TOLERANCE", "1.25")
        monkeypatch.setenv("SCHEDULER_DEFAULT_PREFERRED_DAYS", "0, 2,")

        config = SchedulerConfig.from_env()

        assert config.route_buffer_minutes == 20
        assert config.overload_tolerance == pytest.approx(1.25)
        assert config.default_preferred_days == [0, 2]

    def test_out_of_range_value_is_rejected(self, monkeypatch):
        monkeypatch.setenv("SCHEDULER_UNITS_PER_HOUR", "0")

        with pytest.raises(ValidationError):
            SchedulerConfig.from_env()
