"""Tests for configuration loading."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from expense_tracker.config import MatchingSettings, validate_all_settings


class TestMatchingSettings:
    """Tests for the matcher bounds."""

    def test_defaults(self, monkeypatch):
        """Defaults match the engine's built-in limits."""
        for name in (
            "MATCHING_MAX_TOTAL_MATCHES",
            "MATCHING_MAX_COMBINATIONS_PER_AMOUNT",
            "MATCHING_MAX_COMBINATION_SIZE",
            "MATCHING_DEFAULT_TOLERANCE",
            "MATCHING_EXACT_MATCH_EPSILON",
        ):
            monkeypatch.delenv(name, raising=False)

        settings = MatchingSettings(_env_file=None)

        assert settings.max_total_matches == 100
        assert settings.max_combinations_per_amount == 20
        assert settings.max_combination_size == 10
        assert settings.default_tolerance == Decimal("0.01")

    def test_environment_override(self, monkeypatch):
        """Bounds are tunable from the environment."""
        monkeypatch.setenv("MATCHING_MAX_TOTAL_MATCHES", "5")
        monkeypatch.setenv("MATCHING_DEFAULT_TOLERANCE", "0.05")

        settings = MatchingSettings(_env_file=None)
        limits = settings.to_limits()

        assert limits.max_total_matches == 5
        assert settings.default_tolerance == Decimal("0.05")

    def test_rejects_out_of_range(self, monkeypatch):
        """Combination size is capped to keep recursion shallow."""
        monkeypatch.setenv("MATCHING_MAX_COMBINATION_SIZE", "500")

        with pytest.raises(ValidationError):
            MatchingSettings(_env_file=None)


class TestValidateAllSettings:
    """Tests for the startup check."""

    def test_reports_each_section(self):
        """Every section has a status entry."""
        status = validate_all_settings()

        assert {"matching", "google_sheets", "app"} <= set(status)
