# tests/test_config.py — unit tests for configuration loading

import os
from unittest.mock import patch

import pytest

from config import (
    DEFAULTS,
    REQUIRED,
    current_config,
    fail_open,
    get_debug_config,
    get_setting,
    load_config,
    validate_deploy_config,
)

BASE_ENV = {
    "SUPABASE_URL": "https://project.supabase.co",
    "SUPABASE_SERVICE_ROLE_KEY": "service-role",
    "SUPABASE_JWT_SECRET": "jwt-secret",
}


class TestLoadConfig:
    """Test configuration loading and validation."""

    def test_missing_required_env_vars_raises_exception(self):
        """Missing required variables are all named in one error."""
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(RuntimeError) as exc_info:
                load_config()

            error_msg = str(exc_info.value)
            assert "Missing required environment variables" in error_msg
            assert "See env.sample for reference" in error_msg
            for var in REQUIRED:
                assert var in error_msg

    def test_non_strict_allows_missing(self):
        with patch.dict(os.environ, {}, clear=True):
            config = load_config(strict=False)

        assert config["SUPABASE_URL"] is None
        assert config["VISIBILITY_FAIL_MODE"] == "open"

    def test_valid_config_loads_successfully(self):
        with patch.dict(os.environ, BASE_ENV, clear=True):
            config = load_config()

        for var in REQUIRED:
            assert config[var] == BASE_ENV[var]
        assert config["ANALYTICS_ENABLED"] is True
        assert config["LIMITS_ENABLED"] is True
        assert config["LOG_LEVEL"] == "INFO"
        assert config["CORS_ALLOW_ORIGINS"] == ["*"]

    def test_supabase_url_scheme(self):
        with patch.dict(os.environ, {**BASE_ENV, "SUPABASE_URL": "project.supabase.co"}, clear=True):
            with pytest.raises(RuntimeError, match="SUPABASE_URL must start with"):
                load_config()

    @pytest.mark.parametrize("env_value,expected", [
        ("true", True),
        ("TRUE", True),
        ("1", True),
        ("yes", True),
        ("on", True),
        ("false", False),
        ("0", False),
        ("off", False),
        ("", False),
    ])
    def test_boolean_values(self, env_value, expected):
        with patch.dict(os.environ, {**BASE_ENV, "ANALYTICS_ENABLED": env_value}, clear=True):
            assert load_config()["ANALYTICS_ENABLED"] is expected

    @pytest.mark.parametrize("value,expected", [("open", "open"), (" CLOSED ", "closed")])
    def test_fail_mode(self, value, expected):
        with patch.dict(os.environ, {**BASE_ENV, "VISIBILITY_FAIL_MODE": value}, clear=True):
            assert load_config()["VISIBILITY_FAIL_MODE"] == expected

    def test_invalid_fail_mode(self):
        with patch.dict(os.environ, {**BASE_ENV, "VISIBILITY_FAIL_MODE": "sometimes"}, clear=True):
            with pytest.raises(RuntimeError, match="VISIBILITY_FAIL_MODE"):
                load_config()

    def test_invalid_log_level(self):
        with patch.dict(os.environ, {**BASE_ENV, "LOG_LEVEL": "LOUD"}, clear=True):
            with pytest.raises(RuntimeError, match="LOG_LEVEL"):
                load_config()

    def test_cors_origins_are_split(self):
        origins = "https://app.example.com, https://admin.example.com,"
        with patch.dict(os.environ, {**BASE_ENV, "CORS_ALLOW_ORIGINS": origins}, clear=True):
            assert load_config()["CORS_ALLOW_ORIGINS"] == [
                "https://app.example.com",
                "https://admin.example.com",
            ]

    def test_defaults_are_documented(self):
        assert DEFAULTS["VISIBILITY_FAIL_MODE"] == "open"
        assert set(DEFAULTS) >= {"ANALYTICS_ENABLED", "LIMITS_ENABLED", "LOG_LEVEL", "CORS_ALLOW_ORIGINS"}


class TestHelpers:

    def test_fail_open(self):
        with patch.dict(os.environ, {**BASE_ENV, "VISIBILITY_FAIL_MODE": "closed"}, clear=True):
            assert fail_open() is False
        with patch.dict(os.environ, BASE_ENV, clear=True):
            assert fail_open() is True

    def test_debug_config_hides_secrets(self):
        with patch.dict(os.environ, BASE_ENV, clear=True):
            config = get_debug_config()

        assert "SUPABASE_SERVICE_ROLE_KEY" not in config
        assert "SUPABASE_JWT_SECRET" not in config
        assert config["SUPABASE_URL"] == BASE_ENV["SUPABASE_URL"]
        assert config["_metadata"]["environment"] == "development"

    def test_debug_config_reports_missing(self):
        with patch.dict(os.environ, {}, clear=True):
            assert set(get_debug_config()["_metadata"]["missing_required"]) == set(REQUIRED)

    def test_deploy_warnings(self):
        cfg = {"ENVIRONMENT": "production", "CORS_ALLOW_ORIGINS": ["*"], "LOG_LEVEL": "DEBUG", "LIMITS_ENABLED": False}
        assert set(validate_deploy_config(cfg)) == {"CORS_ALLOW_ORIGINS", "LOG_LEVEL", "LIMITS_ENABLED"}

    def test_development_is_quiet(self):
        cfg = {"ENVIRONMENT": "development", "CORS_ALLOW_ORIGINS": ["*"], "LOG_LEVEL": "DEBUG", "LIMITS_ENABLED": True}
        assert validate_deploy_config(cfg) == {}


class TestSettings:
    """Per-call reads never raise on a bad value."""

    def test_invalid_fail_mode_falls_back(self):
        with patch.dict(os.environ, {**BASE_ENV, "VISIBILITY_FAIL_MODE": "sometimes"}, clear=True):
            assert get_setting("VISIBILITY_FAIL_MODE") == "open"
            assert fail_open() is True

    def test_unrelated_bad_setting_is_ignored(self):
        with patch.dict(os.environ, {**BASE_ENV, "LOG_LEVEL": "LOUD", "VISIBILITY_FAIL_MODE": "closed"}, clear=True):
            assert fail_open() is False

    def test_boolean_setting(self):
        with patch.dict(os.environ, {**BASE_ENV, "ANALYTICS_ENABLED": "off"}, clear=True):
            assert get_setting("ANALYTICS_ENABLED") is False

    def test_current_config_with_bad_values(self):
        with patch.dict(os.environ, {"LOG_LEVEL": "LOUD"}, clear=True):
            cfg = current_config()

        assert cfg["LOG_LEVEL"] == "INFO"
        assert cfg["SUPABASE_URL"] is None

    def test_debug_config_with_bad_values(self):
        with patch.dict(os.environ, {**BASE_ENV, "VISIBILITY_FAIL_MODE": "sometimes"}, clear=True):
            assert get_debug_config()["VISIBILITY_FAIL_MODE"] == "open"
