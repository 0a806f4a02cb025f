"""
Environment settings: name lookup and the production guard.
"""

import pytest

from qaboard.config import (
    BUNDLED_ROLES_FILE,
    DevelopmentConfig,
    ProductionConfig,
    TestingConfig,
    get_config,
)


class TestGetConfig:
    def test_named_lookup(self):
        assert get_config("testing") is TestingConfig
        assert get_config("development") is DevelopmentConfig

    def test_defaults_to_app_env(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "testing")
        assert get_config() is TestingConfig

    def test_unknown_name(self):
        with pytest.raises(KeyError):
            get_config("staging")

    def test_testing_uses_bundled_roles(self):
        assert TestingConfig.ROLE_CAPABILITIES_FILE == BUNDLED_ROLES_FILE
        assert TestingConfig.TOP_LEVEL_ROLE == "web_leader"


class TestProductionGuard:
    def test_missing_settings_all_named(self, monkeypatch):
        monkeypatch.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", None)
        monkeypatch.delenv("SECRET_KEY", raising=False)
        with pytest.raises(RuntimeError) as exc:
            get_config("production")
        assert "DATABASE_URL" in str(exc.value)
        assert "SECRET_KEY" in str(exc.value)

    def test_complete_settings_accepted(self, monkeypatch):
        monkeypatch.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", "postgresql://qa@db/qaboard")
        monkeypatch.setenv("SECRET_KEY", "s3cret")
        assert isinstance(get_config("production"), ProductionConfig)


def test_app_runs_with_testing_settings(app):
    assert app.config["TESTING"] is True
    assert isinstance(app.config["SLOW_REQUEST_MS"], int)
