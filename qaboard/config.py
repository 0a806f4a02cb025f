"""
QA Board settings, one class per environment.

Every value can be overridden from the environment:

    APP_ENV                  development | testing | production
    DATABASE_URL             store for development/production (postgres:// accepted)
    TEST_DATABASE_URL        store for the test suite (in-memory SQLite by default)
    SECRET_KEY               required in production
    CORS_ORIGINS             comma separated; "*" disables the CORS extension
    ROLE_CAPABILITIES_FILE   YAML role table for the checklist permission gate
    TOP_LEVEL_ROLE           role that may act on every phase and reorder phases
    SLOW_REQUEST_MS          request duration logged as a warning
    LOG_LEVEL                overrides the per-environment default

Usage:
    app.config.from_object(get_config("testing"))
"""

import os
import secrets

_PACKAGE_DIR = os.path.dirname(__file__)
_INSTANCE_DIR = os.path.join(os.path.dirname(_PACKAGE_DIR), "instance")

BUNDLED_ROLES_FILE = os.path.join(_PACKAGE_DIR, "data", "roles.yaml")


def _database_url(env_var, fallback=None):
    """SQLAlchemy URL from ``env_var``; Heroku-style postgres:// is rewritten."""
    url = os.getenv(env_var, "")
    if not url:
        return fallback
    return url.replace("postgres://", "postgresql://", 1)


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY") or secrets.token_hex(32)
    DEBUG = False
    TESTING = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    ROLE_CAPABILITIES_FILE = os.getenv("ROLE_CAPABILITIES_FILE", BUNDLED_ROLES_FILE)
    TOP_LEVEL_ROLE = os.getenv("TOP_LEVEL_ROLE", "web_leader")

    SLOW_REQUEST_MS = int(os.getenv("SLOW_REQUEST_MS", "1000"))


class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
    SQLALCHEMY_DATABASE_URI = _database_url(
        "DATABASE_URL", f"sqlite:///{os.path.join(_INSTANCE_DIR, 'qaboard_dev.db')}",
    )


class TestingConfig(Config):
    """Isolated from the environment's role table so tests see the bundled roles."""

    TESTING = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
    SQLALCHEMY_DATABASE_URI = _database_url("TEST_DATABASE_URL", "sqlite:///:memory:")
    ROLE_CAPABILITIES_FILE = BUNDLED_ROLES_FILE
    TOP_LEVEL_ROLE = "web_leader"


class ProductionConfig(Config):
    SQLALCHEMY_DATABASE_URI = _database_url("DATABASE_URL")
    # No wildcard default outside development
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
    }

    def __init__(self):
        missing = [
            name for name, value in (
                ("DATABASE_URL", self.SQLALCHEMY_DATABASE_URI),
                ("SECRET_KEY", os.getenv("SECRET_KEY")),
            )
            if not value
        ]
        if missing:
            raise RuntimeError(f"Missing required production settings: {', '.join(missing)}")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}


def get_config(name=None):
    """Settings object for ``name`` (default: APP_ENV, then development).

    Production is instantiated so its required settings are checked.
    """
    name = name or os.getenv("APP_ENV", "development")
    if name not in config:
        raise KeyError(f"Unknown configuration '{name}'; expected one of: {', '.join(config)}")
    cls = config[name]
    return cls() if cls is ProductionConfig else cls
