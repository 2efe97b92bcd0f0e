"""Pytest configuration and shared fixtures."""
import os
from pathlib import Path
from typing import Generator

import pytest

# Set test environment variables BEFORE any app imports
os.environ["TESTING"] = "true"
os.environ["NODE_ENV"] = "development"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_FORMAT"] = "console"
os.environ.pop("SENTRY_DSN", None)
os.environ.pop("CORS_ORIGIN", None)
os.environ.pop("PORT", None)

from fastapi import FastAPI
from fastapi.testclient import TestClient

from comercialhg.api.middleware.header_policy import HeaderPolicy
from comercialhg.api.middleware.security_headers import SecurityHeadersMiddleware
from comercialhg.config.security import get_content_security_directives
from comercialhg.config.settings import Settings
from comercialhg.core.application import create_application
from tests.bundle import build_frontend


@pytest.fixture
def frontend_dir(tmp_path: Path) -> Path:
    """A minimal prebuilt front-end bundle."""
    return build_frontend(tmp_path)


@pytest.fixture
def settings(frontend_dir: Path) -> Settings:
    return Settings(
        _env_file=None,
        environment="development",
        frontend_path=frontend_dir,
    )


@pytest.fixture
def production_settings(frontend_dir: Path) -> Settings:
    return Settings(
        _env_file=None,
        environment="production",
        frontend_path=frontend_dir,
    )


@pytest.fixture
def header_policy() -> HeaderPolicy:
    return HeaderPolicy(
        provider=SecurityHeadersMiddleware,
        directives=get_content_security_directives(),
        source="test",
    )


@pytest.fixture
def app(settings: Settings, header_policy: HeaderPolicy) -> FastAPI:
    return create_application(settings, header_policy=header_policy)


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Create a test client for the application."""
    # 500 responses are returned instead of re-raised
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
