"""Tests for process settings and the security configuration derived from them."""
import pytest

from comercialhg.config.security import (
    CONTENT_SECURITY_DIRECTIVES,
    FIXED_CORS_ORIGINS,
    get_content_security_directives,
    get_cors_headers,
    get_cors_methods,
    get_cors_origins,
)
from comercialhg.config.settings import (
    DEFAULT_BODY_LIMIT_BYTES,
    DEFAULT_CORS_ORIGIN,
    DEFAULT_PORT,
    Settings,
    get_settings,
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("PORT", "NODE_ENV", "ENVIRONMENT", "CORS_ORIGIN", "SHUTDOWN_GRACE_SECONDS"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.mark.unit
class TestSettings:

    def test_defaults(self, clean_env):
        settings = Settings(_env_file=None)

        assert settings.port == DEFAULT_PORT == 3000
        assert settings.environment == "development"
        assert settings.is_development is True
        assert settings.cors_origin == DEFAULT_CORS_ORIGIN
        assert settings.body_limit_bytes == DEFAULT_BODY_LIMIT_BYTES == 10 * 1024 * 1024
        assert settings.shutdown_grace_seconds == 0
        assert settings.frontend_path.parts[-2:] == ("frontend", "dist")

    def test_environment_overrides(self, clean_env):
        clean_env.setenv("PORT", "8088")
        clean_env.setenv("NODE_ENV", "Production")
        clean_env.setenv("CORS_ORIGIN", "https://admin.example.com")

        settings = Settings(_env_file=None)

        assert settings.port == 8088
        assert settings.environment == "production"
        assert settings.is_development is False
        assert settings.cors_origin == "https://admin.example.com"

    def test_environment_alias(self, clean_env):
        clean_env.setenv("ENVIRONMENT", "staging")

        assert Settings(_env_file=None).environment == "staging"

    @pytest.mark.parametrize("name", ["PORT", "NODE_ENV", "CORS_ORIGIN"])
    def test_blank_values_use_defaults(self, clean_env, name):
        clean_env.setenv(name, "  ")

        settings = Settings(_env_file=None)

        assert settings.port == DEFAULT_PORT
        assert settings.environment == "development"
        assert settings.cors_origin == DEFAULT_CORS_ORIGIN

    def test_invalid_port_is_rejected(self, clean_env):
        clean_env.setenv("PORT", "70000")

        with pytest.raises(ValueError):
            Settings(_env_file=None)

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


@pytest.mark.unit
class TestSecurityConfiguration:

    def test_allow_list_order(self, settings):
        origins = get_cors_origins(settings)

        assert origins == [DEFAULT_CORS_ORIGIN, *FIXED_CORS_ORIGINS]
        assert len(origins) == 5

    def test_override_comes_first(self, settings):
        settings = settings.model_copy(update={"cors_origin": "https://admin.example.com"})

        origins = get_cors_origins(settings)

        assert origins[0] == "https://admin.example.com"
        assert DEFAULT_CORS_ORIGIN not in origins

    def test_override_matching_fixed_origin_is_not_repeated(self, settings):
        settings = settings.model_copy(update={"cors_origin": "http://localhost:5173"})

        origins = get_cors_origins(settings)

        assert origins.count("http://localhost:5173") == 1
        assert len(origins) == 4

    def test_methods_and_headers(self):
        assert get_cors_methods() == ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
        assert get_cors_headers() == ["Content-Type", "Authorization"]

    def test_content_security_directives(self):
        directives = get_content_security_directives()

        assert directives is CONTENT_SECURITY_DIRECTIVES
        assert directives["script-src"] == ("'self'", "'unsafe-inline'", "'unsafe-eval'")
        assert directives["img-src"] == ("'self'", "data:", "https:")
