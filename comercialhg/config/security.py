"""Cross-origin and content-security configuration.

The CORS allow-list is one configurable origin followed by the fixed
development and production front-end origins. The content-security
directives intentionally allow inline and eval scripts and inline styles
because the prebuilt front-end bundle relies on them.
"""
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple

from comercialhg.config.settings import Settings, get_settings

FIXED_CORS_ORIGINS: Tuple[str, ...] = (
    "http://localhost:8081",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "https://comercialhg.vercel.app",
)

CORS_METHODS: Tuple[str, ...] = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")

CORS_HEADERS: Tuple[str, ...] = ("Content-Type", "Authorization")

CONTENT_SECURITY_DIRECTIVES: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "default-src": ("'self'",),
    "style-src": ("'self'", "'unsafe-inline'"),
    "script-src": ("'self'", "'unsafe-inline'", "'unsafe-eval'"),
    "img-src": ("'self'", "data:", "https:"),
})


def get_cors_origins(settings: Optional[Settings] = None) -> List[str]:
    """
    Get the ordered CORS allow-list.

    The configured `CORS_ORIGIN` comes first; an override equal to one of
    the fixed origins is not repeated.

    Returns:
        List of exact origins allowed credentialed cross-origin access
    """
    settings = settings or get_settings()
    origins: List[str] = []
    for origin in (settings.cors_origin, *FIXED_CORS_ORIGINS):
        if origin not in origins:
            origins.append(origin)
    return origins


def get_cors_methods() -> List[str]:
    """Get allowed CORS HTTP methods."""
    return list(CORS_METHODS)


def get_cors_headers() -> List[str]:
    """Get allowed CORS request headers."""
    return list(CORS_HEADERS)


def get_content_security_directives() -> Mapping[str, Tuple[str, ...]]:
    """Get the content-security directive set handed to the header provider."""
    return CONTENT_SECURITY_DIRECTIVES
