"""Django settings for the publishing CMS backend.

Environment-driven configuration for Postgres, Redis, media storage, and
security defaults.
"""
import os
from pathlib import Path
from urllib.parse import urlparse

from django.core.exceptions import ImproperlyConfigured

BASE_DIR = Path(__file__).resolve().parent.parent


def _get_env(name: str, default: str | None = None) -> str | None:
    """Read an environment variable with an optional fallback."""
    return os.environ.get(name, default)


def _parse_database_url(url: str) -> dict:
    """Parse a PostgreSQL- or SQLite-style DATABASE_URL into a Django DATABASES entry."""
    parsed = urlparse(url)
    if parsed.scheme == "sqlite":
        return {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": parsed.path.lstrip("/") or str(BASE_DIR / "db.sqlite3"),
        }
    return {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": parsed.path.lstrip("/"),
        "USER": parsed.username,
        "PASSWORD": parsed.password,
        "HOST": parsed.hostname,
        "PORT": parsed.port or "5432",
    }


SECRET_KEY = _get_env("SECRET_KEY", "dev-secret-key-change-me")
DEBUG = _get_env("DEBUG", "True") == "True"
if not DEBUG and SECRET_KEY in ("change-me", "dev-secret-key-change-me"):
    raise ImproperlyConfigured("SECRET_KEY must be set in production")
ALLOWED_HOSTS = [
    h.strip()
    for h in _get_env("ALLOWED_HOSTS", "localhost,127.0.0.1,0.0.0.0,testserver").split(",")
    if h.strip()
]

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "rest_framework",
    "drf_spectacular",
    "core",
    "authentication",
    "access_control",
    "articles",
    "media",
    "realtime",
    "scripts",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    # The API is bearer-token only; no cookie sessions, so no CSRF middleware.
    "core.middleware.RequestDeadlineMiddleware",
    "core.middleware.JWTAuthMiddleware",
]

ROOT_URLCONF = "core.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
            ],
        },
    },
]

WSGI_APPLICATION = "core.wsgi.application"

DB_STATEMENT_TIMEOUT_MS = int(_get_env("DB_STATEMENT_TIMEOUT_MS", "5000"))
REQUEST_TIMEOUT_MAX_SECONDS = float(_get_env("REQUEST_TIMEOUT_MAX_SECONDS", "30"))

DATABASE_URL = _get_env("DATABASE_URL")
if DATABASE_URL:
    DATABASES = {"default": _parse_database_url(DATABASE_URL)}
elif _get_env("POSTGRES_HOST"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": _get_env("POSTGRES_DB", "cms"),
            "USER": _get_env("POSTGRES_USER", "cms"),
            "PASSWORD": _get_env("POSTGRES_PASSWORD", "cms"),
            "HOST": _get_env("POSTGRES_HOST", "localhost"),
            "PORT": _get_env("POSTGRES_PORT", "5433"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": str(BASE_DIR / "db.sqlite3"),
        }
    }

if DATABASES["default"]["ENGINE"] == "django.db.backends.postgresql":
    DATABASES["default"]["OPTIONS"] = {
        "options": f"-c statement_timeout={DB_STATEMENT_TIMEOUT_MS}",
    }

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Identity provider: bearer tokens are HS256 JWTs carrying ``sub`` and ``email``.
IDENTITY_JWT_SECRET = _get_env("IDENTITY_JWT_SECRET") or SECRET_KEY
IDENTITY_JWT_AUDIENCE = _get_env("IDENTITY_JWT_AUDIENCE")
DEBUG_AUTH_ERRORS = _get_env("DEBUG_AUTH_ERRORS", "False") == "True"

REDIS_URL = _get_env("REDIS_URL", "redis://localhost:6380/0")
REDIS_SOCKET_TIMEOUT = float(_get_env("REDIS_SOCKET_TIMEOUT", "5"))

CHANGE_BUS_BACKEND = _get_env("CHANGE_BUS_BACKEND", "redis")
CHANGE_BUS_CHANNEL_PREFIX = _get_env("CHANGE_BUS_CHANNEL_PREFIX", "cms:changes")
CHANGE_BUS_COALESCE_SECONDS = float(_get_env("CHANGE_BUS_COALESCE_SECONDS", "0.25"))
REALTIME_HEARTBEAT_SECONDS = float(_get_env("REALTIME_HEARTBEAT_SECONDS", "15"))

ARTICLES_DEFAULT_PAGE_SIZE = int(_get_env("ARTICLES_DEFAULT_PAGE_SIZE", "10"))
ARTICLES_MAX_PAGE_SIZE = int(_get_env("ARTICLES_MAX_PAGE_SIZE", "100"))

MEDIA_STORAGE_BACKEND = _get_env("MEDIA_STORAGE_BACKEND", "local")
MEDIA_BUCKET = _get_env("MEDIA_BUCKET", "media")
MEDIA_LOCAL_ROOT = _get_env("MEDIA_LOCAL_ROOT", str(BASE_DIR / "mediastore"))
MEDIA_PUBLIC_BASE_URL = _get_env("MEDIA_PUBLIC_BASE_URL", "http://localhost:8000/media/public")
MEDIA_ALLOWED_MIME_PREFIXES = [
    p.strip() for p in _get_env("MEDIA_ALLOWED_MIME_PREFIXES", "image/,video/,application/pdf").split(",") if p.strip()
]
MEDIA_MAX_UPLOAD_BYTES = int(_get_env("MEDIA_MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
MEDIA_S3_ENDPOINT_URL = _get_env("MEDIA_S3_ENDPOINT_URL")
MEDIA_S3_REGION = _get_env("MEDIA_S3_REGION", "us-east-1")
MEDIA_S3_ACCESS_KEY = _get_env("MEDIA_S3_ACCESS_KEY")
MEDIA_S3_SECRET_KEY = _get_env("MEDIA_S3_SECRET_KEY")

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": ["core.authentication.MiddlewareUserAuthentication"],
    "DEFAULT_PERMISSION_CLASSES": [],
    "EXCEPTION_HANDLER": "core.exceptions.custom_exception_handler",
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Publishing CMS API",
    "DESCRIPTION": (
        "OpenAPI schema for the content backend: article visibility and "
        "publication lifecycle, admin registry, media uploads, and realtime "
        "change notifications."
    ),
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
    "SERVE_PUBLIC": True,
    "APPEND_COMPONENTS": {
        "securitySchemes": {
            "bearerAuth": {
                "type": "http",
                "scheme": "bearer",
                "bearerFormat": "JWT",
            }
        }
    },
    "SECURITY": [{"bearerAuth": []}],
}

LOG_LEVEL = _get_env("LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {name} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        "django": {"handlers": ["console"], "level": "INFO", "propagate": False},
        **{
            app: {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False}
            for app in ("core", "authentication", "access_control", "articles", "media", "realtime", "scripts")
        },
    },
}
