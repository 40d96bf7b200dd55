"""
Django settings.py for banco de horas: DEV/PROD with Supabase Postgres,
WhiteNoise, optional Redis, Celery beat and Sentry.
"""

from __future__ import annotations
import os
import warnings
from pathlib import Path
from dotenv import load_dotenv
import dj_database_url
import sentry_sdk
from sentry_sdk.integrations.celery import CeleryIntegration
from sentry_sdk.integrations.django import DjangoIntegration

# ────────────────────────────────────────────────────
# Paths & .env
# ────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")
ENV = os.getenv

def env_bool(key: str, default: str = "false") -> bool:
    return ENV(key, default).lower() in {"1", "true", "yes", "on"}


def env_list(key: str) -> list[str]:
    raw = ENV(key, "") or ""
    return [x.strip() for x in raw.split(",") if x.strip()]

# ────────────────────────────────────────────────────
# Core flags & secret
# ────────────────────────────────────────────────────
DEBUG: bool = env_bool("DEBUG")

SECRET_KEY = ENV("SECRET_KEY")
if not SECRET_KEY:
    raise RuntimeError("SECRET_KEY environment variable is required")

if not DEBUG:
    warnings.filterwarnings("ignore")

# ────────────────────────────────────────────────────
# Sentry (error monitoring)
# ────────────────────────────────────────────────────
SENTRY_DSN = ENV("SENTRY_DSN", "")
if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        integrations=[DjangoIntegration(), CeleryIntegration()],
        traces_sample_rate=float(ENV("SENTRY_TRACES_SAMPLE_RATE", "0.0")),
        sample_rate=float(ENV("SENTRY_SAMPLE_RATE", "1.0")),
        send_default_pii=False,
    )

# ────────────────────────────────────────────────────
# Hosts & CSRF trusted origins
# ────────────────────────────────────────────────────
ALLOWED_HOSTS = ["localhost", "127.0.0.1"] + env_list("EXTRA_ALLOWED_HOSTS")

CSRF_TRUSTED_ORIGINS = [
    "http://localhost:8000",
    "http://127.0.0.1:8000",
] + [o for o in env_list("EXTRA_CSRF_TRUSTED_ORIGINS") if o.startswith(("http://", "https://"))]

# ────────────────────────────────────────────────────
# Apps & Middleware
# ────────────────────────────────────────────────────
INSTALLED_APPS = [
    # Django
    "django.contrib.admin", "django.contrib.auth", "django.contrib.contenttypes",
    "django.contrib.sessions", "django.contrib.messages", "django.contrib.staticfiles",
    # Third-party
    "whitenoise.runserver_nostatic",
    "django_celery_beat",
    # Project
    "banco_horas",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "bancohoras_site.urls"
WSGI_APPLICATION = "bancohoras_site.wsgi.application"

# ────────────────────────────────────────────────────
# Templates (admin only)
# ────────────────────────────────────────────────────
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]

# ────────────────────────────────────────────────────
# Database (Supabase preferred via SUPABASE_DB_URL/DATABASE_URL; fallback SQLite)
# ────────────────────────────────────────────────────
SUPA_URL = ENV("SUPABASE_DB_URL") or ENV("DATABASE_URL")
if not SUPA_URL and ENV("DB_HOST"):
    SUPA_URL = (
        f"postgresql://{ENV('DB_USER')}:{ENV('DB_PASSWORD')}"
        f"@{ENV('DB_HOST')}:{ENV('DB_PORT','5432')}/{ENV('DB_NAME')}"
    )

if SUPA_URL:
    DATABASES = {
        "default": dj_database_url.parse(
            SUPA_URL,
            conn_max_age=int(ENV("DB_CONN_MAX_AGE", "600")),
            ssl_require=not DEBUG,
        )
    }
else:
    DATABASES = {
        "default": {"ENGINE": "django.db.backends.sqlite3", "NAME": BASE_DIR / "db.sqlite3"}
    }

# ────────────────────────────────────────────────────
# Cache (optional Redis)
# ────────────────────────────────────────────────────
if ENV("REDIS_URL"):
    CACHES = {
        "default": {
            "BACKEND": "django_redis.cache.RedisCache",
            "LOCATION": ENV("REDIS_URL"),
            "OPTIONS": {"CLIENT_CLASS": "django_redis.client.DefaultClient"},
            "KEY_PREFIX": "bh",
            "TIMEOUT": 300,
        }
    }
else:
    CACHES = {"default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache", "LOCATION": "bh-cache"}}

# ────────────────────────────────────────────────────
# I18N
# ────────────────────────────────────────────────────
LANGUAGE_CODE = "pt-br"
TIME_ZONE = ENV("TIME_ZONE", "America/Sao_Paulo")
USE_I18N = True
USE_TZ = True

# ────────────────────────────────────────────────────
# Static (WhiteNoise)
# ────────────────────────────────────────────────────
STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {
        "BACKEND": (
            "django.contrib.staticfiles.storage.StaticFilesStorage" if DEBUG
            else "whitenoise.storage.CompressedManifestStaticFilesStorage"
        )
    },
}
WHITENOISE_AUTOREFRESH = DEBUG

# ────────────────────────────────────────────────────
# Auth / misc
# ────────────────────────────────────────────────────
LOGIN_URL = "/site-admin/login/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ────────────────────────────────────────────────────
# Security (PROD only)
# ────────────────────────────────────────────────────
SESSION_COOKIE_SAMESITE = ENV("SESSION_COOKIE_SAMESITE", "Lax")
CSRF_COOKIE_SAMESITE = ENV("CSRF_COOKIE_SAMESITE", "Lax")

if not DEBUG:
    SECURE_SSL_REDIRECT = env_bool("SECURE_SSL_REDIRECT", "true")
    SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
    SECURE_HSTS_SECONDS = 31536000
    SECURE_CONTENT_TYPE_NOSNIFF = True
    X_FRAME_OPTIONS = "DENY"
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True

# ────────────────────────────────────────────────────
# Logging (simple and sufficient)
# ────────────────────────────────────────────────────
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "level": "DEBUG", "formatter": "simple"},
        "null": {"class": "logging.NullHandler"},
    },
    "root": {"handlers": ["console"] if DEBUG else ["null"], "level": "DEBUG" if DEBUG else "INFO"},
    "loggers": {
        "django.request": {
            "handlers": ["console"] if DEBUG else ["null"],
            "level": "WARNING",
            "propagate": False,
        },
        "banco_horas": {
            "handlers": ["console"],
            "level": ENV("BANCO_HORAS_LOG_LEVEL", "DEBUG" if DEBUG else "INFO"),
            "propagate": False,
        },
    },
}

# ────────────────────────────────────────────────────
# Supabase (consumption RPC)
# ────────────────────────────────────────────────────
SUPABASE_REST_URL = ENV("SUPABASE_REST_URL")
SUPABASE_API_KEY = ENV("SUPABASE_API_KEY")
SUPABASE_JWT_SECRET = ENV("SUPABASE_JWT_SECRET")

# ────────────────────────────────────────────────────
# Banco de horas
# ────────────────────────────────────────────────────
# "orm" (tabelas locais de apontamentos/requerimentos) ou "supabase" (RPC)
BANCO_HORAS_CONSUMO_PROVIDER = ENV("BANCO_HORAS_CONSUMO_PROVIDER", "orm")
BANCO_HORAS_RETRY_TENTATIVAS = int(ENV("BANCO_HORAS_RETRY_TENTATIVAS", "3"))
BANCO_HORAS_RETRY_BACKOFF = float(ENV("BANCO_HORAS_RETRY_BACKOFF", "0.5"))
BANCO_HORAS_RPC_TIMEOUT = float(ENV("BANCO_HORAS_RPC_TIMEOUT", "15"))

# Celery
CELERY_BROKER_URL = ENV("CELERY_BROKER_URL", default="memory://")
CELERY_RESULT_BACKEND = ENV("CELERY_RESULT_BACKEND", default="cache+memory://")
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_BEAT_SCHEDULER = "django_celery_beat.schedulers:DatabaseScheduler"
