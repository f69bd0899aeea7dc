import re
from datetime import timedelta
from pathlib import Path

import structlog
from celery.schedules import crontab
from decouple import Choices, Csv, config
from dj_database_url import parse as db_url

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# Security - Fail Fast: no default forces explicit configuration
SECRET_KEY = config("SECRET_KEY")

DEBUG = config("DEBUG", default=False, cast=bool)

ALLOWED_HOSTS = config("ALLOWED_HOSTS", default="127.0.0.1,localhost", cast=Csv())

# Application definition
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Third-party
    "rest_framework",
    "corsheaders",
    "django_filters",
    "drf_spectacular",
    # Local Apps (Modules)
    "modules.core",
    "modules.catalog",
    "modules.coupons",
    "modules.orders",
    "modules.notifications",
    "modules.payments",
    "modules.payouts",
]

MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "modules.core.middleware.CorrelationIdMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

# Webhook ingress paths arrive with provider-side double slashes
APPEND_SLASH = False

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
    },
]

WSGI_APPLICATION = "config.wsgi.application"

DATABASES = {
    "default": config(
        "DATABASE_URL", default=f'sqlite:///{BASE_DIR / "db.sqlite3"}', cast=db_url
    )
}

# Cache - Redis
REDIS_URL = config("REDIS_URL", default="redis://localhost:6379/0")

CACHES = {
    "default": {
        "BACKEND": "django_redis.cache.RedisCache",
        "LOCATION": REDIS_URL,
        "OPTIONS": {
            "CLIENT_CLASS": "django_redis.client.DefaultClient",
        },
    }
}

# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"
    },
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

# Internationalization
LANGUAGE_CODE = "pt-br"
TIME_ZONE = "America/Sao_Paulo"
USE_I18N = True
USE_TZ = True

# ---------------------------------------------------------------------------
# Email
# ---------------------------------------------------------------------------
EMAIL_BACKEND = config(
    "EMAIL_BACKEND", default="django.core.mail.backends.smtp.EmailBackend"
)
EMAIL_HOST = config("EMAIL_HOST", default="localhost")
EMAIL_PORT = config("EMAIL_PORT", default=587, cast=int)
EMAIL_HOST_USER = config("EMAIL_HOST_USER", default="")
EMAIL_HOST_PASSWORD = config("EMAIL_HOST_PASSWORD", default="")
EMAIL_USE_TLS = config("EMAIL_USE_TLS", default=True, cast=bool)
DEFAULT_FROM_EMAIL = config("DEFAULT_FROM_EMAIL", default="loja@example.com")
STORE_NAME = config("STORE_NAME", default="Livraria")

# ---------------------------------------------------------------------------
# Payments (gateway, reservation windows, PIX watcher)
# ---------------------------------------------------------------------------
# "stub" fakes approvals and is opt-in for local runs; tests pin it.
PAYMENTS_GATEWAY_MODE = config(
    "PAYMENTS_GATEWAY_MODE", default="efi", cast=Choices(["efi", "stub"])
)
EFI_SANDBOX = config("EFI_SANDBOX", default=True, cast=bool)
EFI_PIX_BASE_URL = config(
    "EFI_PIX_BASE_URL",
    default="https://pix-h.api.efipay.com.br"
    if EFI_SANDBOX
    else "https://pix.api.efipay.com.br",
)
EFI_CARD_BASE_URL = config(
    "EFI_CARD_BASE_URL",
    default="https://cobrancas-h.api.efipay.com.br"
    if EFI_SANDBOX
    else "https://cobrancas.api.efipay.com.br",
)
EFI_CLIENT_ID = config("EFI_CLIENT_ID", default="")
EFI_CLIENT_SECRET = config("EFI_CLIENT_SECRET", default="")
EFI_CERT_PATH = config("EFI_CERT_PATH", default="")
EFI_PIX_KEY = config("EFI_PIX_KEY", default="")
GATEWAY_CONNECT_TIMEOUT = config("GATEWAY_CONNECT_TIMEOUT", default=15, cast=int)
GATEWAY_READ_TIMEOUT = config("GATEWAY_READ_TIMEOUT", default=30, cast=int)

MIN_ORDER_TOTAL = config("MIN_ORDER_TOTAL", default="0.01")

PIX_RESERVATION_TTL_SECONDS = config(
    "PIX_RESERVATION_TTL_SECONDS", default=300, cast=int
)
PIX_WARNING_AT_SECONDS = config("PIX_WARNING_AT_SECONDS", default=10, cast=int)
PIX_SECURITY_WARNING_AT_SECONDS = config(
    "PIX_SECURITY_WARNING_AT_SECONDS", default=10, cast=int
)
CARD_RESERVATION_TTL_SECONDS = config(
    "CARD_RESERVATION_TTL_SECONDS", default=900, cast=int
)
CARD_WARNING_AT_SECONDS = config("CARD_WARNING_AT_SECONDS", default=60, cast=int)
CARD_SECURITY_WARNING_AT_SECONDS = config(
    "CARD_SECURITY_WARNING_AT_SECONDS", default=60, cast=int
)

PIX_WATCH_OFFSETS = config(
    "PIX_WATCH_OFFSETS",
    default="10,20,30,60,120,180,240,270,285,295,300",
    cast=Csv(int),
)
PIX_WATCH_SAFETY_MARGIN_SECONDS = config(
    "PIX_WATCH_SAFETY_MARGIN_SECONDS", default=10, cast=int
)
RESERVATION_SWEEP_INTERVAL_SECONDS = config(
    "RESERVATION_SWEEP_INTERVAL_SECONDS", default=300, cast=int
)

# ---------------------------------------------------------------------------
# Payouts (settlement to the seller)
# ---------------------------------------------------------------------------
PAYOUT_SETTLEMENT_MODE = config(
    "PAYOUT_SETTLEMENT_MODE", default="efi", cast=Choices(["efi", "stub"])
)
PAYOUT_FEE_PERCENT = config("PAYOUT_FEE_PERCENT", default="0.00")
PAYOUT_FEE_FIXED = config("PAYOUT_FEE_FIXED", default="0.00")
PAYOUT_MARGIN_PERCENT = config("PAYOUT_MARGIN_PERCENT", default="0.00")
PAYOUT_MARGIN_FIXED = config("PAYOUT_MARGIN_FIXED", default="0.00")
PAYOUT_INCLUDE_GATEWAY_FEES = config(
    "PAYOUT_INCLUDE_GATEWAY_FEES", default=True, cast=bool
)
PAYOUT_MIN_SEND = config("PAYOUT_MIN_SEND", default="1.20")
PAYOUT_FAVORED_KEY = config("PAYOUT_FAVORED_KEY", default="")
PAYOUT_CARD_DELAY_DAYS = config("PAYOUT_CARD_DELAY_DAYS", default=32, cast=int)
PAYOUT_CARD_BATCH_SIZE = config("PAYOUT_CARD_BATCH_SIZE", default=100, cast=int)

# ---------------------------------------------------------------------------
# Celery (async tasks via Redis)
# ---------------------------------------------------------------------------
CELERY_BROKER_URL = config("CELERY_BROKER_URL", default="redis://localhost:6379/0")
CELERY_RESULT_BACKEND = config(
    "CELERY_RESULT_BACKEND", default="redis://localhost:6379/0"
)
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE

OUTBOX_MAX_RETRIES = config("OUTBOX_MAX_RETRIES", default=10, cast=int)
OUTBOX_STALE_AFTER_SECONDS = config(
    "OUTBOX_STALE_AFTER_SECONDS", default=300, cast=int
)

CELERY_BEAT_SCHEDULE = {
    "invalidate-expired-reservations": {
        "task": "payments.invalidate_expired_reservations",
        "schedule": float(RESERVATION_SWEEP_INTERVAL_SECONDS),
    },
    "dispatch-pending-outbox": {
        "task": "core.dispatch_pending_outbox",
        "schedule": 60.0,
    },
    "trigger-due-card-payouts": {
        "task": "payouts.trigger_due_card_payouts",
        "schedule": crontab(hour=3, minute=17),
    },
}

# Static files (CSS, JavaScript, Images)
STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# Default primary key field type
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# DRF Configuration: fail closed, everything requires auth by default
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework_simplejwt.authentication.JWTAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_THROTTLE_CLASSES": [
        "rest_framework.throttling.AnonRateThrottle",
        "rest_framework.throttling.UserRateThrottle",
        "rest_framework.throttling.ScopedRateThrottle",
    ],
    "DEFAULT_THROTTLE_RATES": {
        "anon": "1000/day",
        "user": "1000/hour",
        "checkout": "10/minute",
        "order_listing": "100/minute",
    },
    "DEFAULT_PAGINATION_CLASS": "modules.core.pagination.StandardResultsSetPagination",
    "PAGE_SIZE": config("DEFAULT_PAGE_SIZE", default=20, cast=int),
    "DEFAULT_FILTER_BACKENDS": ["django_filters.rest_framework.DjangoFilterBackend"],
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
    ],
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "EXCEPTION_HANDLER": "modules.core.exceptions.api_exception_handler",
}

if DEBUG:
    REST_FRAMEWORK["DEFAULT_RENDERER_CLASSES"].append(
        "rest_framework.renderers.BrowsableAPIRenderer"
    )

# ---------------------------------------------------------------------------
# SimpleJWT (operator/admin endpoints)
# ---------------------------------------------------------------------------
SIMPLE_JWT = {
    "ALGORITHM": "HS256",
    "SIGNING_KEY": SECRET_KEY,
    "AUTH_HEADER_TYPES": ("Bearer",),
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=15),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=1),
}

# CORS (storefront origin)
CORS_ALLOWED_ORIGINS = config(
    "CORS_ALLOWED_ORIGINS", default="http://localhost:5173", cast=Csv()
)

# CSRF
CSRF_TRUSTED_ORIGINS = config(
    "CSRF_TRUSTED_ORIGINS", default="http://localhost:5173", cast=Csv()
)

# ---------------------------------------------------------------------------
# drf-spectacular (OpenAPI / Swagger)
# ---------------------------------------------------------------------------
SPECTACULAR_SETTINGS = {
    "TITLE": "Livraria Checkout API",
    "DESCRIPTION": "Checkout PIX/cartão, conciliação de pagamentos e repasses.",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
    "SECURITY": [{"BearerAuth": []}],
    "APPEND_COMPONENTS": {
        "securitySchemes": {
            "BearerAuth": {
                "type": "http",
                "scheme": "bearer",
                "bearerFormat": "JWT",
            }
        }
    },
}

# ---------------------------------------------------------------------------
# Structured Logging (structlog + Django LOGGING)
# ---------------------------------------------------------------------------
SENSITIVE_PATTERN = re.compile(
    r"(\d{3}\.?\d{3}\.?\d{3}-?\d{2})"  # CPF
    r"|(\d{2}\.?\d{3}\.?\d{3}/?\d{4}-?\d{2})"  # CNPJ
    r"|(password|passwd|secret|token|authorization|client_secret|payment_token)"
    r"""([=:]\s*["']?)([^\s,}"']+)""",
    re.IGNORECASE,
)


def mask_sensitive_data(_, __, event_dict):
    """Processor that masks CPF, CNPJ, secrets and card tokens in log values."""
    for key, value in list(event_dict.items()):
        if isinstance(value, str):
            event_dict[key] = SENSITIVE_PATTERN.sub("***MASKED***", value)
    return event_dict


# Shared processors used by both structlog and stdlib logging
_shared_processors = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
    mask_sensitive_data,
    structlog.processors.StackInfoRenderer(),
    structlog.processors.UnicodeDecoder(),
]

structlog.configure(
    processors=[
        *_shared_processors,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "json": {
            "()": structlog.stdlib.ProcessorFormatter,
            "processors": [
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.JSONRenderer(),
            ],
            "foreign_pre_chain": _shared_processors,
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "INFO",
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
        "django.server": {
            "handlers": ["console"],
            "level": "WARNING",
            "propagate": False,
        },
    },
}
