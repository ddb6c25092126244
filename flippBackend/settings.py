"""
Django settings for the Flipp marketplace backend.

Every deployment-specific value is read from the environment. Checkout,
gateway and carrier settings are validated once at startup by
``payment_system.apps.PaymentSystemConfig.ready``.
"""

import os
from datetime import timedelta
from pathlib import Path

from django.core.exceptions import ImproperlyConfigured


BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


SECRET_KEY = os.environ.get("SECRET_KEY")
if not SECRET_KEY:
    raise ImproperlyConfigured("SECRET_KEY environment variable is required")

DEBUG = env_bool("DEBUG", False)

ALLOWED_HOSTS = [host for host in os.environ.get("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if host]


# Application definition

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Third party
    "rest_framework",
    "drf_spectacular",
    # Local apps
    "marketplace",
    "payment_system",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "flippBackend.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "flippBackend.wsgi.application"
ASGI_APPLICATION = "flippBackend.asgi.application"


# Database

DATABASES = {
    "default": {
        "ENGINE": os.environ.get("DB_ENGINE", "django.db.backends.postgresql"),
        "NAME": os.environ.get("DB_NAME", "flipp"),
        "USER": os.environ.get("DB_USER", "flipp"),
        "PASSWORD": os.environ.get("DB_PASSWORD", ""),
        "HOST": os.environ.get("DB_HOST", "localhost"),
        "PORT": os.environ.get("DB_PORT", "5432"),
        "CONN_MAX_AGE": int(os.environ.get("DB_CONN_MAX_AGE", "60")),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.redis.RedisCache",
        "LOCATION": os.environ.get("REDIS_CACHE_URL", "redis://localhost:6379/2"),
    }
}


# Internationalization

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"


# REST framework
# Tokens are issued by the authentication service; this backend only validates them.

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework_simplejwt.authentication.JWTAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=int(os.environ.get("JWT_ACCESS_MINUTES", "60"))),
    "SIGNING_KEY": os.environ.get("JWT_SIGNING_KEY", SECRET_KEY),
    "AUTH_HEADER_TYPES": ("Bearer",),
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Flipp Checkout API",
    "DESCRIPTION": "Checkout, fulfillment and sponsored-listing endpoints",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}


# Celery

CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")


# Event bus: "redis" publishes on CELERY_BROKER_URL, "memory" keeps events in process

EVENT_BUS_BACKEND = os.environ.get("EVENT_BUS_BACKEND", "redis")
EVENT_BUS_CHANNEL_PREFIX = os.environ.get("EVENT_BUS_CHANNEL_PREFIX", "events")


# Settlement and exchange rates

SETTLEMENT_CURRENCY = os.environ.get("SETTLEMENT_CURRENCY", "INR")
EXCHANGE_RATE_BASE_CURRENCY = os.environ.get("EXCHANGE_RATE_BASE_CURRENCY", "USD")
EXCHANGE_RATE_API_URL = os.environ.get("EXCHANGE_RATE_API_URL", "https://api.exchangerate-api.com/v4/latest/")
EXCHANGE_RATE_REFRESH_SECONDS = int(os.environ.get("EXCHANGE_RATE_REFRESH_SECONDS", "3600"))
EXCHANGE_RATE_BACKGROUND_REFRESH = env_bool("EXCHANGE_RATE_BACKGROUND_REFRESH", True)
EXCHANGE_RATE_KEEP_DAYS = int(os.environ.get("EXCHANGE_RATE_KEEP_DAYS", "7"))


# Payment gateway

PAYMENT_GATEWAY = os.environ.get("PAYMENT_GATEWAY", "razorpay")
RAZORPAY_KEY_ID = os.environ.get("RAZORPAY_KEY_ID", "")
RAZORPAY_KEY_SECRET = os.environ.get("RAZORPAY_KEY_SECRET", "")
RAZORPAY_API_URL = os.environ.get("RAZORPAY_API_URL", "https://api.razorpay.com/v1")
PAYMENT_MINIMUM_AMOUNT_MINOR = int(os.environ.get("PAYMENT_MINIMUM_AMOUNT_MINOR", "100"))
PAYMENT_TIMEOUT_MINUTES = int(os.environ.get("PAYMENT_TIMEOUT_MINUTES", "30"))
PAYMENT_MERCHANT_NAME = os.environ.get("PAYMENT_MERCHANT_NAME", "Flipp")


# Shipping carrier

SHIPPING_CARRIER = os.environ.get("SHIPPING_CARRIER", "shiprocket")
SHIPROCKET_EMAIL = os.environ.get("SHIPROCKET_EMAIL", "")
SHIPROCKET_PASSWORD = os.environ.get("SHIPROCKET_PASSWORD", "")
SHIPROCKET_API_URL = os.environ.get("SHIPROCKET_API_URL", "https://apiv2.shiprocket.in/v1/external")
SHIPROCKET_PICKUP_LOCATION = os.environ.get("SHIPROCKET_PICKUP_LOCATION", "Primary")
SHIPROCKET_TOKEN_TTL_SECONDS = int(os.environ.get("SHIPROCKET_TOKEN_TTL_SECONDS", str(9 * 24 * 3600)))
SHIPPING_DEFAULT_WEIGHT_KG = os.environ.get("SHIPPING_DEFAULT_WEIGHT_KG", "0.5")
SHIPPING_DEFAULT_DIMENSIONS_CM = (10, 10, 10)


# Sponsored listings

AD_CAMPAIGN_DAILY_RATE = int(os.environ.get("AD_CAMPAIGN_DAILY_RATE", "100"))
AD_CAMPAIGN_MIN_DAYS = 7
AD_CAMPAIGN_MAX_DAYS = 180


# Logging

LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG" if DEBUG else "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{asctime} {levelname} {name} {message}",
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
        "marketplace": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "payment_system": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "infrastructure": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "utils": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}
