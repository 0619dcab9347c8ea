"""
Django settings for the tracker-hub project.

Generated for Django 5.0, using Python 3.12+.
For more information on this file, see
https://docs.djangoproject.com/en/5.0/topics/settings/

For the full list of settings and their values, see
https://docs.djangoproject.com/en/5.0/ref/settings/
"""

from pathlib import Path

from decouple import config

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR: Path = Path(__file__).resolve().parent.parent


# Quick-start development settings - unsuitable for production
# See https://docs.djangoproject.com/en/5.0/howto/deployment/checklist/

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY: str = str(config('SECRET_KEY', default='django-insecure-change-me-in-production'))

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG: bool = config('DEBUG', default=True, cast=bool)

ALLOWED_HOSTS: list[str] = ['*']


# Application definition

INSTALLED_APPS: list[str] = [
    'daphne',
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'channels',
    'tracker_hub.apps.TrackerHubConfig',
]

MIDDLEWARE: list[str] = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF: str = 'config.urls'

TEMPLATES: list[dict] = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION: str = 'config.wsgi.application'
ASGI_APPLICATION: str = 'config.asgi.application'


# Database
# https://docs.djangoproject.com/en/5.0/ref/settings/#databases

DATABASES: dict = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'db.sqlite3',
    }
}


# Internationalization
# https://docs.djangoproject.com/en/5.0/topics/i18n/

LANGUAGE_CODE: str = 'en-us'

TIME_ZONE: str = 'UTC'

USE_I18N: bool = True

USE_TZ: bool = True


# Static files (CSS, JavaScript, Images)
# https://docs.djangoproject.com/en/5.0/howto/static-files/

STATIC_URL: str = 'static/'

# Default primary key field type
# https://docs.djangoproject.com/en/5.0/ref/settings/#default-auto-field

DEFAULT_AUTO_FIELD: str = 'django.db.models.BigAutoField'


# REST Framework settings
REST_FRAMEWORK: dict = {
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
    ],
    'DEFAULT_AUTHENTICATION_CLASSES': [],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.AllowAny',
    ],
}


# Tracker hub settings

# Shared secret required on ingest, credential and config-write endpoints.
# Empty means every protected endpoint rejects.
TRACKER_API_KEY: str = str(config('API_KEY', default=''))

# 'database' stores documents in the Document model, 'files' in DOCUMENT_DIR
TRACKER_DOCUMENT_STORE: str = str(config('DOCUMENT_STORE', default='database'))
TRACKER_DOCUMENT_DIR: Path = Path(str(config('DOCUMENT_DIR', default=str(BASE_DIR / 'data'))))

# Seconds without any packet before the tracker is reported offline
TRACKER_STALE_AFTER_SECONDS: int = config('STALE_AFTER_SECONDS', default=60, cast=int)

# Answer 503 instead of acknowledging an ingest whose fix could not be stored
TRACKER_REQUIRE_DURABLE_WRITE: bool = config('FIX_REQUIRE_DURABLE_WRITE', default=False, cast=bool)


# Logging configuration
import logging
import time

LOG_LEVEL: str = str(config('LOG_LEVEL', default='INFO')).upper()

# TRACE sits below DEBUG
TRACE_LEVEL = 5
logging.addLevelName(TRACE_LEVEL, 'TRACE')

def trace(self, message, *args, **kwargs):
    if self.isEnabledFor(TRACE_LEVEL):
        self._log(TRACE_LEVEL, message, args, **kwargs)

logging.Logger.trace = trace

class HealthCheckFilter(logging.Filter):
    """Demote /health/ access lines to TRACE; load balancers poll it constantly."""

    def filter(self, record):
        if hasattr(record, 'msg') and '/health/' in str(record.msg):
            record.levelno = TRACE_LEVEL
            record.levelname = 'TRACE'
        return True

class LocalTimeFormatter(logging.Formatter):
    """Timestamps in the host's local time, which is what the device logs use too."""

    def formatTime(self, record, datefmt=None):
        ct = self.converter(record.created)
        if datefmt:
            s = time.strftime(datefmt, ct)
        else:
            s = time.strftime("%Y-%m-%d %H:%M:%S", ct)
            s = "%s,%03d" % (s, record.msecs)
        return s

    converter = time.localtime

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'filters': {
        'health_check_filter': {
            '()': 'config.settings.HealthCheckFilter',
        },
    },
    'formatters': {
        'verbose': {
            '()': 'config.settings.LocalTimeFormatter',
            'format': '%(asctime)s.%(msecs)03d %(levelname)-7s %(module)s %(message)s',
            'datefmt': '%Y%m%d-%H:%M:%S',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
            'filters': ['health_check_filter'],
        },
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'tracker_hub': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'django.server': {
            'handlers': ['console'],
            'level': TRACE_LEVEL,
            'propagate': False,
        },
    },
}

def _parse_csrf_origins(value: str) -> list[str]:
    """Parse comma-separated CSRF origins from environment."""
    return [s.strip() for s in value.split(',') if s.strip()]

CSRF_TRUSTED_ORIGINS: list[str] = _parse_csrf_origins(
    str(config('CSRF_TRUSTED_ORIGINS', default=''))
)

# Channels configuration
CHANNEL_LAYERS: dict = {
    'default': {
        'BACKEND': 'channels.layers.InMemoryChannelLayer',
    }
}
