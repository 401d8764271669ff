"""Django settings for the Boost SMM reseller backend."""

import os
from datetime import timedelta
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'django-insecure-dev-key')
DEBUG = env_bool('DJANGO_DEBUG', False)
ALLOWED_HOSTS = [h for h in os.getenv('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',') if h]

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'django.contrib.sessions',
    'rest_framework',
    'users',
    'services',
    'orders',
    'payments',
    'notifications',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
]

ROOT_URLCONF = 'config.urls'
WSGI_APPLICATION = 'config.wsgi.application'

if os.getenv('POSTGRES_DB'):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.getenv('POSTGRES_DB'),
            'USER': os.getenv('POSTGRES_USER', 'postgres'),
            'PASSWORD': os.getenv('POSTGRES_PASSWORD', ''),
            'HOST': os.getenv('POSTGRES_HOST', 'localhost'),
            'PORT': os.getenv('POSTGRES_PORT', '5432'),
            'ATOMIC_REQUESTS': False,
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }

AUTH_USER_MODEL = 'users.User'
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'Africa/Lagos'
USE_I18N = True
USE_TZ = True

REDIS_URL = os.getenv('REDIS_URL', '')

if REDIS_URL:
    CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.redis.RedisCache',
            'LOCATION': REDIS_URL,
        }
    }
else:
    CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        }
    }

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework.authentication.SessionAuthentication',
        'rest_framework.authentication.BasicAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
}

# Email
EMAIL_BACKEND = os.getenv('EMAIL_BACKEND', 'django.core.mail.backends.console.EmailBackend')
DEFAULT_FROM_EMAIL = os.getenv('DEFAULT_FROM_EMAIL', 'Boost <no-reply@boostlab.com>')

# Celery
CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', REDIS_URL or 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = os.getenv('CELERY_RESULT_BACKEND', CELERY_BROKER_URL)
CELERY_TASK_ALWAYS_EAGER = env_bool('CELERY_TASK_ALWAYS_EAGER', False)
CELERY_TIMEZONE = TIME_ZONE

RECONCILIATION_INTERVAL_SECONDS = int(os.getenv('RECONCILIATION_INTERVAL_SECONDS', '300'))
RECONCILIATION_BATCH_SIZE = int(os.getenv('RECONCILIATION_BATCH_SIZE', '100'))
RECONCILIATION_BATCH_DELAY_SECONDS = float(os.getenv('RECONCILIATION_BATCH_DELAY_SECONDS', '1'))
UNPAID_ORDER_RETENTION_DAYS = int(os.getenv('UNPAID_ORDER_RETENTION_DAYS', '3'))

CELERY_BEAT_SCHEDULE = {
    'reconcile-processing-orders': {
        'task': 'orders.tasks.reconcile_processing_orders',
        'schedule': timedelta(seconds=RECONCILIATION_INTERVAL_SECONDS),
    },
    'cleanup-unpaid-orders': {
        'task': 'orders.tasks.cleanup_unpaid_orders',
        'schedule': timedelta(days=1),
    },
    'sync-provider-services': {
        'task': 'services.tasks.sync_all_provider_services',
        'schedule': timedelta(days=1),
    },
}

# BudPay gateway
BUDPAY_API_URL = os.getenv('BUDPAY_API_URL', 'https://api.budpay.com/api/v2')
BUDPAY_SECRET_KEY = os.getenv('BUDPAY_SECRET_KEY', '')
BUDPAY_TIMEOUT = int(os.getenv('BUDPAY_TIMEOUT', '30'))

# Payment matching
BUDPAY_KNOWN_FEE = os.getenv('BUDPAY_KNOWN_FEE', '50')
PAYMENT_AMOUNT_TOLERANCE = os.getenv('PAYMENT_AMOUNT_TOLERANCE', '1')
PAYMENT_MATCH_TIE_POLICY = os.getenv('PAYMENT_MATCH_TIE_POLICY', 'review')
PAYMENT_MATCH_AUTO_APPLY_AMOUNT_ONLY = env_bool('PAYMENT_MATCH_AUTO_APPLY_AMOUNT_ONLY', True)

# Crypto payments
CRYPTO_WALLET_ADDRESS = os.getenv('CRYPTO_WALLET_ADDRESS', '')
CRYPTO_NETWORK = os.getenv('CRYPTO_NETWORK', 'TRC20')

# Upstream SMM provider
SMM_PROVIDER_API_URL = os.getenv('SMM_PROVIDER_API_URL', 'https://smmstone.com/api/v2')
SMM_PROVIDER_API_KEY = os.getenv('SMM_PROVIDER_API_KEY', '')
SMM_PROVIDER_TIMEOUT = int(os.getenv('SMM_PROVIDER_TIMEOUT', '30'))

# Pricing
SMM_MARKUP_PERCENTAGE = os.getenv('SMM_MARKUP_PERCENTAGE', '30')
USDT_EXCHANGE_RATE = os.getenv('USDT_EXCHANGE_RATE', '1500')

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '%(asctime)s %(levelname)s %(name)s %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False,
        },
    },
}
