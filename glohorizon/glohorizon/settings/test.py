import os

os.environ.setdefault('SECRET_KEY', 'test-secret-key-not-for-production')

from .base import *

DEBUG = False

# File-backed so threaded tests can open their own connections. IMMEDIATE makes
# concurrent writers queue on the busy timeout instead of failing with "locked".
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': str(BASE_DIR / 'test_glohorizon.sqlite3'),
        'OPTIONS': {'transaction_mode': 'IMMEDIATE', 'timeout': 20},
        'TEST': {'NAME': str(BASE_DIR / 'test_glohorizon.sqlite3')},
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

ADMIN_NOTIFICATION_EMAILS = ['ops@glohorizonsgh.com', 'sales@glohorizonsgh.com']
ADMIN_NOTIFICATION_PHONES = ['+233200000001']

MNOTIFY_API_KEY = 'test-mnotify-key'
RESEND_API_KEY = 're_test'
PAYSTACK_SECRET_KEY = 'sk_test_secret'

NOTIFICATION_TIMEOUT_SECONDS = 2

LOGGING['root']['level'] = 'WARNING'
