"""
Django settings for portal_gateway project.
"""
import os
import sys
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'dev-secret-key-change-in-production')
DEBUG = os.getenv('DEBUG', 'True').lower() == 'true'
ALLOWED_HOSTS = os.getenv('ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',')

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'leads',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'portal_gateway.urls'

TEMPLATES = [
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

ASGI_APPLICATION = 'portal_gateway.asgi.application'

# Database configuration
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': os.getenv('DB_NAME', 'portal_gateway'),
        'USER': os.getenv('DB_USER', 'postgres'),
        'PASSWORD': os.getenv('DB_PASSWORD', 'postgres'),
        'HOST': os.getenv('DB_HOST', 'localhost'),
        'PORT': os.getenv('DB_PORT', '5432'),
    }
}

# Use SQLite for tests to avoid requiring a running PostgreSQL server
if (
    os.getenv('USE_SQLITE_FOR_TESTS', '').lower() == 'true'
    or any('pytest' in arg for arg in sys.argv)
    or os.getenv('PYTEST_CURRENT_TEST')
):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': os.getenv('SQLITE_NAME', ':memory:'),
        }
    }

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Celery configuration
CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = os.getenv('CELERY_RESULT_BACKEND', 'redis://localhost:6379/0')
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'

# Lead monitor scheduling
AUTOMATION_ADMISSION_INTERVAL_SECONDS = int(os.getenv('AUTOMATION_ADMISSION_INTERVAL_SECONDS', '30'))
AUTOMATION_PROCESSING_INTERVAL_SECONDS = int(os.getenv('AUTOMATION_PROCESSING_INTERVAL_SECONDS', '10'))
AUTOMATION_MAINTENANCE_INTERVAL_SECONDS = int(os.getenv('AUTOMATION_MAINTENANCE_INTERVAL_SECONDS', '86400'))
AUTOMATION_SCHEDULER_JITTER_SECONDS = float(os.getenv('AUTOMATION_SCHEDULER_JITTER_SECONDS', '2'))
AUTOMATION_ADMISSION_BATCH_SIZE = int(os.getenv('AUTOMATION_ADMISSION_BATCH_SIZE', '10'))
AUTOMATION_STALE_CLAIM_MINUTES = int(os.getenv('AUTOMATION_STALE_CLAIM_MINUTES', '15'))

# Queue policy
AUTOMATION_DEFAULT_PRIORITY = int(os.getenv('AUTOMATION_DEFAULT_PRIORITY', '5'))
AUTOMATION_MANUAL_PRIORITY = int(os.getenv('AUTOMATION_MANUAL_PRIORITY', '1'))
AUTOMATION_DEFAULT_MAX_ATTEMPTS = int(os.getenv('AUTOMATION_DEFAULT_MAX_ATTEMPTS', '3'))
AUTOMATION_DEFAULT_RETRY_DELAY_MINUTES = int(os.getenv('AUTOMATION_DEFAULT_RETRY_DELAY_MINUTES', '5'))

# Submission engine
AUTOMATION_SCREENSHOT_DIR = os.getenv(
    'AUTOMATION_SCREENSHOT_DIR',
    str(BASE_DIR / 'automation-screenshots')
)
AUTOMATION_SCREENSHOT_RETENTION_DAYS = int(os.getenv('AUTOMATION_SCREENSHOT_RETENTION_DAYS', '7'))
AUTOMATION_NAVIGATION_TIMEOUT_MS = int(os.getenv('AUTOMATION_NAVIGATION_TIMEOUT_MS', '30000'))
AUTOMATION_READY_TIMEOUT_MS = int(os.getenv('AUTOMATION_READY_TIMEOUT_MS', '10000'))
AUTOMATION_SUBMIT_WAIT_TIMEOUT_MS = int(os.getenv('AUTOMATION_SUBMIT_WAIT_TIMEOUT_MS', '15000'))
AUTOMATION_SETTLE_MS = int(os.getenv('AUTOMATION_SETTLE_MS', '2000'))
AUTOMATION_BROWSER_RESTART_THRESHOLD = int(os.getenv('AUTOMATION_BROWSER_RESTART_THRESHOLD', '3'))
AUTOMATION_HEADLESS = os.getenv('AUTOMATION_HEADLESS', 'True').lower() == 'true'

# Submission URL construction
AUTOMATION_SOURCE_TAG = os.getenv('AUTOMATION_SOURCE_TAG', 'PORTAL_GATEWAY')
AUTOMATION_TRANSACTION_PREFIX = os.getenv('AUTOMATION_TRANSACTION_PREFIX', 'pg')
AUTOMATION_REDACTED_PARAMS = [
    param.strip()
    for param in os.getenv('AUTOMATION_REDACTED_PARAMS', 'email,phone1,phone2,dob').split(',')
    if param.strip()
]

# Voice-call consent detection (comma separated override)
CALL_CONSENT_KEYWORDS = [
    keyword.strip().lower()
    for keyword in os.getenv('CALL_CONSENT_KEYWORDS', '').split(',')
    if keyword.strip()
] or [
    'yes, i consent',
    'i agree',
    'yes, i agree',
    'i give my consent',
    'yes to receive calls',
    "yes, that's fine",
    'i authorize',
    'i permit',
]

# Logging configuration
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {message}',
            'style': '{',
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
        'level': 'INFO',
    },
    'loggers': {
        'leads': {
            'handlers': ['console'],
            'level': 'DEBUG',
            'propagate': False,
        },
    },
}

# REST Framework configuration
REST_FRAMEWORK = {
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
    ],
}
