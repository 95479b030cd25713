from datetime import timedelta
from pathlib import Path

from decouple import config, Csv
from kombu import Queue
import dj_database_url

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# Quick-start development settings - unsuitable for production
SECRET_KEY = config('SECRET_KEY', default='codyssey-insecure-dev-key')

DEBUG = config('DEBUG', default=False, cast=bool)

ALLOWED_HOSTS = config('ALLOWED_HOSTS', default='localhost,127.0.0.1,testserver', cast=Csv())

# Application definition
INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    # Local
    'core',
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

ROOT_URLCONF = 'codyssey_project.urls'

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

WSGI_APPLICATION = 'codyssey_project.wsgi.application'

# Database
# Uses DATABASE_URL from .env
DATABASES = {
    'default': dj_database_url.config(
        default=config('DATABASE_URL', default='sqlite:///db.sqlite3')
    )
}

# Cache
# Dashboard views live in the "dashboard" alias. Without REDIS_URL both aliases
# fall back to process-local memory.
REDIS_URL = config('REDIS_URL', default='')
if REDIS_URL:
    CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.redis.RedisCache',
            'LOCATION': REDIS_URL,
        },
        'dashboard': {
            'BACKEND': 'django.core.cache.backends.redis.RedisCache',
            'LOCATION': REDIS_URL,
            'KEY_PREFIX': 'codyssey',
        },
    }
else:
    CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
            'LOCATION': 'codyssey-default',
        },
        'dashboard': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
            'LOCATION': 'codyssey-dashboard',
        },
    }

# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator',
    },
]

# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# Static files (CSS, JavaScript, Images)
STATIC_URL = 'static/'

# Session/CSRF security
SESSION_COOKIE_HTTPONLY = True
if not DEBUG:
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True

# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Logging
LOG_LEVEL = config('LOG_LEVEL', default='INFO').upper()
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'default': {
            'format': '%(asctime)s %(levelname)s [%(name)s] %(message)s',
        },
    },
    'handlers': {
        'default': {
            'class': 'logging.StreamHandler',
            'formatter': 'default',
        },
    },
    'root': {
        'handlers': ['default'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'urllib3': {
            'level': 'WARNING',
        },
    },
}

# Celery Configuration
CELERY_BROKER_URL = config('CELERY_BROKER_URL', default='redis://localhost:6379/0')
CELERY_RESULT_BACKEND = config('CELERY_RESULT_BACKEND', default='redis://localhost:6379/0')
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_DEFAULT_QUEUE = 'celery'
CELERY_TASK_QUEUES = (
    Queue('celery'),
    Queue('upstream_slow'),
)
CELERY_TASK_ROUTES = {
    'core.tasks.refresh_leetcode_totals': {'queue': 'upstream_slow'},
}
CELERY_BEAT_SCHEDULE = {
    'refresh-leetcode-totals': {
        'task': 'core.tasks.refresh_leetcode_totals',
        'schedule': timedelta(hours=12),
    },
}

# Upstream platforms
LEETCODE_GRAPHQL_URL = config('LEETCODE_GRAPHQL_URL', default='https://leetcode.com/graphql')
LEETCODE_STATS_API_URL = config('LEETCODE_STATS_API_URL', default='https://leetcode-stats-api.herokuapp.com')
LEETCODE_PROBLEMS_URL = config('LEETCODE_PROBLEMS_URL', default='https://leetcode.com/api/problems/all/')
LEETCODE_RECENT_LIMIT = config('LEETCODE_RECENT_LIMIT', default=20, cast=int)
CODEFORCES_API_URL = config('CODEFORCES_API_URL', default='https://codeforces.com/api')
CF_PRACTICE_COUNT = config('CF_PRACTICE_COUNT', default=20, cast=int)
CF_ACTIVITY_COUNT = config('CF_ACTIVITY_COUNT', default=1000, cast=int)
UPSTREAM_TIMEOUT_SECONDS = config('UPSTREAM_TIMEOUT_SECONDS', default=10, cast=int)
UPSTREAM_FETCH_DEADLINE_SECONDS = config('UPSTREAM_FETCH_DEADLINE_SECONDS', default=25, cast=int)

# Dashboard cache
DASHBOARD_CACHE_ALIAS = config('DASHBOARD_CACHE_ALIAS', default='dashboard')
DASHBOARD_STATS_TTL = config('DASHBOARD_STATS_TTL', default=300, cast=int)
DASHBOARD_PRACTICE_TTL = config('DASHBOARD_PRACTICE_TTL', default=300, cast=int)
DASHBOARD_ACTIVITY_TTL = config('DASHBOARD_ACTIVITY_TTL', default=600, cast=int)
LEETCODE_TOTALS_TTL = config('LEETCODE_TOTALS_TTL', default=24 * 3600, cast=int)
PRACTICE_SUGGESTION_LIMIT = config('PRACTICE_SUGGESTION_LIMIT', default=5, cast=int)
