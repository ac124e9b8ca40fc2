"""
Django Settings for Soltip Project

Configuration file for the Soltip backend, a platform for creators to
receive USDC tips on Solana through a public tip page.

Key Features Configured:
- REST API via Django REST Framework with JWT cookie authentication
- MySQL database support with PyMySQL (SQLite fallback for development)
- Circle developer-controlled wallets and Solana RPC access
- Email verification and password reset mail (optionally DKIM-signed)
- IP-based rate limiting through DRF throttles
- File upload handling for creator avatars

Environment Variables Required:
- DJANGO_SECRET_KEY: Django secret key for cryptographic signing
- JWT_SECRET: Signing key for access/refresh tokens (defaults to the secret key)
- CIRCLE_API_KEY, CIRCLE_ENTITY_SECRET, CIRCLE_WALLET_SET_ID: Circle credentials
- MYSQL_* variables: Database connection parameters (optional)
- EMAIL_* / DKIM_* variables: Email backend configuration (optional)

For more information on Django settings:
https://docs.djangoproject.com/en/5.2/topics/settings/
"""

import os
from datetime import timedelta
from decimal import Decimal
from pathlib import Path
from dotenv import load_dotenv
import pymysql

# Configure PyMySQL to work as MySQLdb replacement
pymysql.install_as_MySQLdb()

# Build paths inside the project
BASE_DIR = Path(__file__).resolve().parent.parent

# Load environment variables from .env file
load_dotenv()

# Security Settings
SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'django-insecure-soltip-development-key-change-me-in-production')

# SECURITY WARNING: Don't run with debug turned on in production!
DEBUG = os.getenv("DJANGO_DEBUG", "False") == "True"

# Deployment environment name reported by the health endpoint
APP_ENV = os.getenv('APP_ENV', 'development')
IS_PRODUCTION = APP_ENV == 'production'

ALLOWED_HOSTS = [h.strip() for h in os.getenv('ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',') if h.strip()]

# Application Definition
INSTALLED_APPS = [
    # Default Django applications
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    # REST API stack
    'rest_framework',
    'rest_framework_simplejwt.token_blacklist',  # Refresh token rotation/revocation
    'corsheaders',

    # Soltip main application
    'soltip',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'corsheaders.middleware.CorsMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'core.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'core.wsgi.application'


# Database
# https://docs.djangoproject.com/en/5.2/ref/settings/#databases

if os.environ.get('MYSQL_DATABASE'):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.mysql',
            'NAME': os.environ.get('MYSQL_DATABASE'),
            'USER': os.environ.get('MYSQL_USER', 'soltip'),
            'PASSWORD': os.environ.get('MYSQL_PASSWORD', ''),
            'HOST': os.environ.get('MYSQL_HOST', 'localhost'),
            'PORT': os.environ.get('MYSQL_PORT', '3306'),
            'OPTIONS': {'charset': 'utf8mb4'},
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }

# Password validation
# https://docs.djangoproject.com/en/5.2/ref/settings/#auth-password-validators

AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
        'OPTIONS': {'min_length': 8},
    },
]


# Internationalization
# https://docs.djangoproject.com/en/5.2/topics/i18n/

LANGUAGE_CODE = 'en-us'

TIME_ZONE = 'UTC'

USE_I18N = True

USE_TZ = True


# Static files (CSS, JavaScript, Images)
# https://docs.djangoproject.com/en/5.2/howto/static-files/

STATIC_URL = 'static/'

# Default primary key field type
# https://docs.djangoproject.com/en/5.2/ref/settings/#default-auto-field

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

MEDIA_ROOT = os.environ.get('MEDIA_ROOT', str(BASE_DIR.parent / 'media'))  # Directory outside web root
MEDIA_URL = '/media/'  # Logical URL for media files


# Django REST Framework
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'soltip.authentication.CookieJWTAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.AllowAny',
    ],
    'DEFAULT_THROTTLE_CLASSES': [
        'soltip.throttles.GlobalRateThrottle',
    ],
    'DEFAULT_THROTTLE_RATES': {
        'global': '100/15m',
        'auth': '10/15m',
        'password_reset': '3/h',
        'api': '150/15m',
        'admin': '200/15m',
        'financial': '5/h',
        'user_creation': '5/d',
    },
    'EXCEPTION_HANDLER': 'soltip.responses.exception_handler',
    'COERCE_DECIMAL_TO_STRING': False,
    'TEST_REQUEST_DEFAULT_FORMAT': 'json',
}

# Rate limiting is skipped in development unless explicitly enabled
RATE_LIMIT_ENABLED = os.getenv('RATE_LIMIT_ENABLED', str(not DEBUG)) == 'True'


# JSON Web Tokens (djangorestframework-simplejwt)
JWT_ACCESS_MINUTES = int(os.getenv('JWT_ACCESS_MINUTES', '30'))
JWT_REFRESH_DAYS = int(os.getenv('JWT_REFRESH_DAYS', '7'))

SIMPLE_JWT = {
    'ACCESS_TOKEN_LIFETIME': timedelta(minutes=JWT_ACCESS_MINUTES),
    'REFRESH_TOKEN_LIFETIME': timedelta(days=JWT_REFRESH_DAYS),
    'ROTATE_REFRESH_TOKENS': True,
    'BLACKLIST_AFTER_ROTATION': True,
    'UPDATE_LAST_LOGIN': False,
    'ALGORITHM': 'HS256',
    'SIGNING_KEY': os.environ.get('JWT_SECRET', SECRET_KEY),
    'AUTH_HEADER_TYPES': ('Bearer',),
    'USER_ID_FIELD': 'id',
    'USER_ID_CLAIM': 'userId',
    'TOKEN_TYPE_CLAIM': 'tokenType',
}

# Auth cookies mirror the token lifetimes
ACCESS_TOKEN_COOKIE = 'accessToken'
REFRESH_TOKEN_COOKIE = 'refreshToken'
REFRESH_TOKEN_COOKIE_PATH = '/api/v1/auth/'
AUTH_COOKIE_SECURE = IS_PRODUCTION
AUTH_COOKIE_SAMESITE = 'None'


# CORS (frontend runs on a separate origin and sends credentials)
CORS_ALLOWED_ORIGINS = [o.strip() for o in os.getenv('CORS_ORIGINS', 'http://localhost:5173').split(',') if o.strip()]
CORS_ALLOW_CREDENTIALS = True

FRONTEND_URL = os.getenv('FRONTEND_URL', 'http://localhost:5173')


# Circle developer-controlled wallets
CIRCLE_API_URL = os.getenv('CIRCLE_API_URL', 'https://api.circle.com')
CIRCLE_API_KEY = os.getenv('CIRCLE_API_KEY', '')
CIRCLE_ENTITY_SECRET = os.getenv('CIRCLE_ENTITY_SECRET', '')
CIRCLE_WALLET_SET_ID = os.getenv('CIRCLE_WALLET_SET_ID', '')
CIRCLE_USDC_TOKEN_ID = os.getenv('CIRCLE_USDC_TOKEN_ID', '')
CIRCLE_BLOCKCHAIN = os.getenv('CIRCLE_BLOCKCHAIN', 'SOL-DEVNET')
CIRCLE_TIMEOUT = int(os.getenv('CIRCLE_TIMEOUT', '15'))

# Solana
SOLANA_RPC_URL = os.getenv('SOLANA_RPC_URL', 'https://api.devnet.solana.com')
USDC_MINT_ADDRESS = os.getenv('USDC_MINT_ADDRESS', '4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU')
SOLANA_TX_MAX_RETRIES = int(os.getenv('SOLANA_TX_MAX_RETRIES', '3'))
SOLANA_TX_RETRY_DELAY = float(os.getenv('SOLANA_TX_RETRY_DELAY', '3'))

# Platform fee taken from each tip, in percent
PLATFORM_FEE_PERCENT = Decimal(os.getenv('PLATFORM_FEE_PERCENT', '0'))


# Seeded administrator account
ADMIN_EMAIL = os.getenv('ADMIN_EMAIL', 'admin@tiply.com')
ADMIN_DEFAULT_PASSWORD = os.getenv('ADMIN_DEFAULT_PASSWORD', 'Admin123!')


# Email settings (development defaults; override via environment in production)
EMAIL_BACKEND = os.environ.get('EMAIL_BACKEND', 'django.core.mail.backends.console.EmailBackend')
EMAIL_HOST = os.environ.get('EMAIL_HOST', '')
EMAIL_PORT = int(os.environ.get('EMAIL_PORT', '0') or 0)
EMAIL_HOST_USER = os.environ.get('EMAIL_HOST_USER', '')
EMAIL_HOST_PASSWORD = os.environ.get('EMAIL_HOST_PASSWORD', '')
EMAIL_USE_TLS = os.environ.get('EMAIL_USE_TLS', 'True') == 'True'
DEFAULT_FROM_EMAIL = os.environ.get('DEFAULT_FROM_EMAIL', 'no-reply@tiply.local')

# DKIM signing is used when a private key path is configured
DKIM_SELECTOR = os.environ.get('DKIM_SELECTOR', 'default')
DKIM_DOMAIN = os.environ.get('DKIM_DOMAIN', '')
DKIM_KEY_PATH = os.environ.get('DKIM_KEY_PATH', '')


# Logging
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name} {message}',
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
        'level': 'WARNING',
    },
    'loggers': {
        'soltip': {
            'handlers': ['console'],
            'level': os.getenv('LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
    },
}
