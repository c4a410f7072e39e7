"""
Base settings for trackiq project.
Shared between local (development) and production deployments.
"""

from pathlib import Path
import os

from django.urls import reverse_lazy

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv('SECRET_KEY', 'django-insecure-trackiq-k2#v9p!x0m4q7w@e1r8t5y3u6i')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv('DEBUG', 'True').lower() == 'true'

ALLOWED_HOSTS = os.getenv('ALLOWED_HOSTS', '*').split(',')

# development | production
ENVIRONMENT = os.getenv('TRACKIQ_ENV', 'development')


# Application definition
INSTALLED_APPS = [
    "unfold",
    "unfold.contrib.filters",
    "unfold.contrib.forms",
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'corsheaders',
    'rest_framework',
    'main',
    'stock',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
    'main.middleware.JSONOnlyMiddleware',
]

ROOT_URLCONF = 'trackiq.urls'

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

WSGI_APPLICATION = 'trackiq.wsgi.application'


# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]


# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True


# Static files
STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'


# CORS
CORS_ALLOWED_ORIGINS = [
    origin for origin in os.getenv('CORS_ALLOWED_ORIGINS', 'http://localhost:3000').split(',') if origin
]


# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# JWT Settings
DEFAULT_JWT_SECRET = 'trackiq-dev-jwt-secret'
JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', DEFAULT_JWT_SECRET)
JWT_ALGORITHM = 'HS256'
JWT_EXPIRY_HOURS = int(os.getenv('JWT_EXPIRY_HOURS', '24'))


# Manufacturing
LABOR_HOURLY_RATE = os.getenv('LABOR_HOURLY_RATE', '15')
DEFAULT_CURRENCY = os.getenv('DEFAULT_CURRENCY', 'USD')
API_PAGE_SIZE = int(os.getenv('API_PAGE_SIZE', '20'))


# Unfold Admin Configuration
UNFOLD = {
    "SITE_TITLE": "TrackIQ Admin",
    "SITE_HEADER": "TrackIQ",
    "SITE_URL": "/",
    "SITE_SYMBOL": "factory",

    "SIDEBAR": {
        "show_search": True,
        "show_all_applications": True,
        "navigation": [
            {
                "title": "Catalog",
                "separator": False,
                "items": [
                    {
                        "title": "Brands",
                        "icon": "sell",
                        "link": reverse_lazy("admin:main_brand_changelist"),
                    },
                    {
                        "title": "Raw Materials",
                        "icon": "grain",
                        "link": reverse_lazy("admin:stock_rawmaterial_changelist"),
                    },
                    {
                        "title": "Finished Products",
                        "icon": "inventory_2",
                        "link": reverse_lazy("admin:stock_finishedproduct_changelist"),
                    },
                ],
            },
            {
                "title": "Manufacturing",
                "separator": True,
                "items": [
                    {
                        "title": "Bills of Materials",
                        "icon": "list_alt",
                        "link": reverse_lazy("admin:stock_bom_changelist"),
                    },
                    {
                        "title": "Production",
                        "icon": "precision_manufacturing",
                        "link": reverse_lazy("admin:stock_production_changelist"),
                    },
                    {
                        "title": "Inventory",
                        "icon": "warehouse",
                        "link": reverse_lazy("admin:stock_inventory_changelist"),
                    },
                ],
            },
            {
                "title": "Users & Access",
                "separator": True,
                "items": [
                    {
                        "title": "Users",
                        "icon": "people",
                        "link": reverse_lazy("admin:main_user_changelist"),
                    },
                    {
                        "title": "Sessions",
                        "icon": "key",
                        "link": reverse_lazy("admin:main_session_changelist"),
                    },
                ],
            },
        ],
    },
}

REST_FRAMEWORK = {
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
}
