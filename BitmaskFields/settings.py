# BitmaskFields/settings.py

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'bitmask-fields-insecure-key')

DEBUG = True

ALLOWED_HOSTS = []

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'BitmaskFieldsApp',
]

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.AutoField'

LANGUAGE_CODE = 'en-us'
USE_I18N = True
USE_TZ = True

# Bitmask flag configuration. Keys match BitmaskFieldsApp.config.Config attributes.
BITMASK_FIELDS = {
    'DEFAULT_BITMASK_ATTRIBUTE': 'options',
    'FIELD_MAPS': {
        'account_options': {
            'verified_option': 1 << 0,
            'newsletter_option': [1 << 1, True],
        },
    },
}

# Optional YAML file with the same keys, loaded after BITMASK_FIELDS
BITMASK_FIELDS_CONFIG_FILE = os.environ.get('BITMASK_FIELDS_CONFIG_FILE')
