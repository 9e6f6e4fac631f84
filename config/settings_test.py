from .settings import *

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

STORAGES = {
    'default': {'BACKEND': 'django.core.files.storage.FileSystemStorage'},
    'staticfiles': {'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage'},
}

TIME_ZONE = 'Asia/Karachi'
NOTIFICATIONS_WEBHOOK_URL = ''
PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
