# trackiq/settings/__init__.py

import os

settings_module = os.getenv('DJANGO_SETTINGS_MODULE', 'trackiq.settings.local')

if 'production' in settings_module:
    from .production import *
else:
    from .local import *
