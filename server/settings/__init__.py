"""Main settings file.

Settings are split into components and joined with ``django-split-settings``.
Values come from the environment (or ``config/.env``) via ``python-decouple``.
"""

import django_stubs_ext
from split_settings.tools import include

# Monkeypatching Django, so stubs will work for all generics,
# see: https://github.com/typeddjango/django-stubs/tree/master/ext
django_stubs_ext.monkeypatch()

include(
    'components/common.py',
    'components/logging.py',
    'components/storages.py',
    'components/uploads.py',
)
