"""
Report file storage.

Every key lives under the ``REPORTS_BUCKET`` prefix of Django's default
storage.  Report rows store the key relative to the bucket, e.g.
``patient-reports/3f9c0a1b1718035200123.pdf``.
"""
from __future__ import annotations

import os
import secrets
import time

from django.conf import settings
from django.core.files.storage import Storage, default_storage
from rest_framework.exceptions import NotFound, ValidationError

REPORTS_PREFIX = 'patient-reports'


def report_file_path(filename: str) -> str:
    ext = os.path.splitext(filename or '')[1].lstrip('.').lower() or 'bin'
    return f'{REPORTS_PREFIX}/{secrets.token_hex(8)}{int(time.time() * 1000)}.{ext}'


def validate_upload(f) -> None:
    size_mb = (getattr(f, 'size', 0) or 0) / (1024 * 1024)
    if size_mb > settings.UPLOAD_MAX_MB:
        raise ValidationError({'file': [f'File exceeds {settings.UPLOAD_MAX_MB} MB']})
    ctype = getattr(f, 'content_type', '') or ''
    if not any(ctype.startswith(prefix) for prefix in settings.ALLOWED_UPLOAD_TYPES):
        raise ValidationError({'file': ['Unsupported file type']})


class ReportStorage:
    def __init__(self, bucket: str | None = None, storage: Storage | None = None):
        self.bucket = bucket or settings.REPORTS_BUCKET
        self.storage = storage or default_storage

    def _key(self, path: str) -> str:
        return f'{self.bucket}/{path}'

    def upload(self, path: str, fileobj) -> str:
        saved = self.storage.save(self._key(path), fileobj)
        return saved[len(self.bucket) + 1:]

    def download(self, path: str):
        key = self._key(path)
        if not path or not self.storage.exists(key):
            raise NotFound('File not found')
        return self.storage.open(key, 'rb')

    def remove(self, path: str) -> None:
        """Delete a stored file.  Removing a missing file is not an error."""
        if path:
            self.storage.delete(self._key(path))
