"""
Uploads app configuration.

Checks the configured default upload policy on startup.
"""

import logging
from django.apps import AppConfig

logger = logging.getLogger(__name__)


class UploadsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'uploads'

    def ready(self):
        from django.conf import settings
        from .policy import UploadPolicy

        default = getattr(settings, 'UPLOADS_DEFAULT_POLICY', UploadPolicy.RENAME)
        if default not in UploadPolicy.values:
            logger.warning(
                f"UPLOADS_DEFAULT_POLICY '{default}' is not one of "
                f"{', '.join(UploadPolicy.values)}; new fields will fail validation."
            )
