"""
Upload policy and field capability choices.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class UploadPolicy(models.TextChoices):
    """What to do when an upload's name is already taken in its directory."""
    RENAME = 'rename', _('Rename the new file')
    REPLACE = 'replace', _('Replace the existing file')
    ERROR = 'error', _('Reject the upload')


class FieldType(models.TextChoices):
    """Static capability tag for an upload field."""
    FILE = 'file', _('File')
    IMAGE = 'image', _('Image')


# Field types that expose the upload policy setting
POLICY_CAPABLE_TYPES = frozenset({FieldType.FILE, FieldType.IMAGE})

IMAGE_EXTENSIONS = ('png', 'gif', 'jpg', 'jpeg', 'webp')


POLICY_DESCRIPTIONS = {
    UploadPolicy.RENAME: _(
        'Files with the same name as an existing file are stored under a numbered name.'
    ),
    UploadPolicy.REPLACE: _(
        'Files with the same name as an existing file will replace it.'
    ),
    UploadPolicy.ERROR: _(
        'Files with the same name as an existing file are rejected.'
    ),
}
