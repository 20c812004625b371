"""
Shared Data Contract Models
===========================
DO NOT MODIFY without explicit approval.

Models:
    - StoredFile: Metadata record for a file held in storage, one per path
"""

from django.conf import settings
from django.core.files.storage import default_storage
from django.db import models
import uuid


class StoredFile(models.Model):
    """
    Represents a file persisted in storage.

    The storage-relative path is unique: a re-upload under the replace
    policy updates this record instead of creating a new one.
    """
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False
    )
    filename = models.CharField(
        max_length=255,
        help_text="Filename as stored (after collision resolution)"
    )
    path = models.CharField(
        max_length=1024,
        unique=True,
        help_text="Storage-relative path of the file"
    )
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='stored_files',
        help_text="User who last uploaded this file"
    )
    size = models.BigIntegerField(
        help_text="File size in bytes"
    )
    mime_type = models.CharField(
        max_length=100,
        help_text="MIME type of the file"
    )
    field = models.ForeignKey(
        'uploads.UploadField',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='records',
        help_text="Upload field that stored this file"
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        help_text="When this file was first stored"
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the stored bytes last changed"
    )

    class Meta:
        ordering = ['-created_at']
        verbose_name = "Stored File"
        verbose_name_plural = "Stored Files"
        indexes = [
            models.Index(fields=['filename'], name='storedfile_filename_idx'),
            models.Index(fields=['mime_type'], name='storedfile_mime_idx'),
            models.Index(fields=['created_at'], name='storedfile_created_idx'),
        ]

    def __str__(self):
        return self.path

    @property
    def directory(self):
        """Storage-relative directory portion of the path."""
        return self.path.rpartition('/')[0]

    @property
    def url(self):
        """Public URL of the stored bytes."""
        return default_storage.url(self.path)
