from django.conf import settings
from django.db import models

from .policy import FieldType, UploadPolicy, POLICY_CAPABLE_TYPES, IMAGE_EXTENSIONS

__all__ = ['UploadField', 'default_policy']


def default_policy():
    """Default upload policy, overridable with UPLOADS_DEFAULT_POLICY."""
    return getattr(settings, 'UPLOADS_DEFAULT_POLICY', UploadPolicy.RENAME)


class UploadField(models.Model):
    """
    Configuration of a managed file field.

    Read once per upload request; the policy decides how a filename
    collision inside ``upload_directory`` is resolved.
    """
    name = models.SlugField(
        max_length=100,
        unique=True,
        help_text="Machine name of the field"
    )
    label = models.CharField(
        max_length=255,
        blank=True,
        help_text="Human readable label"
    )
    field_type = models.CharField(
        max_length=10,
        choices=FieldType.choices,
        default=FieldType.FILE,
        help_text="Capability tag of the field"
    )
    upload_directory = models.CharField(
        max_length=255,
        blank=True,
        help_text="Storage-relative directory, strftime tokens allowed (e.g. uploads/%Y/%m)"
    )
    policy = models.CharField(
        max_length=10,
        choices=UploadPolicy.choices,
        default=default_policy,
        help_text="What happens when an uploaded filename already exists"
    )
    allowed_extensions = models.CharField(
        max_length=255,
        blank=True,
        help_text="Space separated list of allowed extensions, empty for any"
    )
    max_filesize = models.PositiveBigIntegerField(
        default=0,
        help_text="Maximum upload size in bytes, 0 for the site default"
    )
    multiple = models.BooleanField(
        default=False,
        help_text="Accept more than one file per submission"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']
        verbose_name = "Upload Field"
        verbose_name_plural = "Upload Fields"

    def __str__(self):
        return self.label or self.name

    @property
    def supports_policy(self):
        return self.field_type in POLICY_CAPABLE_TYPES

    @property
    def effective_policy(self):
        """Policy applied at upload time; fields without the capability always rename."""
        if not self.supports_policy:
            return UploadPolicy.RENAME
        return UploadPolicy(self.policy)

    @property
    def extension_list(self):
        extensions = [e.lower().lstrip('.') for e in self.allowed_extensions.split()]
        if not extensions and self.field_type == FieldType.IMAGE:
            return list(IMAGE_EXTENSIONS)
        return extensions

    @property
    def size_limit(self):
        if self.max_filesize:
            return self.max_filesize
        return getattr(settings, 'FILE_UPLOAD_MAX_SIZE', 10 * 1024 * 1024)
