"""
Celery tasks for upload storage maintenance.

Removes bytes left in upload directories without a StoredFile record,
e.g. staged replacements from an interrupted request.
"""

import logging
import posixpath
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.core.files.storage import default_storage
from django.utils import timezone

from contracts.models import StoredFile
from .models import UploadField

logger = logging.getLogger(__name__)


DEFAULT_ORPHAN_MAX_AGE = 6 * 60 * 60


def field_base_directory(field):
    """Directory part of the field's upload directory before any strftime token."""
    parts = []
    for part in field.upload_directory.replace('\\', '/').strip('/').split('/'):
        if '%' in part:
            break
        if part:
            parts.append(part)
    return '/'.join(parts)


def walk_storage(storage, directory):
    """Yield every file path below ``directory``."""
    try:
        subdirs, files = storage.listdir(directory)
    except FileNotFoundError:
        return
    for name in files:
        yield posixpath.join(directory, name) if directory else name
    for subdir in subdirs:
        yield from walk_storage(storage, posixpath.join(directory, subdir) if directory else subdir)


@shared_task(
    bind=True,
    name='uploads.tasks.purge_orphaned_files'
)
def purge_orphaned_files(self, dry_run: bool = False) -> dict:
    """
    Delete stored bytes that no record points to.

    Only files older than UPLOADS_ORPHAN_MAX_AGE seconds are touched, so an
    upload in flight is never removed.

    Args:
        dry_run: Report orphans without deleting them

    Returns:
        Dictionary with the scanned count and the orphaned paths
    """
    storage = default_storage
    max_age = getattr(settings, 'UPLOADS_ORPHAN_MAX_AGE', DEFAULT_ORPHAN_MAX_AGE)
    cutoff = timezone.now() - timedelta(seconds=max_age)

    directories = sorted({field_base_directory(f) for f in UploadField.objects.all()})
    known_paths = set(StoredFile.objects.values_list('path', flat=True))

    seen = set()
    orphans = []
    for directory in directories:
        for path in walk_storage(storage, directory):
            if path in seen:
                continue
            seen.add(path)
            if path in known_paths:
                continue
            if storage.get_modified_time(path) > cutoff:
                continue
            orphans.append(path)

    deleted = 0
    if not dry_run:
        for path in orphans:
            try:
                storage.delete(path)
                deleted += 1
            except OSError as e:
                logger.error(f"Failed to delete orphaned file {path}: {str(e)}")

    logger.info(
        f"Orphan purge complete: {len(seen)} scanned, {len(orphans)} orphaned, "
        f"{deleted} deleted{' (dry run)' if dry_run else ''}"
    )

    return {
        'scanned': len(seen),
        'orphaned': orphans,
        'deleted': deleted,
        'dry_run': dry_run,
    }
