"""
Upload Service
==============
Turns the files submitted for a managed field into stored records.

Upload Algorithm:
1. No files submitted: empty result, the resolver is never invoked
2. Directory: expand strftime tokens and prepare it, abort the batch on failure
3. Per file: sanitise the name, validate, resolve the collision policy
4. Persist: create a record, or update the existing one under replace
5. Per-file failures are collected as messages, the rest of the batch continues
"""

import logging
from dataclasses import dataclass, field as dataclass_field
from typing import Dict, List

from django.core.exceptions import SuspiciousFileOperation
from django.db import DatabaseError
from django.utils import timezone
from django.utils.text import get_valid_filename

from ..exceptions import (
    CollisionError,
    DirectoryUnavailable,
    UploadMissing,
    UploadRejected,
)
from ..policy import UploadPolicy
from .persistence import StorageAdapter
from .resolver import Action, candidate_path, resolve

logger = logging.getLogger(__name__)


def format_file_size(size_bytes):
    """Format bytes as human-readable string."""
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size_bytes < 1024:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024
    return f"{size_bytes:.1f} TB"


@dataclass
class UploadBatch:
    """
    Result of one submission.

    ``records`` maps record id to StoredFile for every file stored;
    ``errors`` holds a user-facing message per skipped file.
    """
    records: Dict[str, object] = dataclass_field(default_factory=dict)
    errors: List[str] = dataclass_field(default_factory=list)
    replaced: List[str] = dataclass_field(default_factory=list)

    def __bool__(self):
        return bool(self.records)


class UploadService:
    """Value handling for a managed file field."""

    def __init__(self, adapter=None):
        self.adapter = adapter

    @staticmethod
    def uploads_for(files, field_name):
        """
        Get the uploaded files for ``field_name`` from ``request.FILES``.

        Raises:
            UploadMissing: nothing was submitted under that name
        """
        if files is None:
            raise UploadMissing(field_name)
        if hasattr(files, 'getlist'):
            uploads = [f for f in files.getlist(field_name) if f]
        else:
            value = files.get(field_name)
            uploads = [f for f in (value if isinstance(value, (list, tuple)) else [value]) if f]
        if not uploads:
            raise UploadMissing(field_name)
        return uploads

    @staticmethod
    def upload_directory(field, now=None):
        """Expand strftime tokens in the field's directory."""
        now = now or timezone.now()
        directory = now.strftime(field.upload_directory) if field.upload_directory else ''
        return directory.replace('\\', '/').strip('/')

    @staticmethod
    def validate(upload, field, filename=None):
        """
        Check extension and size limits against ``filename`` (the stored
        name), defaulting to the uploaded name.

        Raises:
            UploadRejected: with the reason shown to the user
        """
        name = filename or upload.name or ''
        extensions = field.extension_list
        if extensions:
            ext = name.rsplit('.', 1)[-1].lower() if '.' in name else ''
            if ext not in extensions:
                raise UploadRejected(
                    name,
                    f"Only files with the following extensions are allowed: {' '.join(extensions)}."
                )

        limit = field.size_limit
        if upload.size > limit:
            raise UploadRejected(
                name,
                f"The file is {format_file_size(upload.size)} exceeding the maximum "
                f"upload size of {format_file_size(limit)}."
            )

    def handle_submission(self, files, field, owner=None) -> UploadBatch:
        """Save the files submitted for ``field``; no submission is a no-op."""
        try:
            uploads = self.uploads_for(files, field.name)
        except UploadMissing:
            return UploadBatch()
        return self.save_uploads(uploads, field, owner=owner)

    def save_uploads(self, uploads, field, owner=None) -> UploadBatch:
        """
        Store each upload according to the field's policy.

        Args:
            uploads: Django UploadedFile objects
            field: UploadField configuration
            owner: User performing the upload

        Returns:
            UploadBatch with the stored records and per-file messages

        Raises:
            DirectoryUnavailable: target directory cannot be prepared
        """
        batch = UploadBatch()
        if not uploads:
            return batch

        adapter = self.adapter or StorageAdapter(owner=owner, field=field)
        policy = field.effective_policy

        if not field.multiple and len(uploads) > 1:
            for extra in uploads[1:]:
                batch.errors.append(f"{extra.name}: only one file can be uploaded to {field}.")
            uploads = uploads[:1]

        directory = self.upload_directory(field)
        if not adapter.prepare_directory(directory):
            logger.error(f"Upload directory '{directory}' unavailable for field {field.name}")
            raise DirectoryUnavailable(directory)

        for upload in uploads:
            try:
                record, action = self._save_one(upload, directory, policy, adapter, field)
            except (CollisionError, UploadRejected) as e:
                logger.info(f"Skipped upload for field {field.name}: {e}")
                batch.errors.append(str(e))
                continue
            except (OSError, DatabaseError) as e:
                logger.error(f"Failed to store {upload.name} for field {field.name}: {e}", exc_info=True)
                batch.errors.append(f"{upload.name}: the file could not be saved.")
                continue

            batch.records[str(record.id)] = record
            if action == Action.UPDATE:
                batch.replaced.append(str(record.id))

        return batch

    def _save_one(self, upload, directory, policy, adapter, field):
        try:
            filename = get_valid_filename(upload.name)
        except SuspiciousFileOperation:
            raise UploadRejected(upload.name, "The filename is not valid.")
        self.validate(upload, field, filename)

        outcome = resolve(
            candidate_path(directory, filename),
            policy,
            adapter.path_exists,
            adapter.lookup_record_by_path,
        )

        if outcome.action == Action.UPDATE:
            return adapter.update_record(outcome.record, upload), outcome.action

        overwrite = policy == UploadPolicy.REPLACE
        return adapter.write_file(upload, outcome.path, overwrite=overwrite), outcome.action
