"""
Upload Persistence Adapter
==========================
Byte storage, directory preparation and StoredFile record upserts on top of
a Django storage backend.

A file is either fully stored with a consistent record or not stored at
all: bytes written for a record that fails to save are removed again, and
replacements are staged next to the target and only swapped in inside the
record's transaction.
"""

import logging
import mimetypes
import os
import posixpath
import uuid

from django.core.exceptions import SuspiciousFileOperation
from django.core.files.storage import default_storage
from django.db import IntegrityError, transaction

from contracts.models import StoredFile

logger = logging.getLogger(__name__)


GENERIC_MIME_TYPE = 'application/octet-stream'


def infer_mime_type(filename, *, uploaded=None):
    """Infer MIME type with priority: upload metadata > filename > default."""
    if uploaded is not None:
        content_type = getattr(uploaded, 'content_type', None)
        if content_type and content_type != GENERIC_MIME_TYPE:
            return content_type

    if filename:
        guessed, _ = mimetypes.guess_type(filename)
        if guessed:
            return guessed

    return GENERIC_MIME_TYPE


class StorageAdapter:
    """
    Performs the file-system and record operations decided by the resolver.

    Args:
        storage: Django storage backend, defaults to ``default_storage``
        owner: User recorded on created/updated records (anonymous users are ignored)
        field: UploadField recorded on created records
    """

    def __init__(self, storage=None, owner=None, field=None):
        self.storage = storage or default_storage
        self.owner = owner if getattr(owner, 'is_authenticated', False) else None
        self.field = field

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def prepare_directory(self, directory: str) -> bool:
        """
        Make sure ``directory`` exists and is writable.

        Storages without a local filesystem path (e.g. S3) create
        directories implicitly and always report success.
        """
        try:
            full_path = self.storage.path(directory)
        except NotImplementedError:
            return True
        except SuspiciousFileOperation as e:
            logger.error(f"Refusing upload directory '{directory}': {e}")
            return False

        try:
            os.makedirs(full_path, exist_ok=True)
        except OSError as e:
            logger.error(f"Could not create upload directory '{full_path}': {e}")
            return False

        if not os.access(full_path, os.W_OK):
            logger.error(f"Upload directory '{full_path}' is not writable")
            return False
        return True

    def path_exists(self, path: str) -> bool:
        """A path is taken when bytes are stored there or a record claims it."""
        return self.storage.exists(path) or StoredFile.objects.filter(path=path).exists()

    def lookup_record_by_path(self, path: str):
        return StoredFile.objects.filter(path=path).first()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def write_file(self, content, path: str, overwrite: bool = False) -> StoredFile:
        """
        Store ``content`` at ``path`` and create its record.

        With ``overwrite`` any bytes already at ``path`` are replaced, and a
        record committed for ``path`` by a concurrent upload is updated
        instead (last write wins). Otherwise the storage may pick a
        different free name, and the record keeps the name actually written.
        """
        if not overwrite:
            return self._write_new(content, path)

        try:
            return self._write_over(content, path)
        except IntegrityError:
            record = StoredFile.objects.filter(path=path).first()
            if record is None:
                raise
        logger.warning(f"Record for {path} was created concurrently, replacing it")
        return self.update_record(record, content)

    def update_record(self, record: StoredFile, content) -> StoredFile:
        """Replace the bytes at ``record.path`` and update the record in place."""
        staged = self._stage(content, record.path)
        try:
            with transaction.atomic():
                record.size = content.size
                record.mime_type = infer_mime_type(record.filename, uploaded=content)
                if self.owner is not None:
                    record.owner = self.owner
                if self.field is not None:
                    record.field = self.field
                record.save()

                saved_path = self._commit(staged, record.path)
                if saved_path != record.path:
                    record.path = saved_path
                    record.filename = posixpath.basename(saved_path)
                    record.save(update_fields=['path', 'filename'])
        except Exception:
            self._discard(staged)
            raise

        logger.info(f"Replaced {record.path} ({record.size} bytes), record {record.id}")
        return record

    def delete_file(self, record: StoredFile) -> None:
        """Delete a record and its bytes."""
        path = record.path
        with transaction.atomic():
            record.delete()
        self._discard(path)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _write_new(self, content, path):
        saved_path = self.storage.save(path, content)
        try:
            with transaction.atomic():
                record = self._create_record(content, saved_path)
        except Exception:
            self._discard(saved_path)
            raise

        if saved_path != path:
            logger.warning(f"Storage renamed {path} to {saved_path} (concurrent upload)")
        logger.info(f"Stored {record.path} ({record.size} bytes)")
        return record

    def _write_over(self, content, path):
        staged = self._stage(content, path)
        try:
            with transaction.atomic():
                record = self._create_record(content, path)
                self._commit(staged, path)
        except Exception:
            self._discard(staged)
            raise
        logger.info(f"Stored {record.path} ({record.size} bytes), overwriting")
        return record

    def _create_record(self, content, path):
        filename = posixpath.basename(path)
        return StoredFile.objects.create(
            filename=filename,
            path=path,
            owner=self.owner,
            size=content.size,
            mime_type=infer_mime_type(filename, uploaded=content),
            field=self.field,
        )

    def _stage(self, content, path):
        """Write ``content`` to a hidden sibling of ``path``."""
        directory, basename = posixpath.split(path)
        staged_name = f".{basename}.{uuid.uuid4().hex[:12]}.part"
        return self.storage.save(posixpath.join(directory, staged_name), content)

    def _commit(self, staged, path):
        """Move staged bytes over ``path``. Returns the name written."""
        try:
            source, target = self.storage.path(staged), self.storage.path(path)
        except NotImplementedError:
            source = target = None

        if source is not None:
            os.replace(source, target)
            return path

        with self.storage.open(staged, 'rb') as handle:
            if self.storage.exists(path):
                self.storage.delete(path)
            saved_path = self.storage.save(path, handle)
        self.storage.delete(staged)
        return saved_path

    def _discard(self, path):
        try:
            if self.storage.exists(path):
                self.storage.delete(path)
        except OSError as e:
            logger.warning(f"Could not delete '{path}': {e}")
