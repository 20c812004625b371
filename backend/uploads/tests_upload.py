"""
Unit Tests for Upload Handling
==============================
Tests cover:
- End-to-end rename / replace / error behaviour against real storage
- Batch handling (no files, directory failures, skipped files)
- Validation of extensions and sizes
- Persistence adapter consistency on failures
"""

import os
import shutil
import tempfile
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core.files.base import ContentFile
from django.core.files.storage import InMemoryStorage, default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import DatabaseError, IntegrityError
from django.test import TestCase, override_settings
from django.utils import timezone
from django.utils.datastructures import MultiValueDict

from contracts.models import StoredFile
from uploads.exceptions import DirectoryUnavailable, UploadMissing, UploadRejected
from uploads.models import UploadField
from uploads.policy import UploadPolicy
from uploads.services import StorageAdapter, UploadService, infer_mime_type


# Create a temporary media root for tests
TEST_MEDIA_ROOT = tempfile.mkdtemp()


def read_stored(path):
    with default_storage.open(path, 'rb') as handle:
        return handle.read()


class MediaRootMixin:

    @classmethod
    def tearDownClass(cls):
        """Clean up temporary media directory after all tests."""
        super().tearDownClass()
        shutil.rmtree(TEST_MEDIA_ROOT, ignore_errors=True)

    def tearDown(self):
        shutil.rmtree(os.path.join(TEST_MEDIA_ROOT, 'uploads'), ignore_errors=True)

    def _upload(self, content: bytes, filename: str = 'photo.jpg', content_type: str = 'image/jpeg'):
        return SimpleUploadedFile(filename, content, content_type=content_type)

    def _field(self, policy=UploadPolicy.RENAME, **kwargs):
        kwargs.setdefault('name', 'attachments')
        kwargs.setdefault('upload_directory', 'uploads')
        return UploadField.objects.create(policy=policy, **kwargs)


@override_settings(MEDIA_ROOT=TEST_MEDIA_ROOT)
class CollisionPolicyTests(MediaRootMixin, TestCase):
    """Uploading a file whose name is already taken."""

    def setUp(self):
        self.service = UploadService()

    def _store_original(self, field):
        batch = self.service.save_uploads([self._upload(b'original')], field)
        return next(iter(batch.records.values()))

    # ===================
    # Rename
    # ===================

    def test_rename_stores_under_suffixed_name(self):
        field = self._field(UploadPolicy.RENAME)
        original = self._store_original(field)

        batch = self.service.save_uploads([self._upload(b'second')], field)

        record = next(iter(batch.records.values()))
        self.assertEqual(record.path, 'uploads/photo_1.jpg')
        self.assertEqual(record.filename, 'photo_1.jpg')
        self.assertNotEqual(record.id, original.id)
        self.assertEqual(StoredFile.objects.count(), 2)
        self.assertEqual(read_stored('uploads/photo.jpg'), b'original')
        self.assertEqual(read_stored('uploads/photo_1.jpg'), b'second')

    def test_rename_third_upload_gets_second_suffix(self):
        field = self._field(UploadPolicy.RENAME)
        self._store_original(field)
        self.service.save_uploads([self._upload(b'two')], field)

        batch = self.service.save_uploads([self._upload(b'three')], field)

        self.assertEqual(next(iter(batch.records.values())).path, 'uploads/photo_2.jpg')

    def test_rename_free_name_is_kept(self):
        field = self._field(UploadPolicy.RENAME)

        record = self._store_original(field)

        self.assertEqual(record.path, 'uploads/photo.jpg')

    def test_rename_treats_record_without_bytes_as_taken(self):
        field = self._field(UploadPolicy.RENAME)
        StoredFile.objects.create(
            filename='photo.jpg', path='uploads/photo.jpg', size=1, mime_type='image/jpeg'
        )

        batch = self.service.save_uploads([self._upload(b'new')], field)

        self.assertEqual(next(iter(batch.records.values())).path, 'uploads/photo_1.jpg')

    # ===================
    # Replace
    # ===================

    def test_replace_updates_existing_record(self):
        field = self._field(UploadPolicy.REPLACE)
        original = self._store_original(field)

        batch = self.service.save_uploads([self._upload(b'replacement bytes')], field)

        self.assertEqual(list(batch.records), [str(original.id)])
        self.assertEqual(batch.replaced, [str(original.id)])
        self.assertEqual(StoredFile.objects.count(), 1)

        record = StoredFile.objects.get()
        self.assertEqual(record.path, 'uploads/photo.jpg')
        self.assertEqual(record.size, len(b'replacement bytes'))
        self.assertEqual(read_stored('uploads/photo.jpg'), b'replacement bytes')

    def test_replace_leaves_no_staged_files(self):
        field = self._field(UploadPolicy.REPLACE)
        self._store_original(field)

        self.service.save_uploads([self._upload(b'replacement')], field)

        _, files = default_storage.listdir('uploads')
        self.assertEqual(files, ['photo.jpg'])

    def test_replace_without_existing_file_creates(self):
        field = self._field(UploadPolicy.REPLACE)

        batch = self.service.save_uploads([self._upload(b'first')], field)

        self.assertEqual(batch.replaced, [])
        self.assertEqual(next(iter(batch.records.values())).path, 'uploads/photo.jpg')

    def test_replace_overwrites_unmanaged_bytes(self):
        field = self._field(UploadPolicy.REPLACE)
        default_storage.save('uploads/photo.jpg', ContentFile(b'unmanaged'))

        batch = self.service.save_uploads([self._upload(b'managed now')], field)

        record = next(iter(batch.records.values()))
        self.assertEqual(record.path, 'uploads/photo.jpg')
        self.assertEqual(batch.replaced, [])
        self.assertEqual(read_stored('uploads/photo.jpg'), b'managed now')

    def test_replace_records_new_owner(self):
        field = self._field(UploadPolicy.REPLACE)
        self._store_original(field)
        user = get_user_model().objects.create_user(username='editor', password='x')

        self.service.save_uploads([self._upload(b'edited')], field, owner=user)

        self.assertEqual(StoredFile.objects.get().owner, user)

    def test_replace_wins_over_record_committed_after_lookup(self):
        field = self._field(UploadPolicy.REPLACE, multiple=True)
        original = self._store_original(field)

        # The existing record is not visible at resolution time.
        with patch.object(StorageAdapter, 'lookup_record_by_path', return_value=None):
            batch = self.service.save_uploads(
                [self._upload(b'second version'), self._upload(b'other', 'other.jpg')],
                field
            )

        self.assertEqual(batch.errors, [])
        self.assertEqual(
            sorted(r.path for r in batch.records.values()),
            ['uploads/other.jpg', 'uploads/photo.jpg']
        )
        self.assertEqual(StoredFile.objects.count(), 2)
        record = StoredFile.objects.get(path='uploads/photo.jpg')
        self.assertEqual(record.id, original.id)
        self.assertEqual(record.size, len(b'second version'))
        self.assertEqual(read_stored('uploads/photo.jpg'), b'second version')
        self.assertEqual(read_stored('uploads/other.jpg'), b'other')

    # ===================
    # Error
    # ===================

    def test_error_rejects_collision(self):
        field = self._field(UploadPolicy.ERROR)
        original = self._store_original(field)

        batch = self.service.save_uploads([self._upload(b'intruder')], field)

        self.assertEqual(batch.records, {})
        self.assertEqual(len(batch.errors), 1)
        self.assertIn('already exists', batch.errors[0])
        self.assertEqual(StoredFile.objects.count(), 1)
        self.assertEqual(StoredFile.objects.get().id, original.id)
        self.assertEqual(read_stored('uploads/photo.jpg'), b'original')

    def test_error_collision_is_not_fatal_to_batch(self):
        field = self._field(UploadPolicy.ERROR, multiple=True)
        self._store_original(field)

        batch = self.service.save_uploads(
            [self._upload(b'dup'), self._upload(b'fresh', 'other.jpg')],
            field
        )

        self.assertEqual(len(batch.errors), 1)
        self.assertEqual([r.path for r in batch.records.values()], ['uploads/other.jpg'])

    def test_error_free_name_is_stored(self):
        field = self._field(UploadPolicy.ERROR)

        record = self._store_original(field)

        self.assertEqual(record.path, 'uploads/photo.jpg')


@override_settings(MEDIA_ROOT=TEST_MEDIA_ROOT)
class UploadBatchTests(MediaRootMixin, TestCase):
    """Batch level behaviour of UploadService."""

    def setUp(self):
        self.service = UploadService()

    def test_no_uploads_returns_empty_batch(self):
        field = self._field()

        with patch('uploads.services.upload.resolve') as mock_resolve:
            batch = self.service.save_uploads([], field)

        self.assertFalse(batch)
        self.assertEqual(batch.records, {})
        mock_resolve.assert_not_called()

    def test_uploads_for_missing_field_raises(self):
        with self.assertRaises(UploadMissing):
            UploadService.uploads_for(MultiValueDict(), 'attachments')

    def test_uploads_for_ignores_empty_values(self):
        files = MultiValueDict({'attachments': [None]})

        with self.assertRaises(UploadMissing):
            UploadService.uploads_for(files, 'attachments')

    def test_handle_submission_without_files_is_noop(self):
        field = self._field()

        batch = self.service.handle_submission(MultiValueDict(), field)

        self.assertEqual(batch.records, {})
        self.assertEqual(batch.errors, [])
        self.assertFalse(os.path.exists(os.path.join(TEST_MEDIA_ROOT, 'uploads')))

    def test_handle_submission_stores_files(self):
        field = self._field(multiple=True)
        files = MultiValueDict({'attachments': [
            self._upload(b'a', 'a.txt', 'text/plain'),
            self._upload(b'b', 'b.txt', 'text/plain'),
        ]})

        batch = self.service.handle_submission(files, field)

        self.assertEqual(sorted(r.filename for r in batch.records.values()), ['a.txt', 'b.txt'])

    def test_result_maps_record_ids(self):
        field = self._field()

        batch = self.service.save_uploads([self._upload(b'x')], field)

        for record_id, record in batch.records.items():
            self.assertEqual(record_id, str(record.id))

    def test_directory_unavailable_aborts_batch(self):
        field = self._field(multiple=True)

        with patch.object(StorageAdapter, 'prepare_directory', return_value=False):
            with self.assertRaises(DirectoryUnavailable) as ctx:
                self.service.save_uploads(
                    [self._upload(b'a', 'a.txt'), self._upload(b'b', 'b.txt')],
                    field
                )

        self.assertEqual(ctx.exception.directory, 'uploads')
        self.assertEqual(StoredFile.objects.count(), 0)

    def test_directory_creation_failure_is_unavailable(self):
        field = self._field()

        with patch('uploads.services.persistence.os.makedirs', side_effect=PermissionError('denied')):
            with self.assertRaises(DirectoryUnavailable):
                self.service.save_uploads([self._upload(b'a')], field)

    def test_directory_tokens_are_expanded(self):
        field = self._field(upload_directory='uploads/%Y')

        batch = self.service.save_uploads([self._upload(b'a')], field)

        year = timezone.now().strftime('%Y')
        self.assertEqual(next(iter(batch.records.values())).path, f'uploads/{year}/photo.jpg')

    def test_single_value_field_keeps_first_upload(self):
        field = self._field(multiple=False)

        batch = self.service.save_uploads(
            [self._upload(b'a', 'a.txt'), self._upload(b'b', 'b.txt')],
            field
        )

        self.assertEqual([r.filename for r in batch.records.values()], ['a.txt'])
        self.assertEqual(len(batch.errors), 1)
        self.assertIn('b.txt', batch.errors[0])

    def test_filename_is_sanitised(self):
        field = self._field()

        batch = self.service.save_uploads([self._upload(b'a', 'my holiday photo.jpg')], field)

        self.assertEqual(next(iter(batch.records.values())).filename, 'my_holiday_photo.jpg')

    def test_storage_failure_skips_file(self):
        field = self._field()

        with patch.object(StorageAdapter, 'write_file', side_effect=OSError('disk full')):
            batch = self.service.save_uploads([self._upload(b'a')], field)

        self.assertEqual(batch.records, {})
        self.assertIn('could not be saved', batch.errors[0])

    def test_database_failure_skips_only_that_file(self):
        field = self._field(multiple=True)
        write_file = StorageAdapter.write_file

        def failing_write(adapter, content, path, overwrite=False):
            if path.endswith('bad.jpg'):
                raise DatabaseError('database is locked')
            return write_file(adapter, content, path, overwrite=overwrite)

        with patch.object(StorageAdapter, 'write_file', autospec=True, side_effect=failing_write):
            batch = self.service.save_uploads(
                [self._upload(b'a', 'bad.jpg'), self._upload(b'b', 'good.jpg')],
                field
            )

        self.assertEqual([r.path for r in batch.records.values()], ['uploads/good.jpg'])
        self.assertEqual(len(batch.errors), 1)
        self.assertIn('bad.jpg', batch.errors[0])

    def test_owner_is_recorded(self):
        field = self._field()
        user = get_user_model().objects.create_user(username='alice', password='x')

        batch = self.service.save_uploads([self._upload(b'a')], field, owner=user)

        record = next(iter(batch.records.values()))
        self.assertEqual(record.owner, user)
        self.assertEqual(record.field, field)


@override_settings(MEDIA_ROOT=TEST_MEDIA_ROOT, FILE_UPLOAD_MAX_SIZE=16)
class ValidationTests(MediaRootMixin, TestCase):
    """Extension and size checks."""

    def test_disallowed_extension_is_rejected(self):
        field = self._field(allowed_extensions='txt pdf')

        with self.assertRaises(UploadRejected) as ctx:
            UploadService.validate(self._upload(b'a', 'image.png'), field)

        self.assertIn('txt pdf', ctx.exception.reason)

    def test_extension_check_is_case_insensitive(self):
        field = self._field(allowed_extensions='txt')

        UploadService.validate(self._upload(b'a', 'NOTES.TXT'), field)

    def test_extension_is_checked_on_stored_name(self):
        field = self._field(allowed_extensions='txt')

        batch = UploadService().save_uploads([self._upload(b'a', 'notes.txt ')], field)

        self.assertEqual(batch.errors, [])
        self.assertEqual(next(iter(batch.records.values())).path, 'uploads/notes.txt')

    def test_image_field_defaults_to_image_extensions(self):
        field = self._field(field_type='image')

        with self.assertRaises(UploadRejected):
            UploadService.validate(self._upload(b'a', 'notes.txt'), field)
        UploadService.validate(self._upload(b'a', 'photo.webp'), field)

    def test_site_size_limit_applies(self):
        field = self._field()

        with self.assertRaises(UploadRejected) as ctx:
            UploadService.validate(self._upload(b'x' * 32, 'big.txt'), field)

        self.assertIn('exceeding', ctx.exception.reason)

    def test_field_size_limit_overrides_site_limit(self):
        field = self._field(max_filesize=64)

        UploadService.validate(self._upload(b'x' * 32, 'big.txt'), field)

    def test_rejected_file_is_reported_in_batch(self):
        field = self._field(allowed_extensions='txt')

        batch = UploadService().save_uploads([self._upload(b'a', 'x.exe')], field)

        self.assertEqual(batch.records, {})
        self.assertEqual(len(batch.errors), 1)
        self.assertFalse(default_storage.exists('uploads/x.exe'))


@override_settings(MEDIA_ROOT=TEST_MEDIA_ROOT)
class StorageAdapterTests(MediaRootMixin, TestCase):
    """Tests for the persistence adapter."""

    def setUp(self):
        self.adapter = StorageAdapter()
        self.adapter.prepare_directory('uploads')

    def test_prepare_directory_creates_directory(self):
        self.assertTrue(self.adapter.prepare_directory('uploads/deep/nested'))
        self.assertTrue(os.path.isdir(os.path.join(TEST_MEDIA_ROOT, 'uploads', 'deep', 'nested')))

    def test_prepare_directory_outside_root_fails(self):
        self.assertFalse(self.adapter.prepare_directory('../escape'))

    def test_write_file_creates_record(self):
        record = self.adapter.write_file(self._upload(b'hello', 'hello.txt', 'text/plain'), 'uploads/hello.txt')

        self.assertEqual(record.path, 'uploads/hello.txt')
        self.assertEqual(record.size, 5)
        self.assertEqual(record.mime_type, 'text/plain')
        self.assertEqual(self.adapter.lookup_record_by_path('uploads/hello.txt'), record)

    def test_write_file_removes_bytes_when_record_fails(self):
        with patch.object(StoredFile.objects, 'create', side_effect=IntegrityError('boom')):
            with self.assertRaises(IntegrityError):
                self.adapter.write_file(self._upload(b'hello', 'hello.txt'), 'uploads/hello.txt')

        self.assertFalse(default_storage.exists('uploads/hello.txt'))

    def test_update_record_failure_keeps_original(self):
        record = self.adapter.write_file(self._upload(b'original', 'doc.txt'), 'uploads/doc.txt')

        with patch.object(StorageAdapter, '_commit', side_effect=OSError('disk full')):
            with self.assertRaises(OSError):
                self.adapter.update_record(record, self._upload(b'newer content', 'doc.txt'))

        record.refresh_from_db()
        self.assertEqual(record.size, len(b'original'))
        self.assertEqual(read_stored('uploads/doc.txt'), b'original')
        _, files = default_storage.listdir('uploads')
        self.assertEqual(files, ['doc.txt'])

    def test_path_exists_checks_bytes_and_records(self):
        default_storage.save('uploads/bytes.txt', ContentFile(b'x'))
        StoredFile.objects.create(filename='record.txt', path='uploads/record.txt', size=1, mime_type='text/plain')

        self.assertTrue(self.adapter.path_exists('uploads/bytes.txt'))
        self.assertTrue(self.adapter.path_exists('uploads/record.txt'))
        self.assertFalse(self.adapter.path_exists('uploads/none.txt'))

    def test_delete_file_removes_bytes_and_record(self):
        record = self.adapter.write_file(self._upload(b'bye', 'bye.txt'), 'uploads/bye.txt')

        self.adapter.delete_file(record)

        self.assertFalse(StoredFile.objects.exists())
        self.assertFalse(default_storage.exists('uploads/bye.txt'))

    def test_write_file_keeps_name_chosen_by_storage(self):
        # Bytes appear at the resolved path before the write.
        default_storage.save('uploads/late.txt', ContentFile(b'first'))

        record = self.adapter.write_file(self._upload(b'second', 'late.txt', 'text/plain'), 'uploads/late.txt')

        self.assertNotEqual(record.path, 'uploads/late.txt')
        self.assertTrue(record.path.startswith('uploads/late'))
        self.assertEqual(record.filename, record.path.rpartition('/')[2])
        self.assertEqual(read_stored(record.path), b'second')
        self.assertEqual(read_stored('uploads/late.txt'), b'first')

    def test_write_file_overwrite_updates_concurrent_record(self):
        original = self.adapter.write_file(self._upload(b'one', 'doc.txt'), 'uploads/doc.txt')

        record = self.adapter.write_file(self._upload(b'two!', 'doc.txt'), 'uploads/doc.txt', overwrite=True)

        self.assertEqual(record.id, original.id)
        self.assertEqual(record.size, 4)
        self.assertEqual(StoredFile.objects.count(), 1)
        self.assertEqual(read_stored('uploads/doc.txt'), b'two!')

    def test_anonymous_owner_is_ignored(self):
        from django.contrib.auth.models import AnonymousUser

        adapter = StorageAdapter(owner=AnonymousUser())

        self.assertIsNone(adapter.owner)


@override_settings(MEDIA_ROOT=TEST_MEDIA_ROOT)
class RemoteStorageAdapterTests(MediaRootMixin, TestCase):
    """Adapter on a storage without local filesystem paths."""

    def setUp(self):
        self.storage = InMemoryStorage()
        self.adapter = StorageAdapter(storage=self.storage)

    def test_prepare_directory_succeeds_without_local_path(self):
        with self.assertRaises(NotImplementedError):
            self.storage.path('uploads')

        self.assertTrue(self.adapter.prepare_directory('uploads'))

    def test_update_record_replaces_bytes(self):
        record = self.adapter.write_file(self._upload(b'original', 'doc.txt'), 'uploads/doc.txt')

        updated = self.adapter.update_record(record, self._upload(b'replacement', 'doc.txt'))

        self.assertEqual(updated.path, 'uploads/doc.txt')
        self.assertEqual(updated.size, len(b'replacement'))
        with self.storage.open('uploads/doc.txt', 'rb') as handle:
            self.assertEqual(handle.read(), b'replacement')
        _, files = self.storage.listdir('uploads')
        self.assertEqual(files, ['doc.txt'])

    def test_overwrite_replaces_unmanaged_bytes(self):
        self.storage.save('uploads/doc.txt', ContentFile(b'unmanaged'))

        record = self.adapter.write_file(self._upload(b'managed', 'doc.txt'), 'uploads/doc.txt', overwrite=True)

        self.assertEqual(record.path, 'uploads/doc.txt')
        with self.storage.open('uploads/doc.txt', 'rb') as handle:
            self.assertEqual(handle.read(), b'managed')
        _, files = self.storage.listdir('uploads')
        self.assertEqual(files, ['doc.txt'])


class MimeTypeTests(TestCase):

    def test_upload_content_type_wins(self):
        upload = SimpleUploadedFile('a.bin', b'x', content_type='image/png')
        self.assertEqual(infer_mime_type('a.bin', uploaded=upload), 'image/png')

    def test_generic_content_type_falls_back_to_filename(self):
        upload = SimpleUploadedFile('a.pdf', b'x', content_type='application/octet-stream')
        self.assertEqual(infer_mime_type('a.pdf', uploaded=upload), 'application/pdf')

    def test_unknown_defaults_to_octet_stream(self):
        self.assertEqual(infer_mime_type('a.unknownext'), 'application/octet-stream')
