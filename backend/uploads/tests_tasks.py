"""
Unit Tests for Storage Maintenance
==================================
Tests cover:
- Orphan detection below configured field directories
- Age threshold and dry runs
- purge_orphaned_files management command
"""

import os
import shutil
import tempfile
import time
from io import StringIO

from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.core.management import call_command
from django.test import TestCase, override_settings

from contracts.models import StoredFile
from uploads.models import UploadField
from uploads.tasks import field_base_directory, purge_orphaned_files


# Create a temporary media root for tests
TEST_MEDIA_ROOT = tempfile.mkdtemp()


class FieldBaseDirectoryTests(TestCase):

    def test_stops_at_first_token(self):
        field = UploadField(name='a', upload_directory='uploads/%Y/%m')
        self.assertEqual(field_base_directory(field), 'uploads')

    def test_plain_directory(self):
        field = UploadField(name='a', upload_directory='/uploads/docs/')
        self.assertEqual(field_base_directory(field), 'uploads/docs')

    def test_empty_directory(self):
        self.assertEqual(field_base_directory(UploadField(name='a')), '')


@override_settings(MEDIA_ROOT=TEST_MEDIA_ROOT)
class PurgeOrphanedFilesTests(TestCase):

    @classmethod
    def tearDownClass(cls):
        """Clean up temporary media directory after all tests."""
        super().tearDownClass()
        shutil.rmtree(TEST_MEDIA_ROOT, ignore_errors=True)

    def setUp(self):
        UploadField.objects.create(name='attachments', upload_directory='uploads/%Y')
        self.managed = default_storage.save('uploads/2020/managed.txt', ContentFile(b'kept'))
        StoredFile.objects.create(
            filename='managed.txt', path=self.managed, size=4, mime_type='text/plain'
        )
        self.orphan = default_storage.save('uploads/2020/orphan.txt', ContentFile(b'lost'))
        self.outside = default_storage.save('other/unrelated.txt', ContentFile(b'not ours'))
        for path in (self.managed, self.orphan, self.outside):
            self._age(path, 24 * 60 * 60)

    def tearDown(self):
        shutil.rmtree(TEST_MEDIA_ROOT, ignore_errors=True)

    def _age(self, path, seconds):
        old = time.time() - seconds
        os.utime(default_storage.path(path), (old, old))

    def test_deletes_only_orphans(self):
        result = purge_orphaned_files()

        self.assertEqual(result['orphaned'], [self.orphan])
        self.assertEqual(result['deleted'], 1)
        self.assertFalse(default_storage.exists(self.orphan))
        self.assertTrue(default_storage.exists(self.managed))

    def test_ignores_directories_of_no_field(self):
        purge_orphaned_files()

        self.assertTrue(default_storage.exists(self.outside))

    def test_dry_run_deletes_nothing(self):
        result = purge_orphaned_files(dry_run=True)

        self.assertEqual(result['orphaned'], [self.orphan])
        self.assertEqual(result['deleted'], 0)
        self.assertTrue(default_storage.exists(self.orphan))

    def test_recent_files_are_kept(self):
        self._age(self.orphan, 0)

        result = purge_orphaned_files()

        self.assertEqual(result['orphaned'], [])
        self.assertTrue(default_storage.exists(self.orphan))

    @override_settings(UPLOADS_ORPHAN_MAX_AGE=48 * 60 * 60)
    def test_max_age_is_configurable(self):
        result = purge_orphaned_files()

        self.assertEqual(result['orphaned'], [])

    def test_management_command_dry_run(self):
        out = StringIO()

        call_command('purge_orphaned_files', '--dry-run', stdout=out)

        self.assertIn(self.orphan, out.getvalue())
        self.assertIn('Dry run', out.getvalue())
        self.assertTrue(default_storage.exists(self.orphan))

    def test_management_command_deletes(self):
        out = StringIO()

        call_command('purge_orphaned_files', stdout=out)

        self.assertIn('Deleted: 1', out.getvalue())
        self.assertFalse(default_storage.exists(self.orphan))
