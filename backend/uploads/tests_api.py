"""
API Tests for Upload Fields and Stored Records
==============================================
Tests cover:
- Field configuration CRUD
- Upload endpoint per policy
- Record listing, filtering and deletion
"""

import shutil
import tempfile
from unittest.mock import patch

from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from contracts.models import StoredFile
from uploads.models import UploadField
from uploads.services import StorageAdapter


# Create a temporary media root for tests
TEST_MEDIA_ROOT = tempfile.mkdtemp()


@override_settings(MEDIA_ROOT=TEST_MEDIA_ROOT)
class UploadFieldAPITests(APITestCase):
    """API tests for field configuration."""

    def test_create_field(self):
        response = self.client.post('/api/fields/', {
            'name': 'attachments',
            'upload_directory': 'uploads',
            'policy': 'replace',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['policy'], 'replace')
        self.assertEqual(UploadField.objects.get().policy, 'replace')

    def test_create_field_defaults_to_rename(self):
        response = self.client.post('/api/fields/', {'name': 'attachments'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['policy'], 'rename')

    def test_invalid_policy_returns_400(self):
        response = self.client.post('/api/fields/', {
            'name': 'attachments',
            'policy': 'overwrite',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('policy', response.data)

    def test_escaping_directory_returns_400(self):
        response = self.client.post('/api/fields/', {
            'name': 'attachments',
            'upload_directory': '../outside',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('upload_directory', response.data)

    def test_invalid_extensions_return_400(self):
        response = self.client.post('/api/fields/', {
            'name': 'attachments',
            'allowed_extensions': 'txt p*f',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('allowed_extensions', response.data)
        self.assertFalse(UploadField.objects.exists())

    def test_extensions_are_normalised(self):
        response = self.client.post('/api/fields/', {
            'name': 'attachments',
            'allowed_extensions': '.PDF txt pdf',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['allowed_extensions'], 'pdf txt')
        self.assertEqual(response.data['extension_list'], ['pdf', 'txt'])

    def test_change_policy(self):
        UploadField.objects.create(name='attachments')

        response = self.client.patch('/api/fields/attachments/', {'policy': 'error'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(UploadField.objects.get().policy, 'error')


@override_settings(MEDIA_ROOT=TEST_MEDIA_ROOT)
class UploadAPITests(APITestCase):
    """API integration tests for the upload endpoint."""

    @classmethod
    def tearDownClass(cls):
        """Clean up temporary media directory."""
        super().tearDownClass()
        shutil.rmtree(TEST_MEDIA_ROOT, ignore_errors=True)

    def tearDown(self):
        shutil.rmtree(TEST_MEDIA_ROOT, ignore_errors=True)

    def _create_test_file(self, content: bytes, filename: str = 'photo.jpg') -> SimpleUploadedFile:
        """Helper to create a test file."""
        return SimpleUploadedFile(filename, content, content_type='image/jpeg')

    def _field(self, policy='rename', **kwargs):
        return UploadField.objects.create(
            name='gallery', upload_directory='gallery', policy=policy, **kwargs
        )

    def _post(self, *files):
        return self.client.post(
            '/api/fields/gallery/upload/',
            {'files': list(files)},
            format='multipart'
        )

    # ===================
    # Upload API Tests
    # ===================

    def test_upload_file_success(self):
        self._field()

        response = self._post(self._create_test_file(b'pixels'))

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data['records']), 1)
        record = next(iter(response.data['records'].values()))
        self.assertEqual(record['path'], 'gallery/photo.jpg')
        self.assertEqual(record['directory'], 'gallery')
        self.assertTrue(record['url'].endswith('/gallery/photo.jpg'))
        self.assertEqual(record['size'], len(b'pixels'))
        self.assertEqual(record['field'], 'gallery')
        self.assertEqual(response.data['errors'], [])

    def test_upload_rename_on_collision(self):
        self._field('rename')
        self._post(self._create_test_file(b'one'))

        response = self._post(self._create_test_file(b'two'))

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        record = next(iter(response.data['records'].values()))
        self.assertEqual(record['filename'], 'photo_1.jpg')
        self.assertEqual(StoredFile.objects.count(), 2)

    def test_upload_replace_on_collision(self):
        self._field('replace')
        first = self._post(self._create_test_file(b'one'))
        first_id = next(iter(first.data['records']))

        response = self._post(self._create_test_file(b'second version'))

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(list(response.data['records']), [first_id])
        self.assertEqual(response.data['replaced'], [first_id])
        self.assertEqual(StoredFile.objects.count(), 1)
        with default_storage.open('gallery/photo.jpg', 'rb') as handle:
            self.assertEqual(handle.read(), b'second version')

    def test_upload_error_on_collision(self):
        self._field('error')
        self._post(self._create_test_file(b'one'))

        response = self._post(self._create_test_file(b'two'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['records'], {})
        self.assertEqual(len(response.data['errors']), 1)
        with default_storage.open('gallery/photo.jpg', 'rb') as handle:
            self.assertEqual(handle.read(), b'one')

    def test_upload_multiple_files(self):
        self._field(multiple=True)

        response = self._post(
            self._create_test_file(b'a', 'a.jpg'),
            self._create_test_file(b'b', 'b.jpg'),
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data['records']), 2)

    def test_upload_no_file_is_noop(self):
        self._field()

        response = self.client.post('/api/fields/gallery/upload/', {}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['records'], {})
        self.assertEqual(response.data['errors'], [])

    def test_upload_directory_unavailable_returns_500(self):
        self._field()

        with patch.object(StorageAdapter, 'prepare_directory', return_value=False):
            response = self._post(self._create_test_file(b'x'))

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertIn('error', response.data)
        self.assertEqual(StoredFile.objects.count(), 0)

    def test_upload_unknown_field_returns_404(self):
        response = self._post(self._create_test_file(b'x'))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    # ===================
    # Record API Tests
    # ===================

    def test_list_records_empty(self):
        response = self.client.get('/api/records/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 0)

    def test_list_records_filters(self):
        self._field(multiple=True)
        self._post(
            self._create_test_file(b'a', 'sunset.jpg'),
            self._create_test_file(b'b', 'beach.jpg'),
        )

        response = self.client.get('/api/records/', {'search': 'sun'})
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['filename'], 'sunset.jpg')

        response = self.client.get('/api/records/', {'type_category': 'image'})
        self.assertEqual(response.data['count'], 2)

        response = self.client.get('/api/records/', {'directory': 'gallery'})
        self.assertEqual(response.data['count'], 2)

        response = self.client.get('/api/records/', {'directory': 'elsewhere'})
        self.assertEqual(response.data['count'], 0)

    def test_delete_record_removes_bytes(self):
        self._field()
        upload = self._post(self._create_test_file(b'gone'))
        record_id = next(iter(upload.data['records']))

        response = self.client.delete(f'/api/records/{record_id}/')

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(StoredFile.objects.count(), 0)
        self.assertFalse(default_storage.exists('gallery/photo.jpg'))
