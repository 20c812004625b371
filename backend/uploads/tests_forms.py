"""
Unit Tests for the Form Configuration Binding
=============================================
Tests cover:
- Field construction per policy
- UploadForm save and error reporting
- Per-field settings form validation
"""

import shutil
import tempfile
from unittest.mock import patch

from django.core.exceptions import ValidationError
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from django.utils.datastructures import MultiValueDict

from contracts.models import StoredFile
from uploads.forms import (
    ManagedFileField,
    UploadFieldSettingsForm,
    UploadForm,
    build_upload_field,
)
from uploads.models import UploadField
from uploads.policy import UploadPolicy
from uploads.services import StorageAdapter


# Create a temporary media root for tests
TEST_MEDIA_ROOT = tempfile.mkdtemp()


class BuildUploadFieldTests(TestCase):

    def _field(self, **kwargs):
        kwargs.setdefault('name', 'attachments')
        return UploadField(**kwargs)

    def test_builds_managed_field_with_policy(self):
        form_field = build_upload_field(self._field(policy=UploadPolicy.REPLACE))

        self.assertIsInstance(form_field, ManagedFileField)
        self.assertEqual(form_field.policy, UploadPolicy.REPLACE)
        self.assertEqual(form_field.widget.attrs['data-upload-policy'], 'replace')

    def test_replace_policy_is_described(self):
        form_field = build_upload_field(self._field(policy=UploadPolicy.REPLACE))

        self.assertIn('will replace it', form_field.help_text)

    def test_error_policy_is_described(self):
        form_field = build_upload_field(self._field(policy=UploadPolicy.ERROR))

        self.assertIn('rejected', form_field.help_text)

    def test_rename_policy_adds_no_description(self):
        form_field = build_upload_field(self._field(policy=UploadPolicy.RENAME))

        self.assertNotIn('same name', form_field.help_text)
        self.assertEqual(form_field.widget.attrs['data-upload-policy'], 'rename')

    def test_multiple_field_allows_multiple_selection(self):
        form_field = build_upload_field(self._field(multiple=True))

        self.assertTrue(form_field.widget.allow_multiple_selected)
        self.assertTrue(form_field.widget.attrs['multiple'])

    def test_single_field_is_not_multiple(self):
        form_field = build_upload_field(self._field())

        self.assertFalse(form_field.widget.allow_multiple_selected)
        self.assertNotIn('multiple', form_field.widget.attrs)

    def test_label_and_limits_in_help_text(self):
        form_field = build_upload_field(
            self._field(label='Documents', allowed_extensions='pdf txt', max_filesize=2048)
        )

        self.assertEqual(form_field.label, 'Documents')
        self.assertIn('pdf txt', form_field.help_text)
        self.assertIn('2.0 KB', form_field.help_text)

    def test_field_is_optional_by_default(self):
        self.assertFalse(build_upload_field(self._field()).required)

    def test_required_field_rejects_empty_list(self):
        form_field = build_upload_field(self._field(multiple=True), required=True)

        with self.assertRaises(ValidationError):
            form_field.clean([])


@override_settings(MEDIA_ROOT=TEST_MEDIA_ROOT)
class UploadFormTests(TestCase):

    @classmethod
    def tearDownClass(cls):
        """Clean up temporary media directory after all tests."""
        super().tearDownClass()
        shutil.rmtree(TEST_MEDIA_ROOT, ignore_errors=True)

    def tearDown(self):
        shutil.rmtree(TEST_MEDIA_ROOT, ignore_errors=True)

    def _field(self, policy=UploadPolicy.RENAME, **kwargs):
        return UploadField.objects.create(
            name='attachments', upload_directory='forms', policy=policy, **kwargs
        )

    def _files(self, *uploads):
        return MultiValueDict({'attachments': list(uploads)})

    def _upload(self, content=b'content', name='report.txt'):
        return SimpleUploadedFile(name, content, content_type='text/plain')

    def _submit(self, field, *uploads):
        form = UploadForm(field, data={}, files=self._files(*uploads))
        self.assertTrue(form.is_valid(), form.errors)
        return form, form.save()

    def test_save_returns_record_mapping(self):
        field = self._field()

        form, records = self._submit(field, self._upload())

        self.assertEqual(len(records), 1)
        record = next(iter(records.values()))
        self.assertEqual(record.path, 'forms/report.txt')
        self.assertEqual(form.batch.records, records)

    def test_empty_submission_returns_empty_mapping(self):
        field = self._field()
        form = UploadForm(field, data={}, files=MultiValueDict())

        self.assertTrue(form.is_valid())
        self.assertEqual(form.save(), {})
        self.assertEqual(StoredFile.objects.count(), 0)

    def test_multiple_files_are_saved(self):
        field = self._field(multiple=True)

        _, records = self._submit(field, self._upload(name='a.txt'), self._upload(name='b.txt'))

        self.assertEqual(sorted(r.filename for r in records.values()), ['a.txt', 'b.txt'])

    def test_replace_through_form_updates_record(self):
        field = self._field(UploadPolicy.REPLACE)
        _, first = self._submit(field, self._upload(b'v1'))

        _, second = self._submit(field, self._upload(b'version two'))

        self.assertEqual(list(first), list(second))
        self.assertEqual(StoredFile.objects.get().size, len(b'version two'))

    def test_collision_becomes_field_error(self):
        field = self._field(UploadPolicy.ERROR)
        self._submit(field, self._upload())

        form, records = self._submit(field, self._upload(b'again'))

        self.assertEqual(records, {})
        self.assertIn('attachments', form.errors)
        self.assertIn('already exists', form.errors['attachments'][0])

    def test_directory_unavailable_becomes_form_error(self):
        field = self._field()
        form = UploadForm(field, data={}, files=self._files(self._upload()))
        self.assertTrue(form.is_valid())

        with patch.object(StorageAdapter, 'prepare_directory', return_value=False):
            records = form.save()

        self.assertEqual(records, {})
        self.assertIn('could not be created', form.non_field_errors()[0])
        self.assertEqual(StoredFile.objects.count(), 0)

    def test_save_on_invalid_form_raises(self):
        field = self._field()
        form = UploadForm(field, data={}, files=self._files(self._upload()))
        form.add_error(None, 'broken')

        with self.assertRaises(ValueError):
            form.save()


class UploadFieldSettingsFormTests(TestCase):

    def _data(self, **overrides):
        data = {
            'name': 'attachments',
            'label': 'Attachments',
            'field_type': 'file',
            'upload_directory': 'uploads/%Y',
            'policy': 'replace',
            'allowed_extensions': 'txt pdf',
            'max_filesize': 0,
            'multiple': True,
        }
        data.update(overrides)
        return data

    def test_valid_settings_are_saved(self):
        form = UploadFieldSettingsForm(data=self._data())

        self.assertTrue(form.is_valid(), form.errors)
        field = form.save()
        self.assertEqual(field.policy, UploadPolicy.REPLACE)
        self.assertEqual(field.effective_policy, UploadPolicy.REPLACE)
        self.assertTrue(field.multiple)

    def test_unknown_policy_is_invalid(self):
        form = UploadFieldSettingsForm(data=self._data(policy='overwrite'))

        self.assertFalse(form.is_valid())
        self.assertIn('policy', form.errors)

    def test_absolute_directory_is_invalid(self):
        form = UploadFieldSettingsForm(data=self._data(upload_directory='/etc'))

        self.assertFalse(form.is_valid())
        self.assertIn('upload_directory', form.errors)

    def test_parent_directory_is_invalid(self):
        form = UploadFieldSettingsForm(data=self._data(upload_directory='uploads/../../etc'))

        self.assertFalse(form.is_valid())
        self.assertIn('upload_directory', form.errors)

    def test_directory_is_normalised(self):
        form = UploadFieldSettingsForm(data=self._data(upload_directory='uploads//docs/'))

        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data['upload_directory'], 'uploads/docs')

    def test_extensions_are_normalised(self):
        form = UploadFieldSettingsForm(data=self._data(allowed_extensions='.TXT pdf txt'))

        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data['allowed_extensions'], 'txt pdf')

    def test_invalid_extension_is_rejected(self):
        form = UploadFieldSettingsForm(data=self._data(allowed_extensions='txt p*f'))

        self.assertFalse(form.is_valid())
        self.assertIn('allowed_extensions', form.errors)

    @override_settings(UPLOADS_DEFAULT_POLICY='error')
    def test_default_policy_comes_from_settings(self):
        field = UploadField.objects.create(name='defaults')

        self.assertEqual(field.policy, 'error')
