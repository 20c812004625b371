"""
Form Configuration Binding
==========================
Builds the form field for a managed upload field and exposes the per-field
upload policy setting.

``build_upload_field`` is the widget construction step: callers invoke it
directly with the field configuration, and it attaches the policy the
upload service applies when the form is saved.
"""

import logging

from django import forms

from .exceptions import DirectoryUnavailable
from .models import UploadField
from .policy import UploadPolicy, POLICY_DESCRIPTIONS
from .services import UploadService
from .services.upload import format_file_size
from .validators import normalize_extensions, normalize_upload_directory

logger = logging.getLogger(__name__)


class ManagedFileInput(forms.FileInput):
    """File input that can accept several files and advertises its policy."""

    def __init__(self, attrs=None, multiple=False, policy=UploadPolicy.RENAME):
        self.allow_multiple_selected = multiple
        attrs = dict(attrs or {})
        if multiple:
            attrs['multiple'] = True
        attrs['data-upload-policy'] = UploadPolicy(policy).value
        super().__init__(attrs)


class ManagedFileField(forms.FileField):
    """FileField whose cleaned value is always a list of uploads."""

    def __init__(self, *, policy=UploadPolicy.RENAME, multiple=False, **kwargs):
        self.policy = UploadPolicy(policy)
        self.multiple = multiple
        kwargs.setdefault('widget', ManagedFileInput(multiple=multiple, policy=self.policy))
        kwargs.setdefault('required', False)
        super().__init__(**kwargs)

    def clean(self, data, initial=None):
        single_file_clean = super().clean
        if isinstance(data, (list, tuple)):
            uploads = [single_file_clean(d, initial) for d in data]
        else:
            uploads = [single_file_clean(data, initial)]
        uploads = [u for u in uploads if u]
        if self.required and not uploads:
            raise forms.ValidationError(self.error_messages['required'], code='required')
        return uploads


def build_upload_field(upload_field, **kwargs):
    """
    Construct the form field for ``upload_field``.

    The field carries the configured policy; under the replace and error
    policies the collision behaviour is spelled out in the help text.
    """
    policy = upload_field.effective_policy

    help_parts = []
    if policy != UploadPolicy.RENAME:
        help_parts.append(str(POLICY_DESCRIPTIONS[policy]))
    extensions = upload_field.extension_list
    if extensions:
        help_parts.append(f"Allowed types: {' '.join(extensions)}.")
    help_parts.append(f"Maximum size: {format_file_size(upload_field.size_limit)}.")

    kwargs.setdefault('label', upload_field.label or upload_field.name)
    kwargs.setdefault('help_text', ' '.join(help_parts))
    return ManagedFileField(policy=policy, multiple=upload_field.multiple, **kwargs)


class UploadForm(forms.Form):
    """
    A form with one managed file field.

    ``save()`` returns the mapping of record id to StoredFile for every file
    stored; problems are reported as form errors.
    """

    def __init__(self, upload_field, *args, service=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.upload_field = upload_field
        self.service = service or UploadService()
        self.batch = None
        self.fields[upload_field.name] = build_upload_field(upload_field)

    def save(self, owner=None):
        if self.errors:
            raise ValueError("The upload could not be saved because the data didn't validate.")

        name = self.upload_field.name
        uploads = self.cleaned_data.get(name) or []
        try:
            self.batch = self.service.save_uploads(uploads, self.upload_field, owner=owner)
        except DirectoryUnavailable as e:
            self.add_error(None, str(e))
            return {}

        for message in self.batch.errors:
            self.add_error(name, message)
        return self.batch.records


class UploadFieldSettingsForm(forms.ModelForm):
    """Per-field settings, including the upload policy."""

    class Meta:
        model = UploadField
        fields = [
            'name',
            'label',
            'field_type',
            'upload_directory',
            'policy',
            'allowed_extensions',
            'max_filesize',
            'multiple',
        ]
        widgets = {
            'policy': forms.RadioSelect,
        }

    def clean_upload_directory(self):
        return normalize_upload_directory(self.cleaned_data['upload_directory'])

    def clean_allowed_extensions(self):
        return normalize_extensions(self.cleaned_data['allowed_extensions'])
