"""
Validation shared by the settings form and the field API.
"""

import posixpath
import re

from django.core.exceptions import ValidationError


EXTENSION_RE = re.compile(r'^[a-z0-9]+$')


def normalize_upload_directory(value):
    """Return a clean storage-relative directory, rejecting escapes."""
    directory = (value or '').replace('\\', '/').strip()
    if directory.startswith('/'):
        raise ValidationError("The upload directory must be relative to the storage root.")
    if '..' in directory.split('/'):
        raise ValidationError("The upload directory may not contain '..'.")
    directory = posixpath.normpath(directory) if directory else ''
    return '' if directory == '.' else directory


def normalize_extensions(value):
    """Lowercase, strip leading dots and dedupe a space separated extension list."""
    extensions = [e.lower().lstrip('.') for e in (value or '').split()]
    invalid = [e for e in extensions if not EXTENSION_RE.match(e)]
    if invalid:
        raise ValidationError(f"Invalid extensions: {', '.join(invalid)}")
    return ' '.join(dict.fromkeys(extensions))
