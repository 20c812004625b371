"""
Upload errors.

Every failure is reported back to the submitting user; none is retried.
"""


class UploadError(Exception):
    """Base class for upload failures."""


class DirectoryUnavailable(UploadError):
    """Target directory could not be created or accessed. Aborts the whole batch."""

    def __init__(self, directory):
        self.directory = directory
        super().__init__(f"The upload directory '{directory}' could not be created or is not writable.")


class CollisionError(UploadError):
    """Path already occupied under the error policy. Skips that file only."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"A file named '{path}' already exists.")


class UploadMissing(UploadError):
    """No file data was submitted for the field. Treated as a no-op."""

    def __init__(self, field_name):
        self.field_name = field_name
        super().__init__(f"No file submitted for '{field_name}'.")


class UploadRejected(UploadError):
    """Upload failed validation (extension, size). Skips that file only."""

    def __init__(self, filename, reason):
        self.filename = filename
        self.reason = reason
        super().__init__(f"{filename}: {reason}")
