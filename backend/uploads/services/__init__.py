from .resolver import Action, ResolutionOutcome, resolve, candidate_path, suffixed_path
from .persistence import StorageAdapter, infer_mime_type
from .upload import UploadService, UploadBatch

__all__ = [
    'Action',
    'ResolutionOutcome',
    'resolve',
    'candidate_path',
    'suffixed_path',
    'StorageAdapter',
    'infer_mime_type',
    'UploadService',
    'UploadBatch',
]
