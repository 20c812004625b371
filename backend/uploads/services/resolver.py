"""
Naming Policy Resolver
======================
Decides where an upload is stored and whether it creates or updates a record.

The resolver is a pure decision function: existence and record lookups are
injected callables and all writes are left to the caller.

Policies:
1. rename: first free ``stem_N.ext`` (N >= 1), action CREATE
2. replace: the candidate path unchanged, UPDATE if a record exists there
3. error: CollisionError if the path exists, else CREATE
"""

import enum
import posixpath
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..exceptions import CollisionError
from ..policy import UploadPolicy


class Action(enum.Enum):
    CREATE = 'create'
    UPDATE = 'update'


@dataclass(frozen=True)
class ResolutionOutcome:
    path: str
    action: Action
    record: Optional[Any] = None


def candidate_path(directory: str, filename: str) -> str:
    """Join a storage-relative directory and filename into a normalised POSIX path."""
    directory = (directory or '').replace('\\', '/').strip('/')
    if not directory:
        return filename
    return posixpath.normpath(posixpath.join(directory, filename))


def suffixed_path(path: str, n: int) -> str:
    """
    Insert ``_n`` between the stem and the extension of the basename.

    ``docs/photo.jpg`` -> ``docs/photo_2.jpg``; only the last dot counts as
    the extension separator, and dotfiles have no extension.
    """
    directory, basename = posixpath.split(path)
    stem, ext = posixpath.splitext(basename)
    return posixpath.join(directory, f"{stem}_{n}{ext}")


def resolve(
    candidate: str,
    policy,
    exists: Callable[[str], bool],
    lookup_record: Callable[[str], Any],
) -> ResolutionOutcome:
    """
    Resolve a candidate storage path under the given policy.

    Args:
        candidate: Storage-relative path the upload would occupy
        policy: UploadPolicy (or its string value)
        exists: Returns True when bytes are already stored at a path
        lookup_record: Returns the record stored at a path, or None

    Returns:
        ResolutionOutcome with the final path and the record action

    Raises:
        CollisionError: policy is error and the candidate path exists
        ValueError: unknown policy
    """
    policy = UploadPolicy(policy)

    if policy == UploadPolicy.REPLACE:
        record = lookup_record(candidate)
        if record is not None:
            return ResolutionOutcome(candidate, Action.UPDATE, record)
        return ResolutionOutcome(candidate, Action.CREATE)

    if not exists(candidate):
        return ResolutionOutcome(candidate, Action.CREATE)

    if policy == UploadPolicy.ERROR:
        raise CollisionError(candidate)

    n = 1
    while exists(suffixed_path(candidate, n)):
        n += 1
    return ResolutionOutcome(suffixed_path(candidate, n), Action.CREATE)
