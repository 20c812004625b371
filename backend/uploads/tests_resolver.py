"""
Unit Tests for the Naming Policy Resolver
=========================================
Tests cover:
- Rename suffixing and uniqueness
- Replace create/update decisions
- Error policy collisions
- Path helpers
"""

from django.test import SimpleTestCase

from uploads.exceptions import CollisionError
from uploads.policy import UploadPolicy
from uploads.services.resolver import (
    Action,
    ResolutionOutcome,
    candidate_path,
    resolve,
    suffixed_path,
)


class FakeStore:
    """In-memory existence and record lookups, counting every call."""

    def __init__(self, paths=(), records=None):
        self.paths = set(paths)
        self.records = dict(records or {})
        self.calls = []

    def exists(self, path):
        self.calls.append(('exists', path))
        return path in self.paths

    def lookup(self, path):
        self.calls.append(('lookup', path))
        return self.records.get(path)

    def resolve(self, path, policy):
        return resolve(path, policy, self.exists, self.lookup)


class PathHelperTests(SimpleTestCase):

    def test_candidate_path_joins_directory_and_filename(self):
        self.assertEqual(candidate_path('uploads/docs', 'a.txt'), 'uploads/docs/a.txt')

    def test_candidate_path_strips_slashes(self):
        self.assertEqual(candidate_path('/uploads/docs/', 'a.txt'), 'uploads/docs/a.txt')

    def test_candidate_path_empty_directory(self):
        self.assertEqual(candidate_path('', 'a.txt'), 'a.txt')

    def test_candidate_path_normalises_backslashes(self):
        self.assertEqual(candidate_path('uploads\\docs', 'a.txt'), 'uploads/docs/a.txt')

    def test_suffixed_path_goes_before_extension(self):
        self.assertEqual(suffixed_path('uploads/photo.jpg', 1), 'uploads/photo_1.jpg')

    def test_suffixed_path_uses_last_dot_only(self):
        self.assertEqual(suffixed_path('backup.tar.gz', 3), 'backup.tar_3.gz')

    def test_suffixed_path_without_extension(self):
        self.assertEqual(suffixed_path('uploads/README', 2), 'uploads/README_2')

    def test_suffixed_path_dotfile_has_no_extension(self):
        self.assertEqual(suffixed_path('.env', 1), '.env_1')


class RenamePolicyTests(SimpleTestCase):

    def test_free_path_is_unchanged(self):
        store = FakeStore()

        outcome = store.resolve('uploads/photo.jpg', UploadPolicy.RENAME)

        self.assertEqual(outcome, ResolutionOutcome('uploads/photo.jpg', Action.CREATE))

    def test_taken_path_gets_first_suffix(self):
        store = FakeStore(['uploads/photo.jpg'])

        outcome = store.resolve('uploads/photo.jpg', UploadPolicy.RENAME)

        self.assertEqual(outcome.path, 'uploads/photo_1.jpg')
        self.assertEqual(outcome.action, Action.CREATE)
        self.assertIsNone(outcome.record)

    def test_skips_taken_suffixes(self):
        store = FakeStore(['photo.jpg', 'photo_1.jpg'])

        outcome = store.resolve('photo.jpg', UploadPolicy.RENAME)

        self.assertEqual(outcome.path, 'photo_2.jpg')

    def test_uses_smallest_free_suffix(self):
        store = FakeStore(['photo.jpg', 'photo_1.jpg', 'photo_3.jpg'])

        outcome = store.resolve('photo.jpg', UploadPolicy.RENAME)

        self.assertEqual(outcome.path, 'photo_2.jpg')

    def test_result_does_not_exist(self):
        taken = ['a.txt'] + [f'a_{n}.txt' for n in range(1, 25)]
        store = FakeStore(taken)

        outcome = store.resolve('a.txt', UploadPolicy.RENAME)

        self.assertNotIn(outcome.path, taken)
        self.assertEqual(outcome.path, 'a_25.txt')

    def test_repeated_resolution_is_idempotent(self):
        store = FakeStore(['photo.jpg', 'photo_1.jpg'])

        first = store.resolve('photo.jpg', UploadPolicy.RENAME)
        second = store.resolve('photo.jpg', UploadPolicy.RENAME)

        self.assertEqual(first, second)
        self.assertEqual(store.paths, {'photo.jpg', 'photo_1.jpg'})

    def test_never_looks_up_records(self):
        store = FakeStore(['photo.jpg'])

        store.resolve('photo.jpg', UploadPolicy.RENAME)

        self.assertFalse([c for c in store.calls if c[0] == 'lookup'])

    def test_accepts_string_policy(self):
        store = FakeStore(['photo.jpg'])

        outcome = store.resolve('photo.jpg', 'rename')

        self.assertEqual(outcome.path, 'photo_1.jpg')


class ReplacePolicyTests(SimpleTestCase):

    def test_free_path_creates(self):
        store = FakeStore()

        outcome = store.resolve('uploads/report.pdf', UploadPolicy.REPLACE)

        self.assertEqual(outcome, ResolutionOutcome('uploads/report.pdf', Action.CREATE))

    def test_existing_record_updates(self):
        record = object()
        store = FakeStore(['uploads/report.pdf'], {'uploads/report.pdf': record})

        outcome = store.resolve('uploads/report.pdf', UploadPolicy.REPLACE)

        self.assertEqual(outcome.path, 'uploads/report.pdf')
        self.assertEqual(outcome.action, Action.UPDATE)
        self.assertIs(outcome.record, record)

    def test_bytes_without_record_creates_at_same_path(self):
        store = FakeStore(['uploads/report.pdf'])

        outcome = store.resolve('uploads/report.pdf', UploadPolicy.REPLACE)

        self.assertEqual(outcome.path, 'uploads/report.pdf')
        self.assertEqual(outcome.action, Action.CREATE)

    def test_path_is_always_the_candidate(self):
        for paths in ([], ['x.txt'], ['x.txt', 'x_1.txt']):
            with self.subTest(paths=paths):
                outcome = FakeStore(paths).resolve('x.txt', UploadPolicy.REPLACE)
                self.assertEqual(outcome.path, 'x.txt')


class ErrorPolicyTests(SimpleTestCase):

    def test_free_path_creates(self):
        store = FakeStore()

        outcome = store.resolve('notes.txt', UploadPolicy.ERROR)

        self.assertEqual(outcome, ResolutionOutcome('notes.txt', Action.CREATE))

    def test_taken_path_raises_collision(self):
        store = FakeStore(['notes.txt'])

        with self.assertRaises(CollisionError) as ctx:
            store.resolve('notes.txt', UploadPolicy.ERROR)

        self.assertEqual(ctx.exception.path, 'notes.txt')
        self.assertIn('notes.txt', str(ctx.exception))

    def test_collision_probes_only_the_candidate(self):
        store = FakeStore(['notes.txt'])

        with self.assertRaises(CollisionError):
            store.resolve('notes.txt', UploadPolicy.ERROR)

        self.assertEqual(store.calls, [('exists', 'notes.txt')])


class UnknownPolicyTests(SimpleTestCase):

    def test_unknown_policy_raises_value_error(self):
        with self.assertRaises(ValueError):
            FakeStore().resolve('a.txt', 'overwrite')
