"""
Management command to remove stored bytes that have no record.

Usage:
    python manage.py purge_orphaned_files
    python manage.py purge_orphaned_files --dry-run  # Only list orphans
"""

from django.core.management.base import BaseCommand
from uploads.tasks import purge_orphaned_files


class Command(BaseCommand):
    help = 'Delete files in upload directories that no StoredFile record points to'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List orphaned files without deleting them',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        self.stdout.write(self.style.NOTICE('Scanning upload directories...'))

        result = purge_orphaned_files(dry_run=dry_run)

        for path in result['orphaned']:
            self.stdout.write(f'  {path}')

        summary = (
            f"Scanned: {result['scanned']}\n"
            f"Orphaned: {len(result['orphaned'])}\n"
            f"Deleted: {result['deleted']}"
        )
        if dry_run:
            self.stdout.write(self.style.WARNING(f'Dry run, nothing deleted\n{summary}'))
        else:
            self.stdout.write(self.style.SUCCESS(summary))
