"""Management command to delete expired temporary files."""

from typing import Any, Final

from django.core.management.base import BaseCommand

from server.apps.files.logic.expiry_operations import (
    find_expired_files,
    sweep_expired_files,
)

_DEFAULT_BATCH_SIZE: Final = 1000


class Command(BaseCommand):
    """Delete temporary files whose deletion time has passed."""

    help = 'Delete expired temporary files from storage and the database'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be deleted without deleting',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=_DEFAULT_BATCH_SIZE,
            help=f'Max files to process (default: {_DEFAULT_BATCH_SIZE})',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the sweep.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        batch_size = options['batch_size']

        if options['dry_run']:
            expired_files = find_expired_files(batch_size=batch_size)
            for stored_file in expired_files:
                self.stdout.write(
                    f'Would delete: {stored_file.file_name} '
                    f'(ID: {stored_file.file_id}, '
                    f'expired: {stored_file.delete_at})',
                )
            self.stdout.write(
                self.style.SUCCESS(
                    f'Would delete {len(expired_files)} expired files',
                ),
            )
            return

        sweep = sweep_expired_files(batch_size=batch_size)
        for error in sweep.errors:
            self.stderr.write(error)

        self.stdout.write(
            self.style.SUCCESS(
                f'Deleted {sweep.deleted_count} expired files, '
                f'{len(sweep.errors)} errors',
            ),
        )
