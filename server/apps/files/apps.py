"""Django app configuration for files app."""

from typing import override

from django.apps import AppConfig


class FilesConfig(AppConfig):
    """Configuration for the file broker app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'server.apps.files'
    verbose_name = 'File broker'

    @override
    def ready(self) -> None:
        """Connect the policy reload signal."""
        from server.apps.files import signals  # noqa: F401
