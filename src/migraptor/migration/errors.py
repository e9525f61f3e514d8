"""Migration error taxonomy.

Each error carries the process exit code the CLI reports for it.
"""

from typing import Optional

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_MIGRATION_FAILED = 99
EXIT_GROUP_NOT_FOUND = 321


class MigrationError(Exception):
    """Base class for errors raised by the migration pipeline."""

    exit_code = EXIT_MIGRATION_FAILED


class ConfigurationError(MigrationError):
    """Configuration is missing or invalid."""

    exit_code = EXIT_FAILURE


class NoProjectsFoundError(MigrationError):
    """Discovery found nothing to migrate."""

    exit_code = EXIT_FAILURE


class GroupNotFoundError(MigrationError):
    """The source group does not exist."""

    exit_code = EXIT_GROUP_NOT_FOUND

    def __init__(self, group_path: str):
        super().__init__(f'Group {group_path} not found')
        self.group_path = group_path


class DestinationNotFoundError(MigrationError):
    """The destination group does not exist."""

    def __init__(self, group_path: str):
        super().__init__(f'Destination group {group_path} not found')
        self.group_path = group_path


class PrecheckError(MigrationError):
    """GitLab, docker or registry login is not usable."""


class DiscoveryError(MigrationError):
    """Listing a group's subgroups or projects failed."""

    def __init__(self, group_id: int, cause: Exception):
        super().__init__(f'Failed to discover group {group_id}: {cause}')
        self.group_id = group_id
        self.cause = cause


class BackupError(MigrationError):
    """A registry could not be listed or an image pulled.

    The source registry must then be kept, so the run stops before eviction.
    """

    def __init__(
        self, project_id: int, cause: Exception, reference: Optional[str] = None
    ):
        target = f'image {reference}' if reference else 'registry'
        super().__init__(f'Failed to back up {target} of project {project_id}: {cause}')
        self.project_id = project_id
        self.reference = reference


class TransferError(MigrationError):
    """A group or project transfer was rejected."""

    def __init__(
        self,
        message: str,
        entity_id: Optional[int] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.entity_id = entity_id
        self.status_code = status_code


class ArchivalError(MigrationError):
    """Archiving or unarchiving a project failed."""

    def __init__(self, project_id: int, action: str, cause: Exception):
        super().__init__(f'Failed to {action} project {project_id}: {cause}')
        self.project_id = project_id
        self.action = action
