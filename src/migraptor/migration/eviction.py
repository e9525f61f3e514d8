"""Source registry cleanup after backup."""

from typing import Dict, Iterable, Sequence

from loguru import logger

from ..api.exceptions import GitLabAPIError
from ..models.project import Project
from ..models.registry import RegistryRepository
from .context import MigrationContext


class RegistryEvictor:
    """Deletes backed-up registry repositories and waits for GitLab to agree.

    GitLab refuses to transfer a project whose registry still holds tags,
    and repository deletion is processed asynchronously on its side.
    """

    def __init__(self, context: MigrationContext):
        self.context = context
        self.logger = logger.bind(component='RegistryEvictor')

    def evict(
        self, project: Project, repositories: Sequence[RegistryRepository]
    ) -> None:
        """Delete each repository of a project, best effort."""
        for repository in repositories:
            if self.context.dry_run:
                self.logger.info(
                    f'🌵 DRY RUN: Would delete registry repository {repository.id}'
                )
                continue

            try:
                self.context.source_client.delete_repository(project.id, repository.id)
            except GitLabAPIError as e:
                self.logger.error(
                    f'Failed to delete registry repository {repository.id}: {e}'
                )
            else:
                self.logger.debug(
                    f'Removed registry {repository.id} on project {project.id}'
                )

            self.context.pause(self.context.deletion_delay)

    def wait_for_project(self, project: Project) -> bool:
        """Poll until the project's registry is empty.

        Returns:
            True once no repository is left, False once every attempt is used up
        """
        self.logger.info(
            f'⏳ Waiting for images to be deleted from project {project.path}'
        )

        for attempt in range(1, self.context.max_poll_attempts + 1):
            try:
                repositories = self.context.source_client.list_registry_repositories(
                    project.id
                )
            except GitLabAPIError as e:
                self.logger.debug(f'Registry check for {project.path} failed: {e}')
            else:
                if not repositories:
                    self.logger.info(
                        f'🚮 All registries deleted for project {project.path}'
                    )
                    return True

            if attempt < self.context.max_poll_attempts:
                self.logger.info(
                    f'Still images remaining for project {project.path} '
                    f'(attempt {attempt}/{self.context.max_poll_attempts}). Waiting...'
                )
                self.context.pause(self.context.poll_delay)

        self.logger.warning(
            f'⌛️ Images for project {project.path} were not deleted after waiting. '
            'Continuing...'
        )
        return False

    def await_eviction(self, projects: Iterable[Project]) -> Dict[int, bool]:
        """Wait for every registry-enabled project's repositories to disappear.

        Returns:
            Project ID to whether eviction was confirmed; empty in dry run
        """
        if self.context.dry_run:
            self.logger.info(
                '🌵 DRY RUN: Would wait for images to be deleted from registry'
            )
            return {}

        self.logger.info('🔄 Waiting for images to be deleted from registry...')
        return {
            project.id: self.wait_for_project(project)
            for project in projects
            if project.container_registry_enabled
        }
