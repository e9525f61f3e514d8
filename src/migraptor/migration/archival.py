"""Archived projects are read-only on GitLab; unarchive them for the run."""

from typing import Dict, List

from loguru import logger

from ..api.exceptions import GitLabAPIError
from ..models.project import Project
from .context import MigrationContext
from .errors import ArchivalError


class ArchivalStatePreserver:
    """Unarchives projects before mutation and archives them again after."""

    def __init__(self, context: MigrationContext):
        self.context = context
        self.logger = logger.bind(component='ArchivalStatePreserver')
        self._unarchived: Dict[int, Project] = {}

    @property
    def pending(self) -> List[Project]:
        """Projects unarchived by this run and not archived again yet."""
        return list(self._unarchived.values())

    def unarchive(self, project: Project) -> bool:
        """Unarchive ``project`` if it is archived.

        Returns:
            True if the project was (or in dry run, would be) unarchived

        Raises:
            ArchivalError: If GitLab refuses to unarchive the project
        """
        if not project.archived:
            return False

        self.logger.info(f'📂 Unarchiving project {project.path}')

        if self.context.dry_run:
            self.logger.info(
                f'🌵 DRY RUN: Would unarchive project {project.id} ({project.path})'
            )
        else:
            try:
                self.context.source_client.unarchive_project(project.id)
            except GitLabAPIError as e:
                self.logger.error('Unable to unarchive project, need to do it by hand')
                raise ArchivalError(project.id, 'unarchive', e) from e

        self._unarchived[project.id] = project
        return True

    def rearchive(self, project: Project) -> bool:
        """Archive again a project this run unarchived.

        Failures are logged only: the project stays usable, it just needs
        to be archived by hand.

        Returns:
            True if the project is archived again
        """
        if project.id not in self._unarchived:
            return False

        del self._unarchived[project.id]
        self.logger.info(f'🗄️ Archiving project {project.path}')

        if self.context.dry_run:
            self.logger.info(
                f'🌵 DRY RUN: Would archive project {project.id} ({project.path})'
            )
            return True

        try:
            self.context.source_client.archive_project(project.id)
        except GitLabAPIError as e:
            self.logger.error(
                f'Unable to archive project {project.path} ({project.id}), '
                f'need to do it by hand: {e}'
            )
            return False

        return True
