"""Deletion of selected registry tags."""

from typing import Iterable, Sequence

from loguru import logger
from pydantic import BaseModel, Field

from ..api.exceptions import GitLabAPIError
from ..models.project import Project
from .context import MigrationContext
from .images import ImageBackupEngine


class CleanReport(BaseModel):
    """Tags deleted and tags that could not be deleted."""

    deleted: int = Field(default=0)
    failed: int = Field(default=0)


class TagCleaner:
    """Removes named tags from the registries of a set of projects."""

    def __init__(self, context: MigrationContext):
        self.context = context
        self.images = ImageBackupEngine(context)
        self.logger = logger.bind(component='TagCleaner')

    def clean(self, projects: Iterable[Project], tags: Sequence[str]) -> CleanReport:
        """Delete every listed tag found in the projects' registries.

        Raises:
            ValueError: If no tag is given; wiping whole registries is what
                the migration itself does
        """
        if not tags:
            raise ValueError('At least one tag is required')

        report = CleanReport()
        for item in self.images.collect_images(projects, tags):
            if self.context.dry_run:
                self.logger.info(f'🌵 DRY RUN: Would delete tag {item.location}')
                report.deleted += 1
                continue

            try:
                self.context.source_client.delete_repository_tag(
                    item.project_id, item.registry_id, item.name
                )
            except GitLabAPIError as e:
                self.logger.error(f'Failed to delete tag {item.location}: {e}')
                report.failed += 1
                continue

            self.logger.info(f'🗑️ Deleted tag {item.location}')
            report.deleted += 1

        return report
