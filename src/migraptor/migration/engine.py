"""Migration engine - main entry point for migration operations."""

from typing import List, Optional, Sequence

from loguru import logger

from ..api.client import GitLabClient
from ..api.exceptions import GitLabAPIError
from ..config.config import Config
from ..container.client import ContainerClient, ContainerEngineError
from ..models.group import Group
from ..models.project import Project
from ..models.registry import ImageItem
from .cleanup import CleanReport, TagCleaner
from .context import MigrationContext
from .discovery import GroupDiscoverer
from .errors import (
    DestinationNotFoundError,
    GroupNotFoundError,
    NoProjectsFoundError,
    PrecheckError,
)
from .images import ImageBackupEngine
from .orchestrator import MigrationOrchestrator, MigrationPlan, MigrationSummary


class MigrationEngine:
    """Main migration engine that coordinates the entire migration process."""

    def __init__(
        self,
        config: Config,
        source_client: Optional[GitLabClient] = None,
        container_client: Optional[ContainerClient] = None,
    ):
        """Initialize migration engine.

        Args:
            config: Migration configuration
            source_client: GitLab client, built from ``config`` if omitted
            container_client: Container engine client, created on first use
                if omitted
        """
        self.config = config
        self.logger = logger.bind(component='MigrationEngine')

        self.source_client = source_client or GitLabClient(config.gitlab)
        self._container_client = container_client

    @property
    def container_client(self) -> ContainerClient:
        if self._container_client is None:
            try:
                self._container_client = ContainerClient()
            except ContainerEngineError as e:
                raise PrecheckError(str(e)) from e
        return self._container_client

    def _context(self, with_container: bool = True) -> MigrationContext:
        return MigrationContext.from_config(
            self.source_client,
            self.container_client if with_container else None,
            self.config.migration,
        )

    def migrate(self) -> MigrationSummary:
        """Run prechecks, discovery and the migration pipeline.

        Returns:
            Migration summary

        Raises:
            MigrationError: Subclass matching the phase that failed
        """
        self.logger.info('Starting GitLab migration')
        if self.config.migration.dry_run:
            self.logger.info('🌵 DRY RUN enabled, nothing will be changed')

        try:
            self.prechecks()
            plan = self.build_plan()
            orchestrator = MigrationOrchestrator(self._context())
            return orchestrator.execute(plan)
        except Exception as e:
            self.logger.error(f'Migration failed: {e}')
            raise
        finally:
            self.close()

    def prechecks(self) -> None:
        """Check GitLab and docker are usable and log in to the registry.

        Raises:
            PrecheckError: If any check fails
        """
        self.logger.info('Running prechecks')

        if not self.source_client.test_connection():
            raise PrecheckError(
                f'Cannot connect to GitLab at {self.config.gitlab.url}'
            )

        try:
            self.container_client.check_running()
        except ContainerEngineError as e:
            raise PrecheckError(str(e)) from e

        try:
            user = self.source_client.get_current_user()
        except GitLabAPIError as e:
            raise PrecheckError(f'Failed to get current user: {e}') from e

        username = user.get('username')
        self.logger.info(f'Connected to GitLab as {username}')

        try:
            self.container_client.login(
                self.config.registry_host, username, self.config.registry_password
            )
        except ContainerEngineError as e:
            raise PrecheckError(str(e)) from e

        self.logger.info('✅ Prechecks passed')

    def build_plan(self) -> MigrationPlan:
        """Resolve both groups and discover what to migrate.

        Raises:
            GroupNotFoundError: If the source group does not exist
            DestinationNotFoundError: If the destination group does not exist
            DiscoveryError: If the source group cannot be listed
            NoProjectsFoundError: If nothing is eligible for migration
        """
        settings = self.config.migration

        source = self._resolve_source()

        try:
            destination = self.source_client.search_group(settings.destination_group)
        except GitLabAPIError as e:
            self.logger.error(
                f'Failed to search group {settings.destination_group}: {e}'
            )
            raise DestinationNotFoundError(settings.destination_group) from e
        if destination is None:
            raise DestinationNotFoundError(settings.destination_group)
        self.logger.info(
            f'👀 Group {destination.full_path} found with ID {destination.id}'
        )

        discoverer = GroupDiscoverer(self.source_client, settings.preserve_hierarchy)
        result = discoverer.discover(source.id, settings.projects)
        for error in result.errors:
            self.logger.warning(f'Incomplete discovery: {error}')

        if not result.projects:
            raise NoProjectsFoundError(f'No projects found in {source.full_path}')

        return MigrationPlan(
            source_group=source,
            destination_group=destination,
            projects=result.projects,
            subgroups=result.subgroups,
            project_filter=settings.projects,
            tag_filter=settings.tags,
            preserve_hierarchy=settings.preserve_hierarchy,
        )

    def _resolve_source(self) -> Group:
        path = self.config.migration.source_group
        try:
            source = self.source_client.search_group(path)
        except GitLabAPIError as e:
            self.logger.error(f'Failed to search group {path}: {e}')
            raise GroupNotFoundError(path) from e
        if source is None:
            raise GroupNotFoundError(path)

        self.logger.info(f'👀 Group {source.full_path} found with ID {source.id}')
        return source

    def _source_projects(self) -> List[Project]:
        settings = self.config.migration
        source = self._resolve_source()

        discoverer = GroupDiscoverer(self.source_client, settings.preserve_hierarchy)
        result = discoverer.discover(source.id, settings.projects)
        return list(result.projects.values())

    def list_images(self) -> List[ImageItem]:
        """List every registry image of the source subtree.

        Read-only; the project and tag filters apply.
        """
        try:
            engine = ImageBackupEngine(self._context(with_container=False))
            return engine.collect_images(
                self._source_projects(), self.config.migration.tags
            )
        finally:
            self.source_client.close()

    def clean(self, tags: Sequence[str]) -> CleanReport:
        """Delete the given tags from the source subtree's registries."""
        try:
            cleaner = TagCleaner(self._context(with_container=False))
            report = cleaner.clean(self._source_projects(), tags)
        finally:
            self.source_client.close()

        self.logger.info(
            f'Clean completed: {report.deleted} tags deleted, {report.failed} failed'
        )
        return report

    def test_connectivity(self) -> Optional[str]:
        """Check the GitLab connection.

        Returns:
            GitLab version, if the instance reports one

        Raises:
            PrecheckError: If GitLab cannot be reached
        """
        self.logger.info('Testing connectivity to GitLab')

        if not self.source_client.test_connection():
            raise PrecheckError(
                f'Cannot connect to GitLab at {self.config.gitlab.url}'
            )

        return self.source_client.get_version()

    def close(self) -> None:
        self.source_client.close()
        if self._container_client is not None:
            self._container_client.close()
