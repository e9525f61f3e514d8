"""Container image backup and restore."""

from typing import Iterable, List, Sequence, Tuple

from loguru import logger
from pydantic import BaseModel, Field

from ..api.exceptions import GitLabAPIError
from ..container.client import ContainerEngineError
from ..models.project import Project
from ..models.registry import ImageItem, RegistryRepository, RegistryTag
from .context import MigrationContext
from .errors import BackupError


def filter_tags(
    tags: Iterable[RegistryTag], tag_filter: Sequence[str]
) -> List[RegistryTag]:
    """Keep the tags named in ``tag_filter``; an empty filter keeps all."""
    if not tag_filter:
        return list(tags)
    return [tag for tag in tags if tag.name in tag_filter]


def rewrite_reference(reference: str, old_root: str, new_root: str) -> str:
    """Move an image reference from one namespace root to another.

    The registry host is kept and the path right after it must start with
    ``old_root`` on a segment boundary::

        >>> rewrite_reference('registry.example.com/eng/app:v1', 'eng', 'ops/eng')
        'registry.example.com/ops/eng/app:v1'

    Raises:
        ValueError: If the image path does not start with ``old_root``
    """
    reference = reference.strip('"')
    old_root = old_root.strip('/')
    new_root = new_root.strip('/')

    host, sep, path = reference.partition('/')
    if not sep:
        raise ValueError(f'Image reference {reference} has no registry host')

    # A tag or digest may follow the last path segment directly
    rest = path[len(old_root) :]
    if path.startswith(old_root) and (not rest or rest[0] in '/:@'):
        return f'{host}/{new_root}{rest}'

    raise ValueError(f'Image {reference} is not located under {old_root}')


class ImageBackupEngine:
    """Pulls every retained registry image of a project to the local engine."""

    def __init__(self, context: MigrationContext):
        self.context = context
        self.logger = logger.bind(component='ImageBackupEngine')

    def get_images(
        self, project_id: int, repository_id: int, tag_filter: Sequence[str] = ()
    ) -> List[RegistryTag]:
        client = self.context.source_client
        tags = client.list_repository_tags(project_id, repository_id)
        return filter_tags(tags, tag_filter)

    def backup(
        self, project: Project, tag_filter: Sequence[str] = ()
    ) -> Tuple[List[str], List[RegistryRepository]]:
        """Pull all images of a project's registry repositories.

        Args:
            project: Project whose registry is backed up
            tag_filter: Tags to keep, empty means all

        Returns:
            Pulled image references and the repositories they came from

        Raises:
            BackupError: If a registry or its tags cannot be listed, or an
                image cannot be pulled
        """
        try:
            repositories = self.context.source_client.list_registry_repositories(
                project.id
            )
        except GitLabAPIError as e:
            raise BackupError(project.id, e) from e

        self.logger.info(
            f'👀 Found {len(repositories)} registries in project {project.path}'
        )

        if not repositories:
            self.logger.info(f'No registry found for project {project.path}')
            return [], []

        references: List[str] = []
        for repository in repositories:
            self.logger.debug(
                f'Working on repository {repository.id} from project {project.id}'
            )

            try:
                images = self.get_images(project.id, repository.id, tag_filter)
            except GitLabAPIError as e:
                raise BackupError(project.id, e) from e

            if not images:
                self.logger.info(
                    f'No images left after filtering on project {project.id} - '
                    f'repository {repository.id}'
                )
                continue

            for image in images:
                self.logger.debug(f'{image.name}\t{image.path}\t{image.location}')

            for image in images:
                self._pull(project, image.location)
                references.append(image.location)

        return references, repositories

    def _pull(self, project: Project, reference: str) -> None:
        if self.context.dry_run:
            self.logger.info(f'🌵 DRY RUN: Would pull image {reference}')
            return

        self.logger.info(f'🔌 Pulling image {reference}...')
        try:
            self.context.container_client.pull(reference)
        except ContainerEngineError as e:
            raise BackupError(project.id, e, reference) from e

    def collect_images(
        self, projects: Iterable[Project], tag_filter: Sequence[str] = ()
    ) -> List[ImageItem]:
        """List every image in the given projects' registries (read-only)."""
        items: List[ImageItem] = []

        for project in projects:
            if not project.container_registry_enabled:
                continue

            try:
                repositories = self.context.source_client.list_registry_repositories(
                    project.id
                )
            except GitLabAPIError as e:
                self.logger.debug(
                    f'Failed to list registries of project {project.id}: {e}'
                )
                continue

            for repository in repositories:
                try:
                    images = self.get_images(project.id, repository.id, tag_filter)
                except GitLabAPIError as e:
                    self.logger.debug(
                        f'Error during image search on project {project.id} - '
                        f'repository {repository.id}: {e}'
                    )
                    continue

                items.extend(
                    ImageItem(
                        name=image.name,
                        path=image.path,
                        location=image.location,
                        project_id=project.id,
                        project_name=project.name,
                        registry_id=repository.id,
                        registry_path=repository.path,
                    )
                    for image in images
                )

        return items


class RestoreReport(BaseModel):
    """Images pushed and images that failed during a restore."""

    restored: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)


class ImageRestoreEngine:
    """Re-publishes backed-up images under their destination path."""

    def __init__(self, context: MigrationContext):
        self.context = context
        self.logger = logger.bind(component='ImageRestoreEngine')

    def restore(
        self, references: Sequence[str], old_root: str, new_root: str
    ) -> RestoreReport:
        """Tag and push each backed-up image under ``new_root``.

        Failures are logged and skipped so the remaining images still go
        through.

        Args:
            references: Image references recorded during backup
            old_root: Namespace path the images were pulled from
            new_root: Namespace path the images are pushed to

        Returns:
            Report of restored and failed source references
        """
        report = RestoreReport()
        if not references:
            return report

        self.logger.info('🏷️ Tagging and pushing images...')

        for reference in references:
            try:
                new_reference = rewrite_reference(reference, old_root, new_root)
            except ValueError as e:
                self.logger.error(str(e))
                report.failed.append(reference)
                continue

            self.logger.debug(
                f'new image is {new_reference} based on {old_root} and {new_root}'
            )

            if self.context.dry_run:
                self.logger.info(
                    f'🌵 DRY RUN: Would tag {reference} as {new_reference}'
                )
                self.logger.info(f'🌵 DRY RUN: Would push {new_reference}')
                report.restored.append(new_reference)
                continue

            try:
                self.context.container_client.tag(reference, new_reference)
                self.logger.info(f'🔌 Pushing image {new_reference}...')
                self.context.container_client.push(new_reference)
            except ContainerEngineError as e:
                self.logger.error(str(e))
                report.failed.append(reference)
                continue

            report.restored.append(new_reference)

        return report
