"""Group and project transfers."""

from enum import Enum
from typing import Iterable, Sequence, Tuple

from loguru import logger

from ..api.exceptions import GitLabAPIError
from ..models.group import Group
from ..models.project import Project
from .context import MigrationContext
from .errors import TransferError

GROUP_TRANSFER_SUCCESS = 201


class TransferMode(str, Enum):
    """How projects reach the destination group."""

    WHOLE_GROUP = 'whole_group'
    SUBGROUP = 'subgroup'
    FLATTEN = 'flatten'


def select_mode(
    preserve_hierarchy: bool, filter_list: Sequence[str]
) -> TransferMode:
    """Pick the transfer strategy.

    A group can only move as a whole when every project in it migrates,
    so a project filter downgrades hierarchy preservation to a same-named
    subgroup receiving the selected projects.
    """
    if not preserve_hierarchy:
        return TransferMode.FLATTEN
    if filter_list:
        return TransferMode.SUBGROUP
    return TransferMode.WHOLE_GROUP


def namespace_roots(
    mode: TransferMode, project: Project, source_root: Group, target: Group
) -> Tuple[str, str]:
    """Registry path roots an image moves between for a project.

    Args:
        mode: Transfer mode in use
        project: Project owning the images
        source_root: Discovered root group
        target: Group the project (or the root group) was moved into

    Returns:
        Lowercased (old_root, new_root) registry paths
    """
    if mode == TransferMode.WHOLE_GROUP:
        old_root = source_root.full_path
        new_root = f'{target.full_path}/{source_root.path}'
    else:
        old_root = project.namespace_full_path or source_root.full_path
        new_root = target.full_path

    return old_root.lower(), new_root.lower()


class TransferEngine:
    """Moves groups and projects to the destination namespace."""

    def __init__(self, context: MigrationContext):
        self.context = context
        self.logger = logger.bind(component='TransferEngine')

    def transfer_group(self, group: Group, destination: Group) -> None:
        """Move a whole group under the destination group.

        Raises:
            TransferError: If GitLab does not answer with 201 Created
        """
        self.logger.info(
            f'🚚 Transferring group {group.full_path} to {destination.full_path}'
        )

        if self.context.dry_run:
            self.logger.info(
                f'🌵 DRY RUN: Would transfer group {group.id} '
                f'to group {destination.id}'
            )
            return

        try:
            status_code = self.context.source_client.transfer_group(
                group.id, destination.id
            )
        except GitLabAPIError as e:
            raise TransferError(
                f'Failed to transfer group {group.id}: {e}',
                entity_id=group.id,
                status_code=e.status_code,
            ) from e

        if status_code != GROUP_TRANSFER_SUCCESS:
            self.logger.error(f'❌ Cannot move group, error code {status_code}')
            raise TransferError(
                f'Unexpected status code {status_code} transferring group {group.id}',
                entity_id=group.id,
                status_code=status_code,
            )

        self.logger.info(f'✅ Group moved (status {status_code})')
        self.context.pause(self.context.transfer_delay)

    def locate_or_create_subgroup(
        self,
        source_root: Group,
        destination: Group,
        projects: Iterable[Project] = (),
    ) -> Group:
        """Find or create the subgroup receiving filtered projects.

        The subgroup is named after the last path segment of the source
        root. Nested source roots and projects from deeper subgroups are
        collapsed into that single subgroup, which is reported.

        Raises:
            TransferError: If the subgroup cannot be looked up or created
        """
        name = source_root.path
        full_path = f'{destination.full_path}/{name}'

        if source_root.depth > 0:
            self.logger.warning(
                f'Source group {source_root.full_path} is nested; only its last '
                f'segment is kept, projects go to {full_path}'
            )
        nested = sorted(
            project.path_with_namespace or project.path
            for project in projects
            if project.namespace_id is not None
            and project.namespace_id != source_root.id
        )
        if nested:
            self.logger.warning(
                f'Projects from subgroups of {source_root.full_path} will be placed '
                f'directly in {full_path}: {", ".join(nested)}'
            )

        try:
            existing = self.context.source_client.search_group(full_path)
        except GitLabAPIError as e:
            raise TransferError(f'Failed to look up group {full_path}: {e}') from e

        if existing is not None:
            self.logger.info(f'ℹ️ Group {full_path} already exists, using it...')
            return existing

        self.logger.info(f'🪄 Group {full_path} does not exist yet, creating it...')

        if self.context.dry_run:
            self.logger.info(
                f'🌵 DRY RUN: Would create group {name} in group {destination.id}'
            )
            return Group(
                id=0,
                name=name,
                path=name,
                full_path=full_path,
                parent_id=destination.id,
            )

        try:
            created = self.context.source_client.create_group(name, destination.id)
        except GitLabAPIError as e:
            raise TransferError(f'Failed to create group {full_path}: {e}') from e

        self.logger.info(f'Group {created.full_path} created with ID {created.id}')
        return created

    def transfer_project(self, project: Project, target: Group) -> None:
        """Move one project into ``target`` and let GitLab settle.

        Raises:
            TransferError: If GitLab rejects the transfer
        """
        self.logger.info(
            f'🚚 Transferring project {project.path} to group {target.id}'
        )

        if self.context.dry_run:
            self.logger.info(
                f'🌵 DRY RUN: Would transfer project {project.id} ({project.path}) '
                f'to group {target.id}'
            )
            return

        try:
            status_code = self.context.source_client.transfer_project(
                project.id, target.id
            )
        except GitLabAPIError as e:
            raise TransferError(
                f'Failed to transfer project {project.id}: {e}',
                entity_id=project.id,
                status_code=e.status_code,
            ) from e

        self.logger.info(f'✅ Project moved (status {status_code})')
        self.context.pause(self.context.transfer_delay)
