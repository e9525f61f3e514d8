"""Project selection rules."""

from typing import Iterable

from ..models.project import Project


def should_migrate(
    project: Project, filter_list: Iterable[str], preserve_hierarchy: bool
) -> bool:
    """Decide whether a project takes part in the migration.

    Projects without a container registry always qualify when the hierarchy
    is preserved: they move with their group and need no image handling.

    Args:
        project: Candidate project
        filter_list: Project paths to migrate, empty means all
        preserve_hierarchy: Whether the source group moves as a whole

    Returns:
        True if the project should be migrated
    """
    filter_list = list(filter_list)
    if not filter_list:
        return True

    if project.path in filter_list:
        return True

    return not project.container_registry_enabled and preserve_hierarchy
