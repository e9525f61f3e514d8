"""Recursive discovery of a group subtree."""

from typing import Dict, List, Sequence

from loguru import logger
from pydantic import BaseModel, Field

from ..api.client import GitLabClient
from ..api.exceptions import GitLabAPIError
from ..models.group import Group
from ..models.project import Project
from .errors import DiscoveryError
from .selector import should_migrate


class DiscoveryResult(BaseModel):
    """Subgroups and eligible projects found below a root group."""

    subgroups: Dict[int, Group] = Field(
        default_factory=dict, description='Descendant subgroups by ID'
    )
    projects: Dict[int, Project] = Field(
        default_factory=dict, description='Eligible projects by ID'
    )
    errors: List[DiscoveryError] = Field(
        default_factory=list, description='Branches that could not be listed'
    )

    class Config:
        """Pydantic configuration."""

        arbitrary_types_allowed = True

    def merge(self, other: 'DiscoveryResult') -> None:
        """Union another branch into this one, keyed by platform ID."""
        self.subgroups.update(other.subgroups)
        self.projects.update(other.projects)
        self.errors.extend(other.errors)


class GroupDiscoverer:
    """Walks a group subtree and collects migration-eligible projects."""

    def __init__(self, client: GitLabClient, preserve_hierarchy: bool = True):
        self.client = client
        self.preserve_hierarchy = preserve_hierarchy
        self.logger = logger.bind(component='GroupDiscoverer')

    def discover(
        self, root_group_id: int, filter_list: Sequence[str] = ()
    ) -> DiscoveryResult:
        """Discover every subgroup and eligible project below a group.

        A failing subgroup branch is recorded in ``errors`` and skipped;
        a failure on the root group itself is raised.

        Args:
            root_group_id: Group to start from
            filter_list: Project paths to keep, empty means all

        Returns:
            Discovery result; the root group is not part of ``subgroups``

        Raises:
            DiscoveryError: If the root group cannot be listed
        """
        result = self._discover_branch(root_group_id, list(filter_list))

        self.logger.info(
            f'Discovered {len(result.subgroups)} subgroups and '
            f'{len(result.projects)} projects under group {root_group_id}'
        )
        return result

    def _discover_branch(
        self, group_id: int, filter_list: List[str]
    ) -> DiscoveryResult:
        try:
            projects = self.client.list_projects(group_id)
            subgroups = self.client.list_subgroups(group_id)
        except GitLabAPIError as e:
            raise DiscoveryError(group_id, e) from e

        result = DiscoveryResult()
        for project in projects:
            if should_migrate(project, filter_list, self.preserve_hierarchy):
                result.projects[project.id] = project
            else:
                self.logger.info(f'Not migrating {project.path}, not in filter list')

        for subgroup in subgroups:
            result.subgroups[subgroup.id] = subgroup
            try:
                branch = self._discover_branch(subgroup.id, filter_list)
            except DiscoveryError as e:
                self.logger.error(f'Skipping subgroup {subgroup.full_path}: {e}')
                result.errors.append(e)
                continue
            result.merge(branch)

        return result
