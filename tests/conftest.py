"""Shared test fixtures: in-memory GitLab and container engine fakes."""

from typing import Dict, List, Optional, Tuple
from unittest.mock import Mock, patch

import pytest

from migraptor.api.exceptions import GitLabAPIError
from migraptor.config.config import LEGACY_ENV_VARS, PREFIXED_ENV_VARS
from migraptor.container.client import ContainerEngineError
from migraptor.migration.context import MigrationContext
from migraptor.models import Group, Project, RegistryRepository, RegistryTag

REGISTRY_HOST = 'registry.example.com'
ENV_NAMES = set(LEGACY_ENV_VARS.values()) | set(PREFIXED_ENV_VARS.values())


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Isolate tests from the caller's environment and any .env file."""
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    with patch('migraptor.config.config.load_dotenv'):
        yield


class FakeGitLab:
    """Records every call and serves groups, projects and registries."""

    MUTATING = {
        'create_group',
        'transfer_group',
        'transfer_project',
        'archive_project',
        'unarchive_project',
        'delete_repository',
        'delete_repository_tag',
    }

    def __init__(self):
        self.calls: List[Tuple] = []
        self.groups: Dict[int, Group] = {}
        self.projects: Dict[int, List[Project]] = {}
        self.subgroups: Dict[int, List[Group]] = {}
        self.repositories: Dict[int, List[RegistryRepository]] = {}
        self.tags: Dict[Tuple[int, int], List[RegistryTag]] = {}

        self.group_transfer_status = 201
        self.sticky_registries = False
        self.failing_groups = set()
        self.failing_transfers = set()
        self.failing_unarchive = set()
        self.failing_archive = set()
        self._next_id = 900

    # Test setup

    def add_group(self, group_id: int, full_path: str, parent: Optional[Group] = None):
        group = Group(
            id=group_id,
            name=full_path.rsplit('/', 1)[-1],
            path=full_path.rsplit('/', 1)[-1],
            full_path=full_path,
            parent_id=parent.id if parent else None,
        )
        self.groups[group_id] = group
        self.projects.setdefault(group_id, [])
        self.subgroups.setdefault(group_id, [])
        if parent is not None:
            self.subgroups[parent.id].append(group)
        return group

    def add_project(
        self,
        group: Group,
        project_id: int,
        path: str,
        tags: Tuple[str, ...] = (),
        registry: bool = False,
        archived: bool = False,
    ) -> Project:
        registry = registry or bool(tags)
        project = Project(
            id=project_id,
            name=path,
            path=path,
            path_with_namespace=f'{group.full_path}/{path}',
            container_registry_enabled=registry,
            archived=archived,
            namespace_id=group.id,
            namespace_full_path=group.full_path,
        )
        self.projects[group.id].append(project)

        if tags:
            repository_id = project_id * 10
            repository_path = f'{group.full_path}/{path}'.lower()
            self.repositories[project_id] = [
                RegistryRepository(
                    id=repository_id, path=repository_path, project_id=project_id
                )
            ]
            self.tags[(project_id, repository_id)] = [
                RegistryTag(
                    name=tag,
                    path=f'{repository_path}:{tag}',
                    location=f'{REGISTRY_HOST}/{repository_path}:{tag}',
                )
                for tag in tags
            ]
        return project

    def mutating_calls(self) -> List[Tuple]:
        return [call for call in self.calls if call[0] in self.MUTATING]

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]

    # Client interface

    def search_group(self, path: str) -> Optional[Group]:
        self.calls.append(('search_group', path))
        for group in self.groups.values():
            if group.full_path == path.strip('/'):
                return group
        return None

    def create_group(self, name: str, parent_id: Optional[int] = None) -> Group:
        self.calls.append(('create_group', name, parent_id))
        self._next_id += 1
        parent = self.groups[parent_id]
        return self.add_group(self._next_id, f'{parent.full_path}/{name}', parent)

    def list_projects(self, group_id: int) -> List[Project]:
        self.calls.append(('list_projects', group_id))
        if group_id in self.failing_groups:
            raise GitLabAPIError('listing failed', status_code=500)
        return list(self.projects.get(group_id, []))

    def list_subgroups(self, group_id: int) -> List[Group]:
        self.calls.append(('list_subgroups', group_id))
        return list(self.subgroups.get(group_id, []))

    def transfer_group(self, group_id: int, target_group_id: int) -> int:
        self.calls.append(('transfer_group', group_id, target_group_id))
        return self.group_transfer_status

    def transfer_project(self, project_id: int, namespace_id: int) -> int:
        self.calls.append(('transfer_project', project_id, namespace_id))
        if project_id in self.failing_transfers:
            raise GitLabAPIError('transfer refused', status_code=400)
        return 200

    def archive_project(self, project_id: int) -> int:
        self.calls.append(('archive_project', project_id))
        if project_id in self.failing_archive:
            raise GitLabAPIError('archive refused', status_code=403)
        return 201

    def unarchive_project(self, project_id: int) -> int:
        self.calls.append(('unarchive_project', project_id))
        if project_id in self.failing_unarchive:
            raise GitLabAPIError('unarchive refused', status_code=403)
        return 201

    def list_registry_repositories(self, project_id: int) -> List[RegistryRepository]:
        self.calls.append(('list_registry_repositories', project_id))
        return list(self.repositories.get(project_id, []))

    def list_repository_tags(
        self, project_id: int, repository_id: int
    ) -> List[RegistryTag]:
        self.calls.append(('list_repository_tags', project_id, repository_id))
        return list(self.tags.get((project_id, repository_id), []))

    def delete_repository(self, project_id: int, repository_id: int) -> None:
        self.calls.append(('delete_repository', project_id, repository_id))
        if not self.sticky_registries:
            self.repositories[project_id] = [
                repo
                for repo in self.repositories.get(project_id, [])
                if repo.id != repository_id
            ]

    def delete_repository_tag(
        self, project_id: int, repository_id: int, tag_name: str
    ) -> None:
        self.calls.append(
            ('delete_repository_tag', project_id, repository_id, tag_name)
        )

    def get_current_user(self):
        self.calls.append(('get_current_user',))
        return {'id': 1, 'username': 'raptor'}

    def test_connection(self) -> bool:
        self.calls.append(('test_connection',))
        return True

    def get_version(self) -> str:
        return '16.0.0'

    def close(self) -> None:
        pass


class FakeContainer:
    """Records docker operations; selected references fail."""

    MUTATING = {'pull', 'tag', 'push', 'remove_image'}

    def __init__(self):
        self.calls: List[Tuple] = []
        self.failing_pulls = set()
        self.failing_pushes = set()

    def mutating_calls(self) -> List[Tuple]:
        return [call for call in self.calls if call[0] in self.MUTATING]

    def check_running(self) -> None:
        self.calls.append(('check_running',))

    def login(self, registry: str, username: str, password: str) -> None:
        self.calls.append(('login', registry, username))

    def pull(self, reference: str) -> None:
        self.calls.append(('pull', reference))
        if reference in self.failing_pulls:
            raise ContainerEngineError(f'pull failed: {reference}', reference)

    def tag(self, source: str, target: str) -> None:
        self.calls.append(('tag', source, target))

    def push(self, reference: str) -> None:
        self.calls.append(('push', reference))
        if reference in self.failing_pushes:
            raise ContainerEngineError(f'push failed: {reference}', reference)

    def close(self) -> None:
        pass


@pytest.fixture()
def gitlab():
    return FakeGitLab()


@pytest.fixture()
def container():
    return FakeContainer()


def make_context(gitlab, container, dry_run=False, **overrides):
    settings = dict(
        transfer_delay=0,
        deletion_delay=0,
        poll_delay=0,
        max_poll_attempts=30,
        sleep=Mock(),
    )
    settings.update(overrides)
    return MigrationContext(
        source_client=gitlab, container_client=container, dry_run=dry_run, **settings
    )


@pytest.fixture()
def context(gitlab, container):
    return make_context(gitlab, container)


@pytest.fixture()
def dry_context(gitlab, container):
    return make_context(gitlab, container, dry_run=True)


@pytest.fixture()
def context_factory(gitlab, container):
    """Build contexts with custom settings over the shared fakes."""

    def factory(**overrides):
        return make_context(gitlab, container, **overrides)

    return factory
