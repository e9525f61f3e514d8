"""Project entity models."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Project(BaseModel):
    """GitLab project model, reduced to what a transfer needs."""

    id: int = Field(..., description='Project ID')
    name: str = Field(..., description='Project name')
    path: str = Field(..., description='Project path')
    path_with_namespace: Optional[str] = Field(
        default=None, description='Full project path'
    )

    container_registry_enabled: bool = Field(
        default=False, description='Container registry enabled'
    )
    archived: bool = Field(default=False, description='Project is archived')

    # Namespace (owning group)
    namespace_id: Optional[int] = Field(default=None, description='Owning group ID')
    namespace_full_path: Optional[str] = Field(
        default=None, description='Owning group full path'
    )

    # Set on the working copy made during backup, never on the plan's project
    registry_repository_ids: List[int] = Field(
        default_factory=list, description='Container registry repository IDs'
    )

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Project':
        """Build a project from a GitLab API payload.

        Newer GitLab versions report ``container_registry_access_level``
        instead of the deprecated boolean flag.
        """
        registry_enabled = data.get('container_registry_enabled')
        if registry_enabled is None:
            access_level = data.get('container_registry_access_level')
            registry_enabled = access_level not in (None, 'disabled')

        namespace = data.get('namespace') or {}

        return cls(
            id=data['id'],
            name=data.get('name') or data['path'],
            path=data['path'],
            path_with_namespace=data.get('path_with_namespace'),
            container_registry_enabled=bool(registry_enabled),
            archived=bool(data.get('archived', False)),
            namespace_id=namespace.get('id'),
            namespace_full_path=namespace.get('full_path'),
        )
