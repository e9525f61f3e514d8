"""Container registry entity models."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class RegistryRepository(BaseModel):
    """Container registry repository belonging to one project."""

    id: int = Field(..., description='Repository ID')
    path: str = Field(..., description='Repository path')
    project_id: Optional[int] = Field(default=None, description='Owning project ID')
    location: Optional[str] = Field(
        default=None, description='Fully qualified repository location'
    )

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'RegistryRepository':
        return cls(
            id=data['id'],
            path=data.get('path', ''),
            project_id=data.get('project_id'),
            location=data.get('location'),
        )


class RegistryTag(BaseModel):
    """A tagged image inside a registry repository.

    ``location`` is the fully qualified pull reference, e.g.
    ``registry.gitlab.com/eng/app/api:v1``.
    """

    name: str = Field(..., description='Tag name')
    path: str = Field(..., description='Image path with tag')
    location: str = Field(..., description='Fully qualified pull reference')

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'RegistryTag':
        return cls(name=data['name'], path=data['path'], location=data['location'])


class ImageItem(BaseModel):
    """An image together with the project and repository it lives in."""

    name: str = Field(..., description='Tag name')
    path: str = Field(..., description='Image path with tag')
    location: str = Field(..., description='Fully qualified pull reference')
    project_id: int = Field(..., description='Owning project ID')
    project_name: str = Field(..., description='Owning project name')
    registry_id: int = Field(..., description='Registry repository ID')
    registry_path: str = Field(..., description='Registry repository path')
