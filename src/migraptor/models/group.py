"""Group entity models."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, validator


class Group(BaseModel):
    """GitLab group (namespace node) model."""

    id: int = Field(..., description='Group ID')
    name: Optional[str] = Field(default=None, description='Group name')
    path: str = Field(..., description='Group path (last segment)')
    full_path: str = Field(..., description='Full group path with parents')
    parent_id: Optional[int] = Field(default=None, description='Parent group ID')
    web_url: Optional[str] = Field(default=None, description='Web URL')

    @validator('full_path')
    def validate_full_path(cls, v):
        """Normalize surrounding slashes."""
        v = v.strip('/')
        if not v:
            raise ValueError('full_path must not be empty')
        return v

    @property
    def depth(self) -> int:
        """Number of path segments above this group."""
        return self.full_path.count('/')

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Group':
        """Build a group from a GitLab API payload."""
        return cls(
            id=data['id'],
            name=data.get('name'),
            path=data['path'],
            full_path=data.get('full_path') or data['path'],
            parent_id=data.get('parent_id'),
            web_url=data.get('web_url'),
        )
