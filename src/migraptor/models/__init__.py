"""Data models for GitLab entities."""

from .group import Group
from .project import Project
from .registry import ImageItem, RegistryRepository, RegistryTag

__all__ = [
    'Group',
    'Project',
    'RegistryRepository',
    'RegistryTag',
    'ImageItem',
]
