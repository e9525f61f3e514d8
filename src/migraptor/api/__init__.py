"""GitLab REST API access."""

from .client import APIResponse, GitLabClient
from .exceptions import (
    GitLabAPIError,
    GitLabAuthenticationError,
    GitLabNotFoundError,
    GitLabPermissionError,
    GitLabRateLimitError,
)

__all__ = [
    'APIResponse',
    'GitLabAPIError',
    'GitLabAuthenticationError',
    'GitLabClient',
    'GitLabNotFoundError',
    'GitLabPermissionError',
    'GitLabRateLimitError',
]
