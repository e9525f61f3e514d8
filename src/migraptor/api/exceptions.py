"""GitLab API exceptions."""

from typing import Any, Dict, Optional, Type


class GitLabAPIError(Exception):
    """A GitLab API call failed.

    Attributes:
        status_code: HTTP status, or None when no response came back
        response_data: Decoded error body, when GitLab sent a JSON object
        endpoint: API path that was called, when known
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None,
        endpoint: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data
        self.endpoint = endpoint

    def __str__(self) -> str:
        message = super().__str__()
        if self.endpoint:
            message = f'{message} ({self.endpoint})'
        return message


class GitLabAuthenticationError(GitLabAPIError):
    """Token missing, expired or rejected."""


class GitLabRateLimitError(GitLabAPIError):
    """GitLab throttled the token."""

    def __init__(self, message: str, retry_after: int = 60, **kwargs):
        kwargs.setdefault('status_code', 429)
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class GitLabNotFoundError(GitLabAPIError):
    """Group, project or registry repository not found."""


class GitLabPermissionError(GitLabAPIError):
    """Token lacks the owner/maintainer rights needed for the call."""


STATUS_ERRORS: Dict[int, Type[GitLabAPIError]] = {
    401: GitLabAuthenticationError,
    403: GitLabPermissionError,
    404: GitLabNotFoundError,
}


def error_for_status(
    status_code: int,
    message: str,
    endpoint: Optional[str] = None,
    response_data: Optional[Dict[str, Any]] = None,
) -> GitLabAPIError:
    """Build the exception matching an HTTP error status."""
    error_class = STATUS_ERRORS.get(status_code, GitLabAPIError)
    return error_class(
        message,
        status_code=status_code,
        response_data=response_data,
        endpoint=endpoint,
    )
