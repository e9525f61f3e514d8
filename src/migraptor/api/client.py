"""GitLab API client implementation."""

from typing import Any, Dict, List, Optional
from urllib.parse import quote, urljoin

import requests
from loguru import logger
from pydantic import BaseModel

from ..config.config import GitLabInstanceConfig
from ..models.group import Group
from ..models.project import Project
from ..models.registry import RegistryRepository, RegistryTag
from .exceptions import (
    GitLabAPIError,
    GitLabAuthenticationError,
    GitLabNotFoundError,
    GitLabRateLimitError,
    error_for_status,
)
from .rate_limiter import RateLimiter


class APIResponse(BaseModel):
    """Standard API response wrapper."""

    status_code: int
    data: Any
    headers: Dict[str, str]
    success: bool


class GitLabClient:
    """GitLab API client with authentication and throttling."""

    def __init__(self, config: GitLabInstanceConfig):
        """Initialize GitLab client.

        Args:
            config: GitLab instance configuration
        """
        self.config = config
        self.base_url = f'{config.url.rstrip("/")}/api/{config.api_version}'
        self.session = requests.Session()
        self.rate_limiter = RateLimiter(config.rate_limit_per_second)

        if not config.token:
            raise GitLabAuthenticationError('No authentication token provided')

        self.session.headers.update(
            {
                'Private-Token': config.token,
                'Content-Type': 'application/json',
                'User-Agent': 'gitlab-migraptor/0.1.0',
            }
        )

        logger.info(f'Initialized GitLab client for {config.url}')

    def _build_url(self, endpoint: str) -> str:
        """Build full API URL from endpoint.

        Args:
            endpoint: API endpoint path

        Returns:
            Full API URL
        """
        return urljoin(self.base_url + '/', endpoint.lstrip('/'))

    def _handle_response(
        self, response: requests.Response, endpoint: Optional[str] = None
    ) -> APIResponse:
        """Decode a response, raising the matching error for failures.

        Raises:
            GitLabRateLimitError: On 429, with the advertised ``Retry-After``
            GitLabAPIError: Or a subclass from ``STATUS_ERRORS`` for any other
                status of 400 and above
        """
        headers = dict(response.headers)
        status_code = response.status_code

        if status_code == 429:
            retry_after = int(headers.get('Retry-After', 60))
            raise GitLabRateLimitError(
                f'Rate limit exceeded. Retry after {retry_after} seconds',
                retry_after=retry_after,
                endpoint=endpoint,
            )

        if status_code >= 400:
            error_data = self._error_body(response)
            # GitLab reports either {'message': ...} or {'error': ...}
            detail = error_data.get('message') or error_data.get('error')
            raise error_for_status(
                status_code,
                f'HTTP {status_code}: {detail or response.reason or "request failed"}',
                endpoint=endpoint,
                response_data=error_data or None,
            )

        try:
            data = response.json() if response.content else None
        except ValueError:
            data = response.text

        return APIResponse(
            status_code=status_code,
            data=data,
            headers=headers,
            success=200 <= status_code < 300,
        )

    @staticmethod
    def _error_body(response: requests.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    def _request(self, method: str, endpoint: str, **kwargs) -> APIResponse:
        url = self._build_url(endpoint)
        self.rate_limiter.acquire()

        try:
            response = self.session.request(
                method, url, timeout=self.config.timeout, **kwargs
            )
        except requests.RequestException as e:
            logger.error(f'Network error during {method} {endpoint}: {e}')
            raise GitLabAPIError(f'Network error: {e}', endpoint=endpoint) from e

        logger.debug(f'{method} {endpoint} -> {response.status_code}')
        return self._handle_response(response, endpoint)

    def get(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        """Make GET request."""
        return self._request('GET', endpoint, params=params, **kwargs)

    def post(
        self, endpoint: str, data: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        """Make POST request."""
        return self._request('POST', endpoint, json=data, **kwargs)

    def put(
        self, endpoint: str, data: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        """Make PUT request."""
        return self._request('PUT', endpoint, json=data, **kwargs)

    def delete(self, endpoint: str, **kwargs) -> APIResponse:
        """Make DELETE request."""
        return self._request('DELETE', endpoint, **kwargs)

    def get_paginated(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        per_page: int = 100,
    ) -> List[Dict[str, Any]]:
        """Get all pages of a paginated endpoint.

        Args:
            endpoint: API endpoint
            params: Query parameters
            per_page: Items per page

        Returns:
            List of all items from all pages
        """
        all_items = []
        page = 1

        params = dict(params or {})
        params['per_page'] = per_page

        while True:
            params['page'] = page
            response = self.get(endpoint, params=params)

            if not response.success:
                break

            items = response.data
            if not items:
                break

            all_items.extend(items)

            total_pages = response.headers.get('X-Total-Pages')
            if total_pages and page >= int(total_pages):
                break

            if len(items) < per_page:
                break

            page += 1

        logger.debug(f'Retrieved {len(all_items)} items from {endpoint}')
        return all_items

    # Groups

    def search_group(self, path: str) -> Optional[Group]:
        """Look up a group by its full path.

        Args:
            path: Full group path, e.g. ``eng/team``

        Returns:
            The group, or None when it does not exist
        """
        try:
            response = self.get(f'/groups/{quote(path.strip("/"), safe="")}')
        except GitLabNotFoundError:
            return None
        return Group.from_api(response.data)

    def get_group(self, group_id: int) -> Group:
        response = self.get(f'/groups/{group_id}')
        return Group.from_api(response.data)

    def create_group(self, name: str, parent_id: Optional[int] = None) -> Group:
        """Create a group, using ``name`` as both name and path."""
        payload: Dict[str, Any] = {'name': name, 'path': name}
        if parent_id is not None:
            payload['parent_id'] = parent_id
        response = self.post('/groups', data=payload)
        return Group.from_api(response.data)

    def list_subgroups(self, group_id: int) -> List[Group]:
        items = self.get_paginated(f'/groups/{group_id}/subgroups')
        return [Group.from_api(item) for item in items]

    def list_projects(self, group_id: int) -> List[Project]:
        """List the projects directly inside a group (no subgroups)."""
        items = self.get_paginated(
            f'/groups/{group_id}/projects', params={'include_subgroups': 'false'}
        )
        return [Project.from_api(item) for item in items]

    def transfer_group(self, group_id: int, target_group_id: int) -> int:
        """Move a group under another group.

        Returns:
            HTTP status code (201 on success)
        """
        response = self.post(
            f'/groups/{group_id}/transfer', data={'group_id': target_group_id}
        )
        return response.status_code

    # Projects

    def transfer_project(self, project_id: int, namespace_id: int) -> int:
        response = self.put(
            f'/projects/{project_id}/transfer', data={'namespace': namespace_id}
        )
        return response.status_code

    def archive_project(self, project_id: int) -> int:
        response = self.post(f'/projects/{project_id}/archive')
        return response.status_code

    def unarchive_project(self, project_id: int) -> int:
        response = self.post(f'/projects/{project_id}/unarchive')
        return response.status_code

    # Container registry

    def list_registry_repositories(self, project_id: int) -> List[RegistryRepository]:
        items = self.get_paginated(f'/projects/{project_id}/registry/repositories')
        return [RegistryRepository.from_api(item) for item in items]

    def list_repository_tags(
        self, project_id: int, repository_id: int
    ) -> List[RegistryTag]:
        items = self.get_paginated(
            f'/projects/{project_id}/registry/repositories/{repository_id}/tags'
        )
        return [RegistryTag.from_api(item) for item in items]

    def delete_repository(self, project_id: int, repository_id: int) -> None:
        self.delete(f'/projects/{project_id}/registry/repositories/{repository_id}')

    def delete_repository_tag(
        self, project_id: int, repository_id: int, tag_name: str
    ) -> None:
        self.delete(
            f'/projects/{project_id}/registry/repositories/{repository_id}'
            f'/tags/{quote(tag_name, safe="")}'
        )

    # Instance

    def get_current_user(self) -> Dict[str, Any]:
        """Return the user owning the token."""
        return self.get('/user').data

    def test_connection(self) -> bool:
        """Test connection to GitLab instance.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            response = self.get('/user')
            return response.success
        except GitLabAPIError as e:
            logger.error(f'Connection test failed: {e}')
            return False

    def get_version(self) -> Optional[str]:
        """Get GitLab version.

        Returns:
            GitLab version string or None if unavailable
        """
        try:
            response = self.get('/version')
            if response.success and response.data:
                return response.data.get('version')
        except GitLabAPIError as e:
            logger.warning(f'Could not retrieve GitLab version: {e}')

        return None

    def close(self):
        """Close the client session."""
        self.session.close()
        logger.debug('GitLab client session closed')

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
