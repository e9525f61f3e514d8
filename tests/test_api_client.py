"""Tests for GitLab API client."""

from unittest.mock import Mock, patch

import pytest
import requests

from migraptor.api.client import APIResponse, GitLabClient
from migraptor.api.exceptions import (
    GitLabAPIError,
    GitLabAuthenticationError,
    GitLabNotFoundError,
    GitLabPermissionError,
    GitLabRateLimitError,
)
from migraptor.api.rate_limiter import RateLimiter
from migraptor.config.config import GitLabInstanceConfig


def make_response(status_code=200, data=None, headers=None):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = data
    response.headers = headers or {'Content-Type': 'application/json'}
    response.content = b'{}' if data is not None else b''
    response.text = ''
    return response


class TestAPIResponse:
    """Test API response model."""

    def test_api_response_creation(self):
        """Test API response creation."""
        response = APIResponse(
            status_code=200,
            data={'id': 1, 'name': 'test'},
            headers={'Content-Type': 'application/json'},
            success=True,
        )

        assert response.status_code == 200
        assert response.data == {'id': 1, 'name': 'test'}
        assert response.success is True


class TestGitLabClient:
    """Test GitLab API client."""

    def setup_method(self):
        """Set up test fixtures."""
        self.config = GitLabInstanceConfig(
            url='https://gitlab.example.com',
            token='test-token',
            api_version='v4',
            timeout=30,
            rate_limit_per_second=1000,
        )

    def test_client_initialization(self):
        """Test client initialization."""
        client = GitLabClient(self.config)

        assert client.config == self.config
        assert client.base_url == 'https://gitlab.example.com/api/v4'
        assert client.session.headers['Private-Token'] == 'test-token'

    def test_build_url(self):
        """Test URL building."""
        client = GitLabClient(self.config)

        assert client._build_url('/user') == 'https://gitlab.example.com/api/v4/user'
        assert client._build_url('user') == 'https://gitlab.example.com/api/v4/user'

    @patch('requests.Session.request')
    def test_get_request_success(self, mock_request):
        """Test successful GET request."""
        mock_request.return_value = make_response(200, {'id': 1, 'name': 'test'})

        client = GitLabClient(self.config)
        response = client.get('/user')

        assert response.success is True
        assert response.data == {'id': 1, 'name': 'test'}
        mock_request.assert_called_once_with(
            'GET', 'https://gitlab.example.com/api/v4/user', timeout=30, params=None
        )

    @pytest.mark.parametrize(
        'status_code, error',
        [
            (401, GitLabAuthenticationError),
            (403, GitLabPermissionError),
            (404, GitLabNotFoundError),
            (500, GitLabAPIError),
        ],
    )
    @patch('requests.Session.request')
    def test_error_status_mapping(self, mock_request, status_code, error):
        mock_request.return_value = make_response(status_code, {'message': 'nope'})

        client = GitLabClient(self.config)

        with pytest.raises(error) as exc_info:
            client.get('/groups/1')

        assert exc_info.value.status_code == status_code
        assert exc_info.value.endpoint == '/groups/1'
        assert 'nope' in str(exc_info.value)

    @patch('requests.Session.request')
    def test_rate_limit_error(self, mock_request):
        """Test GET request with rate limit error."""
        mock_request.return_value = make_response(429, headers={'Retry-After': '60'})

        client = GitLabClient(self.config)

        with pytest.raises(GitLabRateLimitError) as exc_info:
            client.get('/user')

        assert exc_info.value.retry_after == 60

    @patch('requests.Session.request')
    def test_network_error_is_wrapped(self, mock_request):
        mock_request.side_effect = requests.ConnectionError('down')

        client = GitLabClient(self.config)

        with pytest.raises(GitLabAPIError):
            client.get('/user')

    @patch('requests.Session.request')
    def test_get_paginated(self, mock_request):
        """Test paginated GET request."""
        mock_request.side_effect = [
            make_response(200, [{'id': 1}, {'id': 2}], {'X-Total-Pages': '2'}),
            make_response(200, [{'id': 3}], {'X-Total-Pages': '2'}),
        ]

        client = GitLabClient(self.config)
        items = client.get_paginated('/groups/1/projects', per_page=2)

        assert items == [{'id': 1}, {'id': 2}, {'id': 3}]
        assert mock_request.call_count == 2
        assert mock_request.call_args.kwargs['params'] == {'per_page': 2, 'page': 2}

    @patch('requests.Session.request')
    def test_search_group(self, mock_request):
        mock_request.return_value = make_response(
            200, {'id': 7, 'name': 'Team', 'path': 'team', 'full_path': 'eng/team'}
        )

        client = GitLabClient(self.config)
        group = client.search_group('/eng/team')

        assert group.id == 7
        assert group.full_path == 'eng/team'
        assert mock_request.call_args.args[1].endswith('/groups/eng%2Fteam')

    @patch('requests.Session.request')
    def test_get_group(self, mock_request):
        mock_request.return_value = make_response(
            200, {'id': 7, 'name': 'Team', 'path': 'team', 'full_path': 'eng/team'}
        )

        client = GitLabClient(self.config)

        assert client.get_group(7).depth == 1
        assert mock_request.call_args.args[1].endswith('/groups/7')

    @patch('requests.Session.request')
    def test_search_group_not_found(self, mock_request):
        mock_request.return_value = make_response(404)

        client = GitLabClient(self.config)

        assert client.search_group('missing') is None

    @patch('requests.Session.request')
    def test_transfer_group_returns_status(self, mock_request):
        mock_request.return_value = make_response(201, {'id': 7})

        client = GitLabClient(self.config)

        assert client.transfer_group(7, 9) == 201
        mock_request.assert_called_once_with(
            'POST',
            'https://gitlab.example.com/api/v4/groups/7/transfer',
            timeout=30,
            json={'group_id': 9},
        )

    @patch('requests.Session.request')
    def test_transfer_project(self, mock_request):
        mock_request.return_value = make_response(200, {'id': 10})

        client = GitLabClient(self.config)

        assert client.transfer_project(10, 9) == 200
        assert mock_request.call_args.args[0] == 'PUT'
        assert mock_request.call_args.kwargs['json'] == {'namespace': 9}

    @patch('requests.Session.request')
    def test_list_projects_excludes_subgroups(self, mock_request):
        mock_request.return_value = make_response(
            200,
            [
                {
                    'id': 10,
                    'name': 'App',
                    'path': 'app',
                    'container_registry_access_level': 'enabled',
                    'archived': True,
                    'namespace': {'id': 1, 'full_path': 'eng'},
                }
            ],
        )

        client = GitLabClient(self.config)
        projects = client.list_projects(1)

        assert mock_request.call_args.kwargs['params']['include_subgroups'] == 'false'
        assert projects[0].container_registry_enabled is True
        assert projects[0].archived is True
        assert projects[0].namespace_full_path == 'eng'

    @patch('requests.Session.request')
    def test_registry_listing(self, mock_request):
        mock_request.side_effect = [
            make_response(200, [{'id': 100, 'path': 'eng/app', 'project_id': 10}]),
            make_response(
                200,
                [
                    {
                        'name': 'v1',
                        'path': 'eng/app:v1',
                        'location': 'registry.example.com/eng/app:v1',
                    }
                ],
            ),
        ]

        client = GitLabClient(self.config)
        repositories = client.list_registry_repositories(10)
        tags = client.list_repository_tags(10, repositories[0].id)

        assert repositories[0].id == 100
        assert tags[0].location == 'registry.example.com/eng/app:v1'

    @patch('requests.Session.request')
    def test_delete_repository_tag_quotes_name(self, mock_request):
        mock_request.return_value = make_response(200)

        client = GitLabClient(self.config)
        client.delete_repository_tag(10, 100, 'feature/x')

        assert mock_request.call_args.args[1].endswith(
            '/projects/10/registry/repositories/100/tags/feature%2Fx'
        )

    @patch('requests.Session.request')
    def test_test_connection(self, mock_request):
        """Test connection check success and failure."""
        mock_request.return_value = make_response(200, {'id': 1, 'username': 'test'})
        client = GitLabClient(self.config)
        assert client.test_connection() is True

        mock_request.side_effect = requests.RequestException('Connection failed')
        assert client.test_connection() is False

    @patch('requests.Session.request')
    def test_get_version(self, mock_request):
        """Test GitLab version retrieval."""
        mock_request.return_value = make_response(200, {'version': '16.0.0'})

        client = GitLabClient(self.config)

        assert client.get_version() == '16.0.0'

    def test_context_manager(self):
        """Test client as context manager."""
        with patch.object(GitLabClient, 'close') as mock_close:
            with GitLabClient(self.config) as client:
                assert isinstance(client, GitLabClient)
            mock_close.assert_called_once()


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds


class TestRateLimiter:
    """Test the token bucket."""

    def setup_method(self):
        self.clock = FakeClock()
        self.sleep = Mock(side_effect=self.clock.sleep)

    def test_allows_burst_up_to_rate(self):
        limiter = RateLimiter(5, clock=self.clock, sleep=self.sleep)

        for _ in range(5):
            limiter.acquire()

        self.sleep.assert_not_called()
        assert limiter.wait_time() == pytest.approx(0.2)

    def test_waits_when_exhausted(self):
        limiter = RateLimiter(2, clock=self.clock, sleep=self.sleep)
        limiter.acquire()
        limiter.acquire()

        limiter.acquire()

        self.sleep.assert_called_once_with(pytest.approx(0.5))
        assert limiter.waited == pytest.approx(0.5)

    def test_refills_over_time(self):
        limiter = RateLimiter(2, clock=self.clock, sleep=self.sleep)
        limiter.tokens = 0

        self.clock.now += 10
        limiter.acquire()

        self.sleep.assert_not_called()
        assert limiter.tokens == pytest.approx(1)

    def test_rate_must_be_positive(self):
        with pytest.raises(ValueError):
            RateLimiter(0)

    def test_client_throttles_every_request(self):
        config = GitLabInstanceConfig(token='test-token')
        client = GitLabClient(config)
        client.rate_limiter = Mock()

        with patch('requests.Session.request', return_value=make_response(200, {})):
            client.get('/user')
            client.get('/version')

        assert client.rate_limiter.acquire.call_count == 2
