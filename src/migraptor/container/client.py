"""Container engine client used to pull, retag and push registry images."""

from typing import Any, Dict, Optional

import docker
from docker.errors import APIError, DockerException, ImageNotFound
from docker.utils import parse_repository_tag
from loguru import logger


class ContainerEngineError(Exception):
    """A container engine operation failed."""

    def __init__(self, message: str, reference: Optional[str] = None):
        super().__init__(message)
        self.reference = reference


class ContainerClient:
    """Thin wrapper around the docker SDK.

    Holds the registry credentials obtained by :meth:`login` and passes
    them to every pull and push.
    """

    def __init__(self, client: Optional[docker.DockerClient] = None):
        """Initialize container client.

        Args:
            client: Existing docker client, defaults to ``docker.from_env()``
        """
        if client is None:
            try:
                client = docker.from_env()
            except DockerException as e:
                raise ContainerEngineError(f'Failed to create Docker client: {e}')

        self.client = client
        self.auth_config: Optional[Dict[str, str]] = None
        self.logger = logger.bind(component='ContainerClient')

    def check_running(self) -> None:
        """Raise if the docker daemon does not answer."""
        try:
            self.client.ping()
        except (APIError, DockerException) as e:
            raise ContainerEngineError(f'Docker daemon is not running: {e}')

    def login(self, registry: str, username: str, password: str) -> None:
        """Log in to ``registry`` and keep the credentials for later calls."""
        try:
            self.client.login(username=username, password=password, registry=registry)
        except (APIError, DockerException) as e:
            raise ContainerEngineError(f'Failed to login to registry {registry}: {e}')

        self.auth_config = {'username': username, 'password': password}
        self.logger.info(f'Logged in to registry {registry} as {username}')

    def pull(self, reference: str) -> None:
        repository, tag = parse_repository_tag(reference)
        try:
            self.client.images.pull(
                repository, tag=tag or 'latest', auth_config=self.auth_config
            )
        except (APIError, DockerException) as e:
            raise ContainerEngineError(
                f'Failed to pull image {reference}: {e}', reference=reference
            )

    def tag(self, source: str, target: str) -> None:
        repository, tag = parse_repository_tag(target)
        try:
            image = self.client.images.get(source)
            tagged = image.tag(repository, tag=tag or 'latest')
        except (APIError, DockerException) as e:
            raise ContainerEngineError(
                f'Failed to tag image {source} as {target}: {e}', reference=source
            )

        if not tagged:
            raise ContainerEngineError(
                f'Failed to tag image {source} as {target}', reference=source
            )

    def push(self, reference: str) -> None:
        """Push ``reference`` and fail on any error reported in the stream."""
        repository, tag = parse_repository_tag(reference)
        try:
            stream = self.client.images.push(
                repository,
                tag=tag or 'latest',
                auth_config=self.auth_config,
                stream=True,
                decode=True,
            )
            for line in stream:
                self._check_push_line(reference, line)
        except (APIError, DockerException) as e:
            raise ContainerEngineError(
                f'Failed to push image {reference}: {e}', reference=reference
            )

    @staticmethod
    def _check_push_line(reference: str, line: Dict[str, Any]) -> None:
        error = line.get('error') or (line.get('errorDetail') or {}).get('message')
        if error:
            raise ContainerEngineError(
                f'Failed to push image {reference}: {error}', reference=reference
            )

    def image_exists(self, reference: str) -> bool:
        try:
            self.client.images.get(reference)
            return True
        except ImageNotFound:
            return False
        except (APIError, DockerException) as e:
            raise ContainerEngineError(
                f'Failed to inspect image {reference}: {e}', reference=reference
            )

    def remove_image(self, reference: str) -> None:
        try:
            self.client.images.remove(reference)
        except (APIError, DockerException) as e:
            raise ContainerEngineError(
                f'Failed to remove image {reference}: {e}', reference=reference
            )

    def close(self) -> None:
        self.client.close()
