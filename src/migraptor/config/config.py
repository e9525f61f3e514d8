"""Configuration management for GitLab Migraptor."""

from typing import Optional, Dict, Any, List
from pathlib import Path
from urllib.parse import urlparse
import os

from pydantic import BaseModel, Field, validator
import yaml
from dotenv import load_dotenv


DEFAULT_CONFIG_PATHS = [
    'gitlab-migraptor.yaml',
    'gitlab-migraptor.yml',
    str(Path.home() / '.gitlab-migraptor.yaml'),
]

# Legacy variable names, kept for compatibility with the shell version
LEGACY_ENV_VARS = {
    ('gitlab', 'token'): 'GITLAB_TOKEN',
    ('gitlab', 'url'): 'GITLAB_INSTANCE',
    ('registry', 'host'): 'GITLAB_REGISTRY',
    ('registry', 'password'): 'DOCKER_TOKEN',
    ('migration', 'source_group'): 'OLD_GROUP_NAME',
    ('migration', 'destination_group'): 'NEW_GROUP_NAME',
    ('migration', 'projects'): 'PROJECTS_LIST',
    ('migration', 'tags'): 'TAGS_LIST',
    ('migration', 'preserve_hierarchy'): 'KEEP_PARENT',
    ('migration', 'dry_run'): 'DRY_RUN',
}

PREFIXED_ENV_VARS = {
    ('gitlab', 'token'): 'MIGRAPTOR_TOKEN',
    ('gitlab', 'url'): 'MIGRAPTOR_INSTANCE',
    ('registry', 'host'): 'MIGRAPTOR_REGISTRY',
    ('registry', 'password'): 'MIGRAPTOR_DOCKER_PASSWORD',
    ('migration', 'source_group'): 'MIGRAPTOR_OLD_GROUP',
    ('migration', 'destination_group'): 'MIGRAPTOR_NEW_GROUP',
    ('migration', 'projects'): 'MIGRAPTOR_PROJECTS',
    ('migration', 'tags'): 'MIGRAPTOR_TAGS',
    ('migration', 'preserve_hierarchy'): 'MIGRAPTOR_KEEP_PARENT',
    ('migration', 'dry_run'): 'MIGRAPTOR_DRY_RUN',
    ('logging', 'level'): 'LOG_LEVEL',
    ('logging', 'file'): 'LOG_FILE',
}


def _split_list(v):
    if v is None:
        return []
    if isinstance(v, str):
        return [item.strip() for item in v.split(',') if item.strip()]
    return [str(item).strip() for item in v if str(item).strip()]


class GitLabInstanceConfig(BaseModel):
    """Configuration for the GitLab instance hosting both groups."""

    url: str = Field(default='https://gitlab.com', description='GitLab instance URL')
    token: str = Field(..., description='Personal access token')
    api_version: str = Field(default='v4', description='GitLab API version')
    timeout: int = Field(default=30, description='Request timeout in seconds')
    rate_limit_per_second: float = Field(
        default=10.0, description='API requests per second limit'
    )

    @validator('url', pre=True)
    def validate_url(cls, v):
        """Accept bare hostnames such as ``gitlab.com``."""
        if not v:
            raise ValueError('GitLab URL must not be empty')
        if not v.startswith(('http://', 'https://')):
            v = f'https://{v}'
        return v.rstrip('/')

    @validator('token')
    def validate_token(cls, v):
        """Validate that a token is provided."""
        if not v or not v.strip():
            raise ValueError('GitLab token is required')
        return v.strip()

    @validator('rate_limit_per_second')
    def validate_rate_limit(cls, v):
        """Validate rate limit is positive."""
        if v <= 0:
            raise ValueError('Rate limit must be positive')
        return v

    @property
    def hostname(self) -> str:
        """Instance host name, without scheme."""
        return urlparse(self.url).netloc


class RegistryConfig(BaseModel):
    """Container registry settings."""

    host: Optional[str] = Field(
        default=None, description='Registry host (default: registry.<gitlab host>)'
    )
    password: Optional[str] = Field(
        default=None, description='Registry password (default: GitLab token)'
    )

    @validator('host')
    def validate_host(cls, v):
        """Strip scheme and trailing slash from registry host."""
        if v is None:
            return v
        for scheme in ('https://', 'http://'):
            if v.startswith(scheme):
                v = v[len(scheme) :]
        return v.rstrip('/') or None


class MigrationConfig(BaseModel):
    """Migration-specific configuration."""

    source_group: str = Field(..., description='Full path of the group to move')
    destination_group: str = Field(
        ..., description='Full path of the group receiving the projects'
    )
    projects: List[str] = Field(
        default_factory=list, description='Project paths to migrate (empty = all)'
    )
    tags: List[str] = Field(
        default_factory=list, description='Image tags to keep (empty = all)'
    )

    preserve_hierarchy: bool = Field(
        default=True, description='Move the source group as a whole'
    )
    dry_run: bool = Field(default=False, description='Perform dry run without changes')

    # Pauses around asynchronous platform operations
    transfer_delay: float = Field(
        default=10.0, description='Seconds to wait after each transfer'
    )
    deletion_delay: float = Field(
        default=10.0, description='Seconds to wait after each registry deletion'
    )
    poll_delay: float = Field(
        default=20.0, description='Seconds between registry eviction checks'
    )
    max_poll_attempts: int = Field(
        default=30, description='Registry eviction checks before giving up'
    )

    @validator('source_group', 'destination_group')
    def validate_group_path(cls, v):
        """Group paths are mandatory and have no surrounding slashes."""
        v = (v or '').strip().strip('/')
        if not v:
            raise ValueError('Group path is required')
        return v

    @validator('projects', 'tags', pre=True)
    def validate_lists(cls, v):
        """Accept comma-separated strings as well as lists."""
        return _split_list(v)

    @validator('transfer_delay', 'deletion_delay', 'poll_delay')
    def validate_delays(cls, v):
        """Validate pauses are not negative."""
        if v < 0:
            raise ValueError('Delays must not be negative')
        return v

    @validator('max_poll_attempts')
    def validate_max_poll_attempts(cls, v):
        """Validate the number of eviction checks is positive."""
        if v <= 0:
            raise ValueError('max_poll_attempts must be positive')
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default='INFO', description='Log level')
    file: Optional[str] = Field(default=None, description='Log file path')
    format: Optional[str] = Field(default=None, description='Console log format')

    @validator('level')
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Log level must be one of: {valid_levels}')
        return v.upper()


class Config(BaseModel):
    """Main configuration class for GitLab Migraptor."""

    gitlab: GitLabInstanceConfig = Field(..., description='GitLab instance')
    registry: RegistryConfig = Field(
        default_factory=RegistryConfig, description='Container registry settings'
    )
    migration: MigrationConfig = Field(..., description='Migration settings')
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description='Logging settings'
    )

    class Config:
        """Pydantic configuration."""

        extra = 'forbid'  # Don't allow extra fields

    @property
    def registry_host(self) -> str:
        """Registry host, defaulting to ``registry.<gitlab host>``."""
        return self.registry.host or f'registry.{self.gitlab.hostname}'

    @property
    def registry_password(self) -> str:
        """Registry password, defaulting to the GitLab token."""
        return self.registry.password or self.gitlab.token

    @classmethod
    def from_file(cls, config_path: str) -> 'Config':
        """Load configuration from YAML file."""
        return cls(**cls._read_file(config_path))

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        return cls(**cls._read_env())

    @classmethod
    def load(
        cls,
        config_path: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> 'Config':
        """Resolve configuration from file, environment and overrides.

        Later layers win: file, then environment, then ``overrides``
        (typically command-line flags).

        Args:
            config_path: Explicit configuration file, else default locations
            overrides: Nested dictionary of values to apply last

        Returns:
            Validated configuration
        """
        data: Dict[str, Any] = {}

        path = config_path or cls.find_config_file()
        if path:
            data = cls._read_file(path)

        data = cls._deep_merge(data, cls._read_env())
        data = cls._deep_merge(data, cls._remove_none_values(overrides or {}))

        return cls(**data)

    @staticmethod
    def find_config_file() -> Optional[str]:
        """Return the first existing default configuration file."""
        for path in DEFAULT_CONFIG_PATHS:
            if Path(path).exists():
                return path
        return None

    @staticmethod
    def _read_file(config_path: str) -> Dict[str, Any]:
        config_file = Path(config_path)

        if not config_file.exists():
            raise FileNotFoundError(f'Configuration file not found: {config_path}')

        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        if not isinstance(config_data, dict):
            raise ValueError(
                f'Configuration file must contain a mapping: {config_path}'
            )

        return config_data

    @classmethod
    def _read_env(cls) -> Dict[str, Any]:
        # Load .env file if it exists
        load_dotenv()

        config_data: Dict[str, Any] = {}
        # Prefixed names are read last so they win over legacy ones
        for mapping in (LEGACY_ENV_VARS, PREFIXED_ENV_VARS):
            for (section, key), env_name in mapping.items():
                value = os.getenv(env_name)
                if value is None or value == '':
                    continue
                if key in ('preserve_hierarchy', 'dry_run'):
                    value = value.strip().lower() in ('1', 'true', 'yes', 'y')
                config_data.setdefault(section, {})[key] = value

        return config_data

    @staticmethod
    def _remove_none_values(data: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively remove None values from dictionary."""
        if isinstance(data, dict):
            return {
                k: Config._remove_none_values(v)
                for k, v in data.items()
                if v is not None
            }
        return data

    @staticmethod
    def _deep_merge(base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
        """Merge ``update`` into a copy of ``base``, recursing into sections."""
        merged = dict(base)
        for key, value in update.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key] = Config._deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged

    def to_file(self, config_path: str) -> None:
        """Save configuration to YAML file."""
        config_file = Path(config_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.dump(
                self.dict(), f, default_flow_style=False, indent=2, sort_keys=False
            )

    @staticmethod
    def create_template(output_path: str) -> None:
        """Create a configuration template file."""
        template_config = {
            'gitlab': {
                'url': 'https://gitlab.com',
                'token': 'your-personal-access-token',
                'api_version': 'v4',
                'timeout': 30,
                'rate_limit_per_second': 10.0,
            },
            'registry': {
                'host': 'registry.gitlab.com',
                'password': None,
            },
            'migration': {
                'source_group': 'old-group/path',
                'destination_group': 'new-group/path',
                'projects': [],
                'tags': [],
                'preserve_hierarchy': True,
                'dry_run': False,
                'transfer_delay': 10,
                'deletion_delay': 10,
                'poll_delay': 20,
                'max_poll_attempts': 30,
            },
            'logging': {
                'level': 'INFO',
                'file': 'migraptor.log',
            },
        }

        config_file = Path(output_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.dump(
                template_config, f, default_flow_style=False, indent=2, sort_keys=False
            )
