"""Tests for configuration management."""

import os
import tempfile
from unittest.mock import patch

import pytest
import yaml
from pydantic import ValidationError

from migraptor.config.config import (
    Config,
    GitLabInstanceConfig,
    MigrationConfig,
    RegistryConfig,
)


class TestGitLabInstanceConfig:
    """Test GitLab instance configuration."""

    def test_valid_config(self):
        """Test valid configuration creation."""
        config = GitLabInstanceConfig(
            url='https://gitlab.example.com',
            token='test-token',
            api_version='v4',
            timeout=30,
            rate_limit_per_second=10,
        )

        assert config.url == 'https://gitlab.example.com'
        assert config.token == 'test-token'
        assert config.api_version == 'v4'
        assert config.timeout == 30
        assert config.rate_limit_per_second == 10
        assert config.hostname == 'gitlab.example.com'

    def test_defaults_to_gitlab_com(self):
        config = GitLabInstanceConfig(token='test')
        assert config.url == 'https://gitlab.com'

    def test_url_normalization(self):
        """Bare hosts get a scheme, trailing slashes are dropped."""
        cases = {
            'gitlab.example.com': 'https://gitlab.example.com',
            'https://gitlab.example.com/': 'https://gitlab.example.com',
            'http://localhost:8080': 'http://localhost:8080',
        }

        for url, expected in cases.items():
            assert GitLabInstanceConfig(url=url, token='test').url == expected

    def test_missing_token(self):
        """Test that missing token raises validation error."""
        with pytest.raises(ValueError):
            GitLabInstanceConfig(url='https://gitlab.com')

        with pytest.raises(ValueError):
            GitLabInstanceConfig(url='https://gitlab.com', token='  ')

    def test_rate_limit_must_be_positive(self):
        with pytest.raises(ValueError):
            GitLabInstanceConfig(token='test', rate_limit_per_second=0)


class TestRegistryConfig:
    """Test registry settings."""

    def test_scheme_is_stripped(self):
        assert RegistryConfig(host='https://registry.example.com/').host == (
            'registry.example.com'
        )

    def test_host_is_optional(self):
        assert RegistryConfig().host is None


class TestMigrationConfig:
    """Test migration settings."""

    def test_group_paths_are_required(self):
        with pytest.raises(ValidationError):
            MigrationConfig(source_group='eng')

        with pytest.raises(ValidationError):
            MigrationConfig(source_group='/', destination_group='ops')

    def test_group_slashes_are_stripped(self):
        config = MigrationConfig(source_group='/eng/team/', destination_group='ops/')

        assert config.source_group == 'eng/team'
        assert config.destination_group == 'ops'

    def test_lists_accept_comma_strings(self):
        config = MigrationConfig(
            source_group='eng',
            destination_group='ops',
            projects='api, web,,',
            tags=['latest', ' v1 '],
        )

        assert config.projects == ['api', 'web']
        assert config.tags == ['latest', 'v1']

    def test_defaults(self):
        config = MigrationConfig(source_group='eng', destination_group='ops')

        assert config.projects == []
        assert config.tags == []
        assert config.preserve_hierarchy is True
        assert config.dry_run is False
        assert config.max_poll_attempts == 30

    def test_negative_delay_is_rejected(self):
        with pytest.raises(ValidationError):
            MigrationConfig(source_group='eng', destination_group='ops', poll_delay=-1)


class TestConfig:
    """Test main configuration class."""

    def setup_method(self):
        self.data = {
            'gitlab': {'url': 'https://gitlab.example.com', 'token': 'file-token'},
            'migration': {'source_group': 'eng', 'destination_group': 'ops'},
        }

    def test_config_from_dict(self):
        """Test configuration creation from dictionary."""
        config = Config(**self.data)

        assert config.gitlab.url == 'https://gitlab.example.com'
        assert config.migration.source_group == 'eng'
        assert config.logging.level == 'INFO'

    def test_registry_defaults(self):
        config = Config(**self.data)

        assert config.registry_host == 'registry.gitlab.example.com'
        assert config.registry_password == 'file-token'

    def test_registry_overrides(self):
        config = Config(
            **self.data,
            registry={'host': 'images.example.com', 'password': 'secret'},
        )

        assert config.registry_host == 'images.example.com'
        assert config.registry_password == 'secret'

    def test_unknown_section_is_rejected(self):
        with pytest.raises(ValidationError):
            Config(**self.data, source={'url': 'https://gitlab.com'})

    def test_config_from_file(self, tmp_path):
        """Test configuration loading from YAML file."""
        path = tmp_path / 'config.yaml'
        path.write_text(yaml.dump(self.data))

        config = Config.from_file(str(path))

        assert config.gitlab.token == 'file-token'
        assert config.migration.destination_group == 'ops'

    def test_config_from_env(self, monkeypatch):
        """Legacy variable names are understood."""
        monkeypatch.setenv('GITLAB_TOKEN', 'env-token')
        monkeypatch.setenv('GITLAB_INSTANCE', 'gitlab.example.com')
        monkeypatch.setenv('OLD_GROUP_NAME', 'eng')
        monkeypatch.setenv('NEW_GROUP_NAME', 'ops')
        monkeypatch.setenv('PROJECTS_LIST', 'api,web')
        monkeypatch.setenv('KEEP_PARENT', 'false')
        monkeypatch.setenv('DRY_RUN', 'true')

        config = Config.from_env()

        assert config.gitlab.url == 'https://gitlab.example.com'
        assert config.gitlab.token == 'env-token'
        assert config.migration.projects == ['api', 'web']
        assert config.migration.preserve_hierarchy is False
        assert config.migration.dry_run is True

    def test_prefixed_env_wins_over_legacy(self, monkeypatch):
        monkeypatch.setenv('GITLAB_TOKEN', 'legacy')
        monkeypatch.setenv('MIGRAPTOR_TOKEN', 'prefixed')

        assert Config._read_env()['gitlab']['token'] == 'prefixed'

    def test_layering(self, tmp_path, monkeypatch):
        """File, then environment, then overrides."""
        path = tmp_path / 'config.yaml'
        path.write_text(yaml.dump(self.data))
        monkeypatch.setenv('GITLAB_TOKEN', 'env-token')
        monkeypatch.setenv('OLD_GROUP_NAME', 'env-group')

        config = Config.load(
            str(path),
            overrides={
                'migration': {'source_group': 'flag-group', 'projects': None},
                'registry': {'host': None},
            },
        )

        assert config.gitlab.url == 'https://gitlab.example.com'
        assert config.gitlab.token == 'env-token'
        assert config.migration.source_group == 'flag-group'
        assert config.migration.destination_group == 'ops'

    def test_load_without_anything_fails(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with patch('migraptor.config.config.DEFAULT_CONFIG_PATHS', []):
            with pytest.raises(ValidationError):
                Config.load()

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError):
            Config.from_file('/nonexistent/config.yaml')

    def test_invalid_config_file(self):
        """Test handling of invalid configuration file."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write('invalid: yaml: content:')
            f.flush()

            try:
                with pytest.raises(yaml.YAMLError):
                    Config.from_file(f.name)
            finally:
                os.unlink(f.name)

    def test_template_is_loadable(self, tmp_path):
        path = tmp_path / 'nested' / 'gitlab-migraptor.yaml'

        Config.create_template(str(path))
        config = Config.from_file(str(path))

        assert config.migration.source_group == 'old-group/path'
        assert config.registry.password is None

    def test_round_trip_through_file(self, tmp_path):
        path = tmp_path / 'saved.yaml'
        config = Config(**self.data)

        config.to_file(str(path))

        assert Config.from_file(str(path)) == config
