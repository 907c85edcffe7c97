"""Configuration management for reassembler."""

import os
import yaml
import boto3
from typing import Dict, Any, Optional

from ..models.registry import DEFAULT_REPOSITORY_TAGS, RepositoryPolicy


DEFAULT_REGION = "eu-west-2"
DEFAULT_LOCAL_PATH = "/tmp/docker-reassembler"
DEFAULT_ROLE_SESSION_DURATION = 3600


class Config:
    """Configuration manager for reassembler.

    Values come from the environment first, then from the optional YAML
    file named by ``REASSEMBLER_CONFIG``, then from defaults.
    """

    def __init__(self, config_path: Optional[str] = None, region: Optional[str] = None):
        self.config_path = config_path or os.environ.get('REASSEMBLER_CONFIG')
        self._file_config = None
        self._session = None

        self.region = (
            region
            or os.environ.get('AWS_REGION')
            or os.environ.get('AWS_DEFAULT_REGION')
            or self.file_config.get('region')
            or DEFAULT_REGION
        )
        self.local_path = (
            os.environ.get('REASSEMBLER_LOCAL_PATH')
            or self.file_config.get('local_path')
            or DEFAULT_LOCAL_PATH
        )
        self.put_role_to_assume = (
            os.environ.get('REASSEMBLER_PUT_ROLE')
            or self.file_config.get('put_role_to_assume')
        )
        self.put_role_external_id = (
            os.environ.get('REASSEMBLER_PUT_ROLE_EXTERNAL_ID')
            or self.file_config.get('put_role_external_id')
        )
        self.role_session_duration = self.file_config.get(
            'role_session_duration', DEFAULT_ROLE_SESSION_DURATION
        )
        self.repository_tags = self.file_config.get('repository_tags', dict(DEFAULT_REPOSITORY_TAGS))

        self._validate()

    def _validate(self):
        """Validate configuration values."""
        if not isinstance(self.role_session_duration, int) or not 900 <= self.role_session_duration <= 43200:
            raise ValueError(
                f"role_session_duration must be an integer between 900 and 43200, "
                f"got {self.role_session_duration!r}"
            )
        if not isinstance(self.repository_tags, dict):
            raise ValueError("repository_tags must be a mapping of tag keys to values")
        bad_tags = [k for k, v in self.repository_tags.items() if not isinstance(v, str)]
        if bad_tags:
            raise ValueError(f"repository_tags values must be strings: {', '.join(map(str, bad_tags))}")

    @property
    def file_config(self) -> Dict[str, Any]:
        """Load and cache the YAML settings file."""
        if self._file_config is None:
            if not self.config_path:
                self._file_config = {}
                return self._file_config

            if not os.path.exists(self.config_path):
                raise FileNotFoundError(f"Config file not found: {self.config_path}")

            with open(self.config_path, 'r') as f:
                try:
                    loaded = yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    raise ValueError(f"Config file {self.config_path} is not valid YAML: {e}") from e
            if not isinstance(loaded, dict):
                raise ValueError(f"Config file {self.config_path} must contain a mapping")
            self._file_config = loaded

        return self._file_config

    @property
    def session(self) -> boto3.Session:
        """Lazy initialization of the base boto3 session."""
        if self._session is None:
            self._session = boto3.Session(region_name=self.region)
        return self._session

    @property
    def repository_policy(self) -> RepositoryPolicy:
        """Policy for repositories created during a transfer."""
        return RepositoryPolicy(tags=dict(self.repository_tags))
