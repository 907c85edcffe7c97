"""Target repository provisioning."""

import logging
from typing import Optional

from ..errors import (
    RegistryError, RepositoryCreateError, RepositoryLookupError, RepositoryNotFound
)
from ..models.registry import ProvisionResult, RepositoryPolicy
from ..registry.ecr_backend import RegistryClient


logger = logging.getLogger(__name__)


class RepositoryProvisioner:
    """Finds the target repository, creating it when it does not exist.

    Two processes provisioning the same new name at once is not handled: the
    loser's create call fails and surfaces as :class:`RepositoryCreateError`.
    """

    def __init__(self, registry: RegistryClient, policy: Optional[RepositoryPolicy] = None,
                 logger: Optional[logging.Logger] = None):
        self.registry = registry
        self.policy = policy or RepositoryPolicy()
        self.logger = logger or logging.getLogger(__name__)

    def ensure_repository(self, name: str, registry_id: str) -> ProvisionResult:
        """Return the repository named ``name``, creating it if needed."""
        try:
            repositories = self.registry.describe_repositories(name, registry_id)
        except RepositoryNotFound:
            return self._create(name, registry_id)
        except RegistryError as e:
            raise RepositoryLookupError(f"error describing repository {name}: {e}") from e

        if len(repositories) != 1:
            raise RepositoryLookupError(
                f"invalid number of repositories found ({len(repositories)}), expected 1"
            )

        repository = repositories[0]
        self.logger.info(f"Existing repository found: {repository.name}")
        self.logger.debug(f"repository arn: {repository.arn}")
        self.logger.debug(f"repository uri: {repository.uri}")
        return ProvisionResult(repository=repository, created=False)

    def _create(self, name: str, registry_id: str) -> ProvisionResult:
        try:
            repository = self.registry.create_repository(name, registry_id, self.policy)
        except RegistryError as e:
            raise RepositoryCreateError(f"error creating repository {name}: {e}") from e

        self.logger.info(f"New repository created: {repository.name}")
        self.logger.debug(f"repository arn: {repository.arn}")
        self.logger.debug(f"repository uri: {repository.uri}")
        return ProvisionResult(repository=repository, created=True)
