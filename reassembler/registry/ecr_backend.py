"""ECR backend for pushing layers and manifests."""

import logging
from typing import Any, Dict, List, Protocol
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import LayerAlreadyExists, RegistryError, RepositoryNotFound
from ..models.registry import PutImageResult, Repository, RepositoryPolicy, UploadSession


logger = logging.getLogger(__name__)


class RegistryClient(Protocol):
    """Registry operations used by the transfer pipeline."""

    def describe_repositories(self, name: str, registry_id: str) -> List[Repository]: ...

    def create_repository(self, name: str, registry_id: str, policy: RepositoryPolicy) -> Repository: ...

    def initiate_layer_upload(self, repository_name: str, registry_id: str) -> UploadSession: ...

    def upload_layer_part(self, session: UploadSession, first_byte: int, last_byte: int,
                          data: bytes) -> int: ...

    def complete_layer_upload(self, session: UploadSession, digest: str) -> str: ...

    def put_image(self, repository_name: str, registry_id: str, tag: str, manifest: bytes,
                  media_type: str) -> PutImageResult: ...


def _error_code(error: ClientError) -> str:
    return error.response.get('Error', {}).get('Code', '')


def _repository(data: Dict[str, Any]) -> Repository:
    return Repository(
        name=data['repositoryName'],
        registry_id=data.get('registryId', ''),
        arn=data.get('repositoryArn', ''),
        uri=data.get('repositoryUri', '')
    )


class ECRBackend:
    """Amazon ECR implementation of :class:`RegistryClient`.

    ``ClientError`` codes the pipeline reacts to are translated into
    :class:`RepositoryNotFound` and :class:`LayerAlreadyExists`; every other
    failure becomes a :class:`RegistryError` carrying the operation name and
    the service error code.
    """

    def __init__(self, client):
        self.client = client

    @classmethod
    def from_session(cls, session) -> 'ECRBackend':
        """Build the backend from a boto3 session."""
        return cls(session.client('ecr'))

    def _call(self, operation: str, **params) -> Dict[str, Any]:
        try:
            return getattr(self.client, operation)(**params)
        except ClientError as e:
            code = _error_code(e)
            message = f"{operation} failed ({code}): {e}"
            if code == 'RepositoryNotFoundException':
                raise RepositoryNotFound(message, operation, code) from e
            if code == 'LayerAlreadyExistsException':
                raise LayerAlreadyExists(message) from e
            raise RegistryError(message, operation, code) from e
        except BotoCoreError as e:
            raise RegistryError(f"{operation} failed: {e}", operation) from e

    def describe_repositories(self, name: str, registry_id: str) -> List[Repository]:
        response = self._call(
            'describe_repositories',
            registryId=registry_id,
            repositoryNames=[name]
        )
        return [_repository(repo) for repo in response.get('repositories', [])]

    def create_repository(self, name: str, registry_id: str, policy: RepositoryPolicy) -> Repository:
        response = self._call(
            'create_repository',
            registryId=registry_id,
            repositoryName=name,
            tags=[{'Key': key, 'Value': value} for key, value in policy.tags.items()],
            imageTagMutability='IMMUTABLE' if policy.immutable_tags else 'MUTABLE',
            imageScanningConfiguration={'scanOnPush': policy.scan_on_push},
            encryptionConfiguration={'encryptionType': policy.encryption_type}
        )
        return _repository(response['repository'])

    def initiate_layer_upload(self, repository_name: str, registry_id: str) -> UploadSession:
        response = self._call(
            'initiate_layer_upload',
            registryId=registry_id,
            repositoryName=repository_name
        )
        return UploadSession(
            upload_id=response['uploadId'],
            repository_name=repository_name,
            registry_id=registry_id,
            part_size=response.get('partSize')
        )

    def upload_layer_part(self, session: UploadSession, first_byte: int, last_byte: int,
                          data: bytes) -> int:
        response = self._call(
            'upload_layer_part',
            registryId=session.registry_id,
            repositoryName=session.repository_name,
            uploadId=session.upload_id,
            partFirstByte=first_byte,
            partLastByte=last_byte,
            layerPartBlob=data
        )
        return response.get('lastByteReceived', last_byte)

    def complete_layer_upload(self, session: UploadSession, digest: str) -> str:
        try:
            response = self._call(
                'complete_layer_upload',
                registryId=session.registry_id,
                repositoryName=session.repository_name,
                uploadId=session.upload_id,
                layerDigests=[digest]
            )
        except LayerAlreadyExists as e:
            e.digest = digest
            raise
        return response.get('layerDigest', digest)

    def put_image(self, repository_name: str, registry_id: str, tag: str, manifest: bytes,
                  media_type: str) -> PutImageResult:
        response = self._call(
            'put_image',
            registryId=registry_id,
            repositoryName=repository_name,
            imageManifest=manifest.decode('utf-8'),
            imageManifestMediaType=media_type,
            imageTag=tag
        )
        image = response['image']
        image_id = image.get('imageId', {})
        return PutImageResult(
            image_tag=image_id.get('imageTag', tag),
            repository_name=image.get('repositoryName', repository_name),
            image_digest=image_id.get('imageDigest', ''),
            registry_id=image.get('registryId', registry_id)
        )
