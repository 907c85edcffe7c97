"""Registry-side data models."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


DEFAULT_REPOSITORY_TAGS = {
    "bu": "corporate",
    "div": "coe",
    "proj": "adc",
}


@dataclass(frozen=True)
class Repository:
    """A registry repository."""
    name: str
    registry_id: str
    arn: str = ""
    uri: str = ""


@dataclass
class RepositoryPolicy:
    """Settings applied to repositories created by the provisioner."""
    immutable_tags: bool = True
    scan_on_push: bool = True
    encryption_type: str = "KMS"  # registry default key
    tags: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_REPOSITORY_TAGS))


@dataclass(frozen=True)
class UploadSession:
    """State of one layer upload, valid for a single layer only."""
    upload_id: str
    repository_name: str
    registry_id: str
    part_size: Optional[int] = None


@dataclass(frozen=True)
class PutImageResult:
    """Identifiers of the committed image."""
    image_tag: str
    repository_name: str
    image_digest: str
    registry_id: str


@dataclass
class ProvisionResult:
    """Outcome of repository provisioning."""
    repository: Repository
    created: bool


@dataclass
class LayerUploadResult:
    """Outcome of one layer upload."""
    digest: str
    parts: int
    bytes_uploaded: int
    already_existed: bool = False


@dataclass
class TransferResult:
    """Outcome of a full transfer."""
    image: PutImageResult
    repository: Repository
    repository_created: bool
    layers: List[LayerUploadResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        """Convert to dictionary for JSON output."""
        return {
            "ImageTag": self.image.image_tag,
            "ImageDigest": self.image.image_digest,
            "RepositoryName": self.image.repository_name,
            "RegistryId": self.image.registry_id,
            "RepositoryUri": self.repository.uri,
            "RepositoryCreated": self.repository_created,
            "Layers": [
                {
                    "Digest": layer.digest,
                    "Parts": layer.parts,
                    "BytesUploaded": layer.bytes_uploaded,
                    "AlreadyExisted": layer.already_existed
                }
                for layer in self.layers
            ]
        }
