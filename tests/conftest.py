"""Shared test fixtures and in-memory fakes for reassembler."""

import hashlib
import json
import os
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from reassembler.errors import LayerAlreadyExists, RegistryError, RepositoryNotFound
from reassembler.images.manifest import (
    DOCKER_V2_SCHEMA2_CONFIG_MEDIA_TYPE, DOCKER_V2_SCHEMA2_MEDIA_TYPE
)
from reassembler.models.registry import PutImageResult, Repository, UploadSession
from reassembler.models.storage import RemoteObject
from reassembler.utils.logger import null_logger


LAYER_MEDIA_TYPE = "application/vnd.docker.image.rootfs.diff.tar.gzip"
REGISTRY_ID = "123456789012"


def sha256_digest(data: bytes) -> str:
    return "sha256:" + hashlib.sha256(data).hexdigest()


# ---------------------------------------------------------------------------
# Registry fake
# ---------------------------------------------------------------------------


class FakeRegistry:
    """In-memory registry that checks part contiguity and layer digests."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.repositories: Dict[str, Repository] = {}
        self.layers: Dict[str, set] = {}
        self.images: Dict[tuple, bytes] = {}
        self.uploads: Dict[str, bytearray] = {}
        self.failures: Dict[str, Exception] = {}
        self.fail_after: Dict[str, int] = {}
        self.describe_result: Optional[List[Repository]] = None
        self._next_upload = 0

    def _maybe_fail(self, operation: str):
        if operation in self.fail_after:
            if self.fail_after[operation] == 0:
                raise self.failures[operation]
            self.fail_after[operation] -= 1
        elif operation in self.failures:
            raise self.failures[operation]

    def add_repository(self, name: str, registry_id: str = REGISTRY_ID) -> Repository:
        repo = Repository(
            name=name,
            registry_id=registry_id,
            arn=f"arn:aws:ecr:eu-west-2:{registry_id}:repository/{name}",
            uri=f"{registry_id}.dkr.ecr.eu-west-2.amazonaws.com/{name}"
        )
        self.repositories[name] = repo
        self.layers.setdefault(name, set())
        return repo

    def describe_repositories(self, name, registry_id):
        self.calls.append(("describe_repositories", name, registry_id))
        self._maybe_fail("describe_repositories")
        if self.describe_result is not None:
            return self.describe_result
        if name not in self.repositories:
            raise RepositoryNotFound(f"repository {name} not found",
                                     "describe_repositories", "RepositoryNotFoundException")
        return [self.repositories[name]]

    def create_repository(self, name, registry_id, policy):
        self.calls.append(("create_repository", name, registry_id, policy))
        self._maybe_fail("create_repository")
        return self.add_repository(name, registry_id)

    def initiate_layer_upload(self, repository_name, registry_id):
        self.calls.append(("initiate_layer_upload", repository_name, registry_id))
        self._maybe_fail("initiate_layer_upload")
        self._next_upload += 1
        upload_id = f"upload-{self._next_upload}"
        self.uploads[upload_id] = bytearray()
        return UploadSession(upload_id, repository_name, registry_id, part_size=10485760)

    def upload_layer_part(self, session, first_byte, last_byte, data):
        self.calls.append(("upload_layer_part", session.upload_id, first_byte, last_byte, len(data)))
        self._maybe_fail("upload_layer_part")
        received = self.uploads[session.upload_id]
        if first_byte != len(received) or last_byte - first_byte + 1 != len(data):
            raise RegistryError("invalid layer part", "upload_layer_part", "InvalidLayerPartException")
        received.extend(data)
        return last_byte

    def complete_layer_upload(self, session, digest):
        self.calls.append(("complete_layer_upload", session.upload_id, digest))
        self._maybe_fail("complete_layer_upload")
        existing = self.layers.setdefault(session.repository_name, set())
        if digest in existing:
            raise LayerAlreadyExists(f"layer {digest} already exists", digest)
        if sha256_digest(bytes(self.uploads[session.upload_id])) != digest:
            raise RegistryError("digest mismatch", "complete_layer_upload", "InvalidLayerException")
        existing.add(digest)
        return digest

    def put_image(self, repository_name, registry_id, tag, manifest, media_type):
        self.calls.append(("put_image", repository_name, registry_id, tag, media_type))
        self._maybe_fail("put_image")
        self.images[(repository_name, tag)] = manifest
        return PutImageResult(
            image_tag=tag,
            repository_name=repository_name,
            image_digest=sha256_digest(manifest),
            registry_id=registry_id
        )

    def operations(self) -> List[str]:
        return [call[0] for call in self.calls]


# ---------------------------------------------------------------------------
# Object storage fakes
# ---------------------------------------------------------------------------


class FakePager:
    def __init__(self, bucket: str, pages: List[List[str]], fail_on_page: Optional[int] = None):
        self.bucket = bucket
        self.pages = list(pages)
        self.fail_on_page = fail_on_page
        self.served = 0

    def has_more_pages(self) -> bool:
        return self.served < len(self.pages)

    def next_page(self) -> List[RemoteObject]:
        if self.fail_on_page == self.served:
            raise OSError("connection reset while listing")
        keys = self.pages[self.served]
        self.served += 1
        return [RemoteObject(bucket=self.bucket, key=key) for key in keys]


class FakeDownloader:
    def __init__(self, objects: Dict[str, bytes], failing_keys=()):
        self.objects = objects
        self.failing_keys = set(failing_keys)
        self.calls: List[str] = []

    def download(self, bucket, key, fileobj):
        self.calls.append(key)
        if key in self.failing_keys:
            raise OSError(f"network error fetching {key}")
        data = self.objects[key]
        fileobj.write(data)
        return len(data)


class RecordingFileSystem:
    """Local filesystem that records calls and can refuse directory creation."""

    def __init__(self, fail_makedirs: bool = False):
        self.fail_makedirs = fail_makedirs
        self.created: List[str] = []

    def makedirs(self, path):
        if self.fail_makedirs:
            raise PermissionError(f"permission denied: {path}")
        os.makedirs(path, exist_ok=True)

    def create(self, path):
        self.created.append(path)
        return open(path, "wb")


# ---------------------------------------------------------------------------
# Exported image on disk
# ---------------------------------------------------------------------------


def write_exported_image(directory: Path, layer_contents: List[bytes],
                         config_content: bytes = b'{"architecture": "amd64", "os": "linux"}') -> dict:
    """Write ``manifest.json`` and ``sha256__<hex>`` blobs, returning the manifest."""
    directory.mkdir(parents=True, exist_ok=True)

    def write_blob(data: bytes) -> str:
        digest = sha256_digest(data)
        (directory / digest.replace(":", "__", 1)).write_bytes(data)
        return digest

    manifest = {
        "schemaVersion": 2,
        "mediaType": DOCKER_V2_SCHEMA2_MEDIA_TYPE,
        "config": {
            "mediaType": DOCKER_V2_SCHEMA2_CONFIG_MEDIA_TYPE,
            "size": len(config_content),
            "digest": write_blob(config_content)
        },
        "layers": [
            {"mediaType": LAYER_MEDIA_TYPE, "size": len(data), "digest": write_blob(data)}
            for data in layer_contents
        ]
    }
    (directory / "manifest.json").write_text(json.dumps(manifest, indent=3))
    return manifest


@pytest.fixture()
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture()
def quiet_logger():
    return null_logger("reassembler.tests")


@pytest.fixture()
def exported_image(tmp_path: Path):
    """An exported image with a config blob and two layers."""
    layers_dir = tmp_path / "exports" / "images" / "app"
    manifest = write_exported_image(layers_dir, [b"layer-one" * 1000, b"layer-two" * 300])
    return layers_dir, manifest
