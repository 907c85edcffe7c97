"""Transfer of a locally exported image to a registry."""

import logging
import os
import threading
from typing import Optional

from ..config.limits import IMAGE_MANIFEST_MAX_SIZE, LAYER_PART_MAX_SIZE, MANIFEST_FILENAME, MAX_LAYERS
from ..errors import ManifestPutError, ManifestTooLarge, OperationCancelled, RegistryError, TooManyLayers
from ..images.manifest import read_manifest
from ..models.image import Manifest
from ..models.registry import PutImageResult, Repository, TransferResult
from ..registry.ecr_backend import RegistryClient
from .provision import RepositoryProvisioner
from .upload import LayerUploader


logger = logging.getLogger(__name__)


def check_layer_count(manifest: Manifest):
    """Reject images with more layers than the registry accepts."""
    if manifest.total_layers > MAX_LAYERS:
        raise TooManyLayers(
            f"too many layers ({MAX_LAYERS} max): {manifest.total_layers}",
            manifest.total_layers, MAX_LAYERS
        )


def check_manifest_size(manifest: Manifest):
    """Reject manifests larger than the registry accepts."""
    if len(manifest.raw) > IMAGE_MANIFEST_MAX_SIZE:
        raise ManifestTooLarge(
            f"image manifest too large, {len(manifest.raw)} is greater than {IMAGE_MANIFEST_MAX_SIZE}",
            len(manifest.raw), IMAGE_MANIFEST_MAX_SIZE
        )


def load_manifest(layers_path: str) -> Manifest:
    """Read an exported image manifest and check it against registry limits."""
    manifest = read_manifest(os.path.join(layers_path, MANIFEST_FILENAME))
    check_layer_count(manifest)
    check_manifest_size(manifest)
    return manifest


class TransferOperation:
    """Pushes an exported image (``manifest.json`` plus blobs) to a repository.

    Stages run in order and the first failure aborts the rest. Blobs already
    accepted by the registry stay there; running the transfer again is the
    recovery path.
    """

    def __init__(self, registry: RegistryClient, provisioner: Optional[RepositoryProvisioner] = None,
                 part_size: int = LAYER_PART_MAX_SIZE, logger: Optional[logging.Logger] = None,
                 cancel_event: Optional[threading.Event] = None, show_progress: bool = True):
        self.registry = registry
        self.logger = logger or logging.getLogger(__name__)
        self.provisioner = provisioner or RepositoryProvisioner(registry, logger=self.logger)
        self.part_size = part_size
        self.cancel_event = cancel_event
        self.show_progress = show_progress

    def _check_cancelled(self):
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise OperationCancelled("transfer cancelled")

    def transfer(self, layers_path: str, repository_name: str, registry_id: str,
                 tag: str) -> TransferResult:
        """Run the full transfer and return the committed image."""
        manifest = load_manifest(layers_path)
        self.logger.info(
            f"Transferring {manifest.total_layers} blobs ({manifest.media_type}) "
            f"to {repository_name}:{tag}"
        )
        self._check_cancelled()

        provisioned = self.provisioner.ensure_repository(repository_name, registry_id)

        uploader = LayerUploader(
            self.registry, repository_name, registry_id, layers_path,
            part_size=self.part_size,
            logger=self.logger,
            cancel_event=self.cancel_event,
            show_progress=self.show_progress
        )

        self.logger.info("Uploading layer parts, depending on your connection this might take some time")
        layer_results = []
        for index, descriptor in enumerate(manifest.blobs()):
            kind = "config layer" if index == 0 else "layer"
            self.logger.info(f"Uploading {kind} with digest: {descriptor.digest}")
            layer_results.append(uploader.upload(descriptor))

        image = self._put_image(manifest, provisioned.repository, repository_name, registry_id, tag)
        self.logger.info(
            f"Image {image.image_tag} successfully put to {image.repository_name} "
            f"in registry with id {image.registry_id}"
        )

        return TransferResult(
            image=image,
            repository=provisioned.repository,
            repository_created=provisioned.created,
            layers=layer_results
        )

    def _put_image(self, manifest: Manifest, repository: Repository, repository_name: str,
                   registry_id: str, tag: str) -> PutImageResult:
        self._check_cancelled()

        try:
            return self.registry.put_image(
                repository.name or repository_name, registry_id, tag, manifest.raw, manifest.media_type
            )
        except RegistryError as e:
            raise ManifestPutError(f"error putting image {repository_name}:{tag}: {e}") from e
