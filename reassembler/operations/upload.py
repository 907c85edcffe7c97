"""Multi-part layer uploads."""

import enum
import logging
import os
import threading
from typing import Optional

from ..config.limits import LAYER_PART_MAX_SIZE
from ..errors import (
    FileSystemError, LayerAlreadyExists, OperationCancelled, ReadError, RegistryError,
    UploadCompleteError, UploadInitError, UploadPartError
)
from ..images.chunks import chunk_count, split_file
from ..models.image import Descriptor
from ..models.registry import LayerUploadResult, UploadSession
from ..registry.ecr_backend import RegistryClient
from ..utils.progress import ProgressReporter, human_size


logger = logging.getLogger(__name__)


class UploadState(enum.Enum):
    INIT = "Init"
    UPLOADING = "Uploading"
    COMPLETING = "Completing"
    DONE = "Done"
    FAILED = "Failed"


class LayerUploader:
    """Pushes layer blobs to a registry repository one part at a time.

    Each call to :meth:`upload` walks Init -> Uploading -> Completing -> Done
    for a single blob with a fresh upload session. Any failure moves the
    uploader to Failed and is raised; a completion reporting that the layer
    already exists counts as Done.
    """

    def __init__(self, registry: RegistryClient, repository_name: str, registry_id: str,
                 layers_path: str, part_size: int = LAYER_PART_MAX_SIZE,
                 logger: Optional[logging.Logger] = None,
                 cancel_event: Optional[threading.Event] = None,
                 show_progress: bool = True):
        if part_size <= 0:
            raise ValueError(f"part size must be positive, got {part_size}")
        self.registry = registry
        self.repository_name = repository_name
        self.registry_id = registry_id
        self.layers_path = layers_path
        self.part_size = part_size
        self.logger = logger or logging.getLogger(__name__)
        self.cancel_event = cancel_event
        self.show_progress = show_progress
        self.state: Optional[UploadState] = None
        self.part_index: Optional[int] = None

    def _check_cancelled(self, digest: str):
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise OperationCancelled(f"upload of {digest} cancelled")

    def blob_path(self, descriptor: Descriptor) -> str:
        """Local path of the exported blob for ``descriptor``."""
        return os.path.join(self.layers_path, descriptor.file_name)

    def upload(self, descriptor: Descriptor) -> LayerUploadResult:
        """Upload one blob; raises an :class:`UploadError` subclass on failure."""
        self.state = UploadState.INIT
        self.part_index = None
        try:
            return self._upload(descriptor)
        except BaseException:
            self.state = UploadState.FAILED
            raise

    def _upload(self, descriptor: Descriptor) -> LayerUploadResult:
        digest = descriptor.digest
        self._check_cancelled(digest)

        try:
            session = self.registry.initiate_layer_upload(self.repository_name, self.registry_id)
        except RegistryError as e:
            raise UploadInitError(f"error initiating upload of layer {digest}: {e}", digest) from e

        blob_path = self.blob_path(descriptor)
        try:
            size = os.stat(blob_path).st_size
        except OSError as e:
            raise FileSystemError(
                f"error reading file info for {blob_path}: {e}", path=blob_path, digest=digest
            ) from e

        total_parts = chunk_count(size, self.part_size)
        self.logger.debug(
            f"uploadId: {session.upload_id!r}, layer digest: {digest}, "
            f"blobPath: {blob_path}, layer size: {size} bytes"
        )
        self.logger.info(f"Uploading {total_parts} layer parts for {digest} ({human_size(size)})")

        self.state = UploadState.UPLOADING
        uploaded = self._upload_parts(session, digest, blob_path, size)

        self.state = UploadState.COMPLETING
        self.part_index = None
        already_existed = self._complete(session, digest)

        self.state = UploadState.DONE
        return LayerUploadResult(
            digest=digest,
            parts=total_parts,
            bytes_uploaded=uploaded,
            already_existed=already_existed
        )

    def _upload_parts(self, session: UploadSession, digest: str, blob_path: str, size: int) -> int:
        """Upload every chunk of ``blob_path`` in order, returning bytes sent."""
        next_byte = 0
        try:
            with ProgressReporter(size, digest[:19], enabled=self.show_progress) as progress:
                for chunk in split_file(blob_path, self.part_size, self.logger):
                    self.part_index = chunk.sequence_index
                    self._check_cancelled(digest)
                    self.logger.debug(
                        f"part {chunk.sequence_index}: {human_size(len(chunk))} "
                        f"({len(chunk)} bytes), bytes {chunk.first_byte}-{chunk.last_byte}"
                    )
                    try:
                        last_received = self.registry.upload_layer_part(
                            session, chunk.first_byte, chunk.last_byte, chunk.data
                        )
                    except RegistryError as e:
                        raise UploadPartError(
                            f"error uploading part {chunk.sequence_index} "
                            f"(bytes {chunk.first_byte}-{chunk.last_byte}) of layer {digest}: {e}",
                            digest, chunk.sequence_index
                        ) from e

                    self.logger.debug(f"last layer part byte received {last_received}")
                    next_byte = chunk.last_byte + 1
                    progress.update(len(chunk))
        except ReadError as e:
            e.digest = digest
            raise
        return next_byte

    def _complete(self, session: UploadSession, digest: str) -> bool:
        """Complete the upload; returns True when the layer already existed."""
        self._check_cancelled(digest)
        try:
            self.registry.complete_layer_upload(session, digest)
        except LayerAlreadyExists as e:
            self.logger.warning(f"Layer {digest} already exists in {self.repository_name}: {e}")
            return True
        except RegistryError as e:
            raise UploadCompleteError(f"error completing upload of layer {digest}: {e}", digest) from e
        self.logger.info(f"Layer {digest} uploaded")
        return False
