"""Bulk retrieval of exported image files from object storage."""

import logging
import os
import threading
from typing import BinaryIO, Callable, List, Optional, Protocol

from ..errors import ListingError, ObjectDownloadError, OperationCancelled
from ..models.storage import RemoteObject
from ..utils.progress import human_size
from .s3_backend import S3_ERRORS


logger = logging.getLogger(__name__)


class ObjectPager(Protocol):
    def has_more_pages(self) -> bool: ...

    def next_page(self) -> List[RemoteObject]: ...


class ObjectDownloader(Protocol):
    def download(self, bucket: str, key: str, fileobj: BinaryIO) -> int: ...


class FileSystem(Protocol):
    def makedirs(self, path: str) -> None: ...

    def create(self, path: str) -> BinaryIO: ...


class LocalFileSystem:
    """Local disk access used by the retriever."""

    def makedirs(self, path: str) -> None:
        os.makedirs(path, mode=0o775, exist_ok=True)

    def create(self, path: str) -> BinaryIO:
        return open(path, 'wb')


PagerFactory = Callable[[str, str], ObjectPager]

TRANSFER_ERRORS = S3_ERRORS + (OSError,)


class BulkRetriever:
    """Downloads every object under a prefix into ``local_root/bucket/key``.

    Pages are processed one at a time and objects one at a time, in listing
    order. An empty listing is not an error: callers get an empty list back
    and decide what "nothing to do" means for them.
    """

    def __init__(self, pager_factory: PagerFactory, downloader: ObjectDownloader,
                 filesystem: Optional[FileSystem] = None, logger: Optional[logging.Logger] = None,
                 cancel_event: Optional[threading.Event] = None):
        self.pager_factory = pager_factory
        self.downloader = downloader
        self.filesystem = filesystem or LocalFileSystem()
        self.logger = logger or logging.getLogger(__name__)
        self.cancel_event = cancel_event

    def _check_cancelled(self):
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise OperationCancelled("download cancelled")

    def download(self, bucket: str, prefix: str, local_root: str) -> List[str]:
        """Download all objects under ``prefix``, returning local paths in order."""
        downloaded = []
        pager = self.pager_factory(bucket, prefix)

        while True:
            self._check_cancelled()
            try:
                if not pager.has_more_pages():
                    break
                objects = pager.next_page()
            except TRANSFER_ERRORS as e:
                raise ListingError(
                    f"failed to list objects in s3://{bucket}/{prefix}: {e}", bucket, prefix
                ) from e

            for obj in objects:
                if obj.key.endswith('/'):
                    self.logger.debug(f"Skipping folder placeholder {obj.key}")
                    continue
                self._check_cancelled()
                downloaded.append(self._download_object(obj, local_root))

        if not downloaded:
            self.logger.info(f"No objects found in s3://{bucket}/{prefix}")
        return downloaded

    def _local_path(self, obj: RemoteObject, local_root: str) -> str:
        """Map an object to a path that stays under ``local_root/bucket``."""
        base = os.path.normpath(os.path.join(local_root, obj.bucket))
        path = os.path.normpath(os.path.join(base, obj.key.lstrip('/')))
        if path == base or os.path.commonpath([base, path]) != base:
            raise ObjectDownloadError(
                f"object key {obj.key!r} resolves outside {base}", obj.bucket, obj.key, path
            )
        return path

    def _download_object(self, obj: RemoteObject, local_root: str) -> str:
        """Download one object, creating its parent directories."""
        path = self._local_path(obj, local_root)

        try:
            self.filesystem.makedirs(os.path.dirname(path))
        except OSError as e:
            raise ObjectDownloadError(
                f"failed to create directories for {path}: {e}", obj.bucket, obj.key, path
            ) from e

        try:
            with self.filesystem.create(path) as fd:
                size = self.downloader.download(obj.bucket, obj.key, fd)
        except TRANSFER_ERRORS as e:
            raise ObjectDownloadError(
                f"failed to download s3://{obj.bucket}/{obj.key} to {path}: {e}",
                obj.bucket, obj.key, path
            ) from e

        self.logger.info(f"Downloaded {path} ({human_size(size)})")
        return path
