"""Local image tarball builds."""

import logging
import os
import shutil
import tarfile
import tempfile
from dataclasses import dataclass
from typing import List, Optional

from ..errors import FileSystemError


logger = logging.getLogger(__name__)


@dataclass
class LocalImage:
    """An image archive built from exported layer files."""
    size: int
    files: List[str]
    path: Optional[str] = None


def _files_to_include(layers_path: str) -> List[str]:
    files = []
    for root, _dirs, names in os.walk(layers_path):
        for name in names:
            files.append(os.path.relpath(os.path.join(root, name), layers_path))
    return sorted(files)


def build_local_image(layers_path: str, tag: str, destination: Optional[str] = None,
                      log: Optional[logging.Logger] = None) -> LocalImage:
    """Pack every file under ``layers_path`` into ``<tag>.tar``.

    The archive is written inside a temporary directory that is always
    removed; pass ``destination`` to keep the archive, otherwise only
    its size is reported.
    """
    log = log or logger
    if not os.path.isdir(layers_path):
        raise FileSystemError(f"{layers_path} is not a directory", path=layers_path)

    log.info(f"Building local image with files found here: {layers_path}")
    files = _files_to_include(layers_path)
    log.debug(f"with files: {files}")

    try:
        with tempfile.TemporaryDirectory(prefix="built-docker-reassembler") as tmp_dir:
            tarball_path = os.path.join(tmp_dir, f"{tag}.tar")
            log.info(f"Creating {tarball_path!r}")
            with tarfile.open(tarball_path, "w") as tar:
                for name in files:
                    tar.add(os.path.join(layers_path, name), arcname=name)

            size = os.path.getsize(tarball_path)
            kept_path = None
            if destination:
                os.makedirs(destination, exist_ok=True)
                kept_path = shutil.move(tarball_path, os.path.join(destination, f"{tag}.tar"))
    except (OSError, tarfile.TarError) as e:
        raise FileSystemError(f"error building local image from {layers_path}: {e}", path=layers_path) from e

    return LocalImage(size=size, files=files, path=kept_path)
