"""Image manifest sniffing and parsing."""

import json
import logging
from typing import Any, Dict, List, Optional

from ..errors import (
    FileSystemError, InvalidManifest, UnknownMediaType, UnsupportedMediaType
)
from ..models.image import Descriptor, Manifest


logger = logging.getLogger(__name__)


DOCKER_V2_SCHEMA1_MEDIA_TYPE = "application/vnd.docker.distribution.manifest.v1+json"
DOCKER_V2_SCHEMA1_SIGNED_MEDIA_TYPE = "application/vnd.docker.distribution.manifest.v1+prettyjws"
DOCKER_V2_SCHEMA2_MEDIA_TYPE = "application/vnd.docker.distribution.manifest.v2+json"
DOCKER_V2_LIST_MEDIA_TYPE = "application/vnd.docker.distribution.manifest.list.v2+json"
DOCKER_V2_SCHEMA2_CONFIG_MEDIA_TYPE = "application/vnd.docker.container.image.v1+json"

OCI_MANIFEST_MEDIA_TYPE = "application/vnd.oci.image.manifest.v1+json"
OCI_INDEX_MEDIA_TYPE = "application/vnd.oci.image.index.v1+json"
OCI_CONFIG_MEDIA_TYPE = "application/vnd.oci.image.config.v1+json"

# Only these carry a config blob and a layer list that can be uploaded.
TRANSFERABLE_MEDIA_TYPES = (
    DOCKER_V2_SCHEMA2_MEDIA_TYPE,
    OCI_MANIFEST_MEDIA_TYPE,
)


def guess_media_type(blob: bytes) -> str:
    """Guess a manifest's media type from its content.

    Returns an empty string when the content is not recognisable.
    """
    try:
        document = json.loads(blob)
    except (ValueError, UnicodeDecodeError):
        return ""
    if not isinstance(document, dict):
        return ""

    media_type = document.get("mediaType")
    if isinstance(media_type, str) and media_type:
        return media_type

    schema_version = document.get("schemaVersion")
    if schema_version == 1:
        if "signatures" in document:
            return DOCKER_V2_SCHEMA1_SIGNED_MEDIA_TYPE
        return DOCKER_V2_SCHEMA1_MEDIA_TYPE
    if schema_version == 2:
        config = document.get("config")
        if isinstance(config, dict) and config.get("mediaType") == OCI_CONFIG_MEDIA_TYPE:
            return OCI_MANIFEST_MEDIA_TYPE
        if "manifests" in document:
            return OCI_INDEX_MEDIA_TYPE
        if isinstance(config, dict):
            return DOCKER_V2_SCHEMA2_MEDIA_TYPE
    return ""


def _descriptor(entry: Any, what: str) -> Descriptor:
    if not isinstance(entry, dict):
        raise InvalidManifest(f"{what} is not an object")

    digest = entry.get("digest")
    if not isinstance(digest, str) or ":" not in digest:
        raise InvalidManifest(f"{what} has no valid digest: {digest!r}")

    size = entry.get("size", 0)
    if isinstance(size, bool) or not isinstance(size, int) or size < 0:
        raise InvalidManifest(f"{what} {digest} has an invalid size: {size!r}")

    return Descriptor(media_type=entry.get("mediaType", ""), digest=digest, size=size)


def from_blob(blob: bytes, media_type: Optional[str] = None) -> Manifest:
    """Parse a manifest blob, sniffing its media type unless one is given."""
    if media_type is None:
        media_type = guess_media_type(blob)
    if not media_type:
        raise UnknownMediaType("manifest media type is unknown or unrecognised")
    if media_type not in TRANSFERABLE_MEDIA_TYPES:
        raise UnsupportedMediaType(
            f"manifest media type {media_type} cannot be transferred", media_type
        )

    try:
        text = bytes(blob).decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidManifest(f"manifest is not UTF-8 encoded: {e}") from e

    try:
        document: Dict[str, Any] = json.loads(text)
    except ValueError as e:
        raise InvalidManifest(f"manifest is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise InvalidManifest("manifest is not a JSON object")

    config = _descriptor(document.get("config"), "config")
    raw_layers = document.get("layers", [])
    if not isinstance(raw_layers, list):
        raise InvalidManifest("manifest layers is not a list")

    layers: List[Descriptor] = [
        _descriptor(entry, f"layer {index}") for index, entry in enumerate(raw_layers)
    ]

    logger.debug(f"manifest media type: {media_type!r}, config media type: {config.media_type!r}")
    return Manifest(media_type=media_type, config=config, layers=layers, raw=bytes(blob))


def read_manifest(path: str) -> Manifest:
    """Read and parse the manifest file at ``path``."""
    try:
        with open(path, "rb") as f:
            blob = f.read()
    except OSError as e:
        raise FileSystemError(f"error reading manifest file {path}: {e}", path=path) from e
    return from_blob(blob)
