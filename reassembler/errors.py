"""Exceptions raised by the layer transfer pipeline."""

from typing import Optional


class ReassemblerError(Exception):
    """Base class for all reassembler errors."""


class ListingError(ReassemblerError):
    """Listing objects under a prefix failed."""

    def __init__(self, message: str, bucket: Optional[str] = None, prefix: Optional[str] = None):
        super().__init__(message)
        self.bucket = bucket
        self.prefix = prefix


class ObjectDownloadError(ReassemblerError):
    """Creating the local directories or transferring an object failed."""

    def __init__(self, message: str, bucket: Optional[str] = None, key: Optional[str] = None,
                 path: Optional[str] = None):
        super().__init__(message)
        self.bucket = bucket
        self.key = key
        self.path = path


class FileSystemError(ReassemblerError):
    """A local file could not be read, written or inspected."""

    def __init__(self, message: str, path: Optional[str] = None, digest: Optional[str] = None):
        super().__init__(message)
        self.path = path
        self.digest = digest


class ReadError(FileSystemError):
    """A layer blob read returned fewer bytes than expected or failed."""


class ManifestError(ReassemblerError):
    """Base class for manifest problems."""


class UnknownMediaType(ManifestError):
    """The manifest media type could not be determined."""


class UnsupportedMediaType(ManifestError):
    """The manifest type is recognised but cannot be transferred."""

    def __init__(self, message: str, media_type: Optional[str] = None):
        super().__init__(message)
        self.media_type = media_type


class InvalidManifest(ManifestError):
    """The manifest is structurally invalid."""


class TooManyLayers(ManifestError):
    """The image has more layers than the registry accepts."""

    def __init__(self, message: str, total_layers: int = 0, limit: int = 0):
        super().__init__(message)
        self.total_layers = total_layers
        self.limit = limit


class ManifestTooLarge(ManifestError):
    """The manifest exceeds the registry's size limit."""

    def __init__(self, message: str, size: int = 0, limit: int = 0):
        super().__init__(message)
        self.size = size
        self.limit = limit


class RegistryError(ReassemblerError):
    """A registry call failed."""

    def __init__(self, message: str, operation: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message)
        self.operation = operation
        self.code = code


class RepositoryNotFound(RegistryError):
    """The described repository does not exist."""


class RepositoryLookupError(ReassemblerError):
    """Describing the target repository failed."""


class RepositoryCreateError(ReassemblerError):
    """Creating the target repository failed."""


class UploadError(ReassemblerError):
    """Base class for layer upload failures."""

    def __init__(self, message: str, digest: Optional[str] = None):
        super().__init__(message)
        self.digest = digest


class UploadInitError(UploadError):
    """The registry refused to start a layer upload."""


class UploadPartError(UploadError):
    """Uploading one part of a layer failed."""

    def __init__(self, message: str, digest: Optional[str] = None, part_index: Optional[int] = None):
        super().__init__(message, digest)
        self.part_index = part_index


class UploadCompleteError(UploadError):
    """Completing a layer upload failed."""


class LayerAlreadyExists(UploadCompleteError):
    """The layer is already present in the target repository."""


class ManifestPutError(ReassemblerError):
    """Putting the image manifest failed."""


class CredentialsError(ReassemblerError):
    """Role assumption or identity lookup failed."""


class OperationCancelled(ReassemblerError):
    """The run was cancelled by the caller."""
