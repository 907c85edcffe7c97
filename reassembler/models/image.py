"""Image manifest and layer data models."""

from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class Descriptor:
    """A content-addressed blob referenced by a manifest."""
    media_type: str
    digest: str
    size: int

    @property
    def file_name(self) -> str:
        """Name of the exported blob file, e.g. ``sha256__<hex>``."""
        return self.digest.replace(":", "__", 1)


@dataclass(frozen=True)
class Manifest:
    """Parsed image manifest."""
    media_type: str
    config: Descriptor
    layers: List[Descriptor]
    raw: bytes = field(repr=False, default=b"")

    @property
    def total_layers(self) -> int:
        """Layer count as the registry sees it, config blob included."""
        return len(self.layers) + 1

    def blobs(self) -> List[Descriptor]:
        """Blobs in upload order: config first, then layers in manifest order."""
        return [self.config] + list(self.layers)


@dataclass(frozen=True)
class LayerChunk:
    """One part of a layer blob."""
    sequence_index: int
    data: bytes = field(repr=False)
    first_byte: int
    last_byte: int

    def __len__(self) -> int:
        return len(self.data)
