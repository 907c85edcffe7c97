"""Splitting layer blobs into upload parts."""

import logging
import os
from typing import Iterator, Optional

from ..config.limits import LAYER_PART_MAX_SIZE
from ..errors import ReadError
from ..models.image import LayerChunk


logger = logging.getLogger(__name__)


def chunk_count(size: int, max_chunk_size: int) -> int:
    """Number of parts a blob of ``size`` bytes is split into."""
    if max_chunk_size <= 0:
        raise ValueError(f"chunk size must be positive, got {max_chunk_size}")
    return -(-size // max_chunk_size)


def split_file(path: str, max_chunk_size: int = LAYER_PART_MAX_SIZE,
               log: Optional[logging.Logger] = None) -> Iterator[LayerChunk]:
    """Yield the chunks of the file at ``path`` in order.

    Every chunk but the last is exactly ``max_chunk_size`` bytes long and
    the byte ranges are contiguous from offset 0. An empty file yields
    nothing. The sequence can only be restarted from the beginning.
    """
    log = log or logger
    if max_chunk_size <= 0:
        raise ValueError(f"chunk size must be positive, got {max_chunk_size}")

    try:
        f = open(path, "rb")
    except OSError as e:
        raise ReadError(f"error opening {path}: {e}", path=path) from e

    with f:
        try:
            size = os.fstat(f.fileno()).st_size
        except OSError as e:
            raise ReadError(f"error reading file info for {path}: {e}", path=path) from e

        total = chunk_count(size, max_chunk_size)
        log.debug(f"splitting {path!r} into {total} chunks")

        offset = 0
        for index in range(total):
            expected = min(max_chunk_size, size - offset)
            try:
                data = f.read(expected)
            except OSError as e:
                raise ReadError(f"error reading part {index} of {path}: {e}", path=path) from e
            if len(data) != expected:
                raise ReadError(
                    f"short read on part {index} of {path}: expected {expected} bytes, got {len(data)}",
                    path=path
                )

            yield LayerChunk(
                sequence_index=index,
                data=data,
                first_byte=offset,
                last_byte=offset + expected - 1
            )
            offset += expected
