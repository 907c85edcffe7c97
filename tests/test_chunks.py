"""Tests for reassembler.images.chunks."""

from pathlib import Path

import pytest

from reassembler.config.limits import LAYER_PART_MAX_SIZE
from reassembler.errors import ReadError
from reassembler.images import chunks
from reassembler.images.chunks import chunk_count, split_file


class TestChunkCount:
    @pytest.mark.parametrize("size,expected", [(0, 0), (1, 1), (7, 1), (8, 2), (14, 2), (15, 3)])
    def test_ceiling_division(self, size: int, expected: int) -> None:
        assert chunk_count(size, 7) == expected

    def test_rejects_non_positive_chunk_size(self) -> None:
        with pytest.raises(ValueError):
            chunk_count(10, 0)


class TestSplitFile:
    @pytest.mark.parametrize("size", [1, 6, 7, 8, 21, 23])
    def test_chunks_reassemble_original(self, tmp_path: Path, size: int) -> None:
        data = bytes(i % 251 for i in range(size))
        blob = tmp_path / "blob"
        blob.write_bytes(data)

        parts = list(split_file(str(blob), 7))

        assert len(parts) == chunk_count(size, 7)
        assert b"".join(p.data for p in parts) == data
        assert [p.sequence_index for p in parts] == list(range(len(parts)))
        assert all(len(p) == 7 for p in parts[:-1])
        assert 0 < len(parts[-1]) <= 7

    def test_byte_ranges_are_contiguous(self, tmp_path: Path) -> None:
        blob = tmp_path / "blob"
        blob.write_bytes(b"x" * 30)

        parts = list(split_file(str(blob), 8))

        assert parts[0].first_byte == 0
        for previous, current in zip(parts, parts[1:]):
            assert current.first_byte == previous.last_byte + 1
        assert parts[-1].last_byte == 29

    def test_empty_file_yields_nothing(self, tmp_path: Path) -> None:
        blob = tmp_path / "empty"
        blob.write_bytes(b"")
        assert list(split_file(str(blob), 8)) == []

    def test_registry_part_size_scenario(self, tmp_path: Path) -> None:
        blob = tmp_path / "sha256__aaaa"
        with open(blob, "wb") as f:
            f.truncate(25000000)

        parts = list(split_file(str(blob)))

        assert [len(p) for p in parts] == [10485760, 10485760, 4028480]
        assert [(p.first_byte, p.last_byte) for p in parts] == [
            (0, 10485759), (10485760, 20971519), (20971520, 24999999)
        ]
        assert LAYER_PART_MAX_SIZE == 10485760

    def test_missing_file_raises_read_error(self, tmp_path: Path) -> None:
        with pytest.raises(ReadError) as exc_info:
            list(split_file(str(tmp_path / "missing"), 8))
        assert exc_info.value.path.endswith("missing")

    def test_short_read_raises_read_error(self, tmp_path: Path, monkeypatch) -> None:
        blob = tmp_path / "blob"
        blob.write_bytes(b"y" * 20)

        class Shrunk:
            st_size = 40

        monkeypatch.setattr(chunks.os, "fstat", lambda fd: Shrunk())
        with pytest.raises(ReadError, match="short read"):
            list(split_file(str(blob), 16))

    def test_invalid_chunk_size(self, tmp_path: Path) -> None:
        blob = tmp_path / "blob"
        blob.write_bytes(b"z")
        with pytest.raises(ValueError):
            list(split_file(str(blob), 0))
