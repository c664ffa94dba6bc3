"""Raw disk image file handle.

``DiskImage`` owns the open image file for the duration of one build. The
partition table codec registers the byte region of every partition on it, so
content writers address partitions by their 1-based table index only.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Mapping

from mkimg.storage.exceptions import (
    ImageAllocationError,
    PartitionOverflowError,
    PartitionTableError,
)


COPY_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class PartitionRegion:
    """Byte range of a partition inside the image."""

    index: int
    offset: int
    size: int


class DiskImage:
    """Fixed-size raw image file addressed in sectors."""

    def __init__(self, path: Path, file: BinaryIO, size: int, sector_size: int):
        self.path = path
        self.file = file
        self.size = size
        self.sector_size = sector_size
        self._regions: dict[int, PartitionRegion] = {}

    @classmethod
    def create(cls, path: str | Path, size: int, sector_size: int) -> DiskImage:
        """Create (or truncate) ``path`` and extend it to ``size`` bytes.

        Raises:
            ImageAllocationError: If the size is not sector aligned or the
                file cannot be created
        """
        path = Path(path)
        if size % sector_size:
            raise ImageAllocationError(
                path, f"size {size} is not a multiple of sector size {sector_size}"
            )
        try:
            file = path.open("w+b")
        except OSError as error:
            raise ImageAllocationError(path, str(error)) from error
        try:
            file.truncate(size)
        except OSError as error:
            file.close()
            raise ImageAllocationError(path, str(error)) from error
        return cls(path, file, size, sector_size)

    @property
    def total_sectors(self) -> int:
        return self.size // self.sector_size

    def set_partition_regions(self, regions: Mapping[int, PartitionRegion]) -> None:
        self._regions = dict(regions)

    def partition_region(self, index: int) -> PartitionRegion:
        try:
            return self._regions[index]
        except KeyError:
            raise PartitionTableError(
                f"partition {index} does not exist in the partition table"
            ) from None

    def write_at(self, data: bytes, offset: int) -> int:
        self.file.seek(offset)
        return self.file.write(data)

    def read_at(self, offset: int, size: int) -> bytes:
        self.file.seek(offset)
        return self.file.read(size)

    def write_partition_contents(self, index: int, reader: BinaryIO) -> int:
        """Stream ``reader`` into the region of partition ``index``.

        Returns:
            Number of bytes written

        Raises:
            PartitionTableError: If the partition is unknown
            PartitionOverflowError: If the content does not fit the region
        """
        region = self.partition_region(index)
        written = 0
        self.file.seek(region.offset)
        while True:
            chunk = reader.read(COPY_CHUNK_SIZE)
            if not chunk:
                break
            if written + len(chunk) > region.size:
                raise PartitionOverflowError(index, written + len(chunk), region.size)
            self.file.write(chunk)
            written += len(chunk)
        return written

    def close(self) -> None:
        if not self.file.closed:
            self.file.flush()
            self.file.close()

    def __enter__(self) -> DiskImage:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
