"""Host functions that populate a Configuration.

These are the operations a configuration script can perform. They take the
``Configuration`` explicitly, so they can be driven from Python as well as from
the Lua runtime in ``mkimg.script.lua``.

Example:
    >>> config = Configuration()
    >>> bindings = ConfigurationBindings(config)
    >>> bindings.set_name("disk.img")
    >>> data = bindings.new_fs_partition("DATA", PartType.UNUSED, 16 * 1024**2, FsType.FAT32)
    >>> data.put_file("local.txt", "/remote.txt")
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from mkimg.domain.models import (
    PART_TYPES,
    SIZE_UNITS,
    SUPPORTED_SECTOR_SIZES,
    Configuration,
    FilesystemContent,
    FsType,
    Partition,
    RawContent,
)
from mkimg.logging import LoggerFactory
from mkimg.storage.exceptions import (
    ConfigurationError,
    InvalidSectorSizeError,
    SourceFileError,
)


log = LoggerFactory.for_script()


def script_constants() -> dict[str, dict[str, Any]]:
    """Constant tables bound into the script's global namespace."""
    return {
        "Size": dict(SIZE_UNITS),
        "FsType": {fs_type.script_name: fs_type.value for fs_type in FsType},
        "PartType": dict(PART_TYPES),
    }


@dataclass
class FilesystemPartitionHandle:
    """Returned by new_fs_partition to declare the partition's files."""

    index: int
    content: FilesystemContent

    def put_file(self, source: str | Path, destination: str) -> None:
        log.debug(f"Partition {self.index}: file {source} -> {destination}")
        self.content.put_file(source, destination)

    def put_dir(self, source: str | Path, destination: str) -> None:
        log.debug(f"Partition {self.index}: directory {source} -> {destination}")
        self.content.put_dir(source, destination)


class ConfigurationBindings:
    """Mutating operations over one Configuration."""

    def __init__(self, config: Configuration):
        self.config = config

    def set_name(self, name: str) -> None:
        self.config.name = name

    def set_sector_size(self, sector_size: int) -> None:
        if sector_size not in SUPPORTED_SECTOR_SIZES:
            raise InvalidSectorSizeError(sector_size, SUPPORTED_SECTOR_SIZES)
        self.config.sector_size = sector_size

    def set_first_sector(self, sector: int) -> None:
        self.config.first_sector = sector

    def set_bootsector(self, path: str | Path) -> None:
        self.config.bootsector = Path(path)

    def use_protective_mbr(self) -> None:
        self.config.protective_mbr = True

    def new_raw_partition(self, name: str, type_guid: str, path: str | Path) -> None:
        """Open ``path`` now and append a raw partition.

        Raises:
            SourceFileError: If the file cannot be opened; names the 1-based
                index the partition would have had
        """
        index = len(self.config.partitions) + 1
        try:
            content = RawContent.open(path)
        except FileNotFoundError as error:
            raise SourceFileError(path, "does not exist", partition=index) from error
        except OSError as error:
            raise SourceFileError(path, error.strerror or str(error), partition=index) from error
        self.config.partitions.append(Partition(name, type_guid, content))
        log.debug(f"Partition {index}: raw {name} from {path}")

    def new_fs_partition(
        self, name: str, type_guid: str, capacity: int, fs_type: FsType | int
    ) -> FilesystemPartitionHandle:
        """Append an empty filesystem partition of ``capacity`` bytes.

        Raises:
            ConfigurationError: If ``fs_type`` is not a known filesystem type
        """
        try:
            fs_type = FsType(fs_type)
        except ValueError:
            raise ConfigurationError(f"unknown filesystem type: {fs_type!r}") from None
        index = len(self.config.partitions) + 1
        content = FilesystemContent(capacity=capacity, fs_type=fs_type)
        self.config.partitions.append(Partition(name, type_guid, content))
        log.debug(f"Partition {index}: {fs_type.name} {name} ({capacity} bytes)")
        return FilesystemPartitionHandle(index=index, content=content)
