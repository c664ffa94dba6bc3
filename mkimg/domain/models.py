"""Domain model for disk image builds.

A ``Configuration`` is assembled once per run by the configuration script,
handed to ``mkimg.storage.builder.build_image`` and discarded afterwards. The
partition content is a small tagged union (``RawContent`` or
``FilesystemContent``); ``mkimg.storage.content`` dispatches on it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Union

from mkimg.config.settings import (
    DEFAULT_FIRST_SECTOR,
    DEFAULT_IMAGE_NAME,
    DEFAULT_SECTOR_SIZE,
    get_int,
    get_setting,
)
from mkimg.storage.exceptions import InvalidSectorSizeError


SUPPORTED_SECTOR_SIZES = (512, 4096)

# Bytes available for boot code before the MBR disk signature
MAX_BOOTSECTOR_SIZE = 440


# ==============================================================================
# Constant tables exposed to configuration scripts
# ==============================================================================


SIZE_UNITS: dict[str, int] = {
    "KB": 1024,
    "MB": 1024 * 1024,
    "GB": 1024 * 1024 * 1024,
}


class FsType(Enum):
    """Filesystem types a filesystem partition can be formatted with."""

    FAT32 = 0
    FAT16 = 1
    FAT12 = 2

    @property
    def fat_bits(self) -> int:
        """FAT width passed to mkfs.fat -F."""
        return {FsType.FAT32: 32, FsType.FAT16: 16, FsType.FAT12: 12}[self]

    @property
    def script_name(self) -> str:
        """Name under the FsType table in configuration scripts (e.g. Fat32)."""
        return self.name.capitalize()


class PartType:
    """GPT partition type GUIDs."""

    UNUSED = "00000000-0000-0000-0000-000000000000"
    ESP = "C12A7328-F81F-11D2-BA4B-00A0C93EC93B"
    LEGACY_MBR = "024DEE41-33E7-11D3-9D69-0008C781F39F"
    BIOS_BOOT = "21686148-6449-6E6F-744E-656564454649"
    LINUX_FILESYSTEM = "0FC63DAF-8483-4772-8E79-3D69D8477DE4"
    LINUX_SWAP = "0657FD6D-A4AB-43C4-84E5-0933C84B4F4F"
    LINUX_ROOT_X86_64 = "4F68BCE3-E8CD-4DB1-96E7-FBCAF984B709"
    LINUX_LVM = "E6D6D379-F507-44C2-A23C-238F2A3DF928"
    MICROSOFT_BASIC_DATA = "EBD0A0A2-B9E5-4433-87C0-68B6B72699C7"


PART_TYPES: dict[str, str] = {
    "Unused": PartType.UNUSED,
    "ESP": PartType.ESP,
    "LegacyMBR": PartType.LEGACY_MBR,
    "BIOSBoot": PartType.BIOS_BOOT,
    "LinuxFilesystem": PartType.LINUX_FILESYSTEM,
    "LinuxSwap": PartType.LINUX_SWAP,
    "LinuxRootX86_64": PartType.LINUX_ROOT_X86_64,
    "LinuxLVM": PartType.LINUX_LVM,
    "MicrosoftBasicData": PartType.MICROSOFT_BASIC_DATA,
}


# ==============================================================================
# Partition content
# ==============================================================================


@dataclass(frozen=True)
class RawContent:
    """Partition content copied verbatim from an already opened source file."""

    path: Path
    file: BinaryIO = field(compare=False, repr=False)

    @classmethod
    def open(cls, path: str | Path) -> RawContent:
        """Open ``path`` for reading.

        Raises:
            OSError: If the file cannot be opened
        """
        path = Path(path)
        return cls(path=path, file=path.open("rb"))

    @property
    def closed(self) -> bool:
        return self.file.closed

    def close(self) -> None:
        self.file.close()


@dataclass(frozen=True)
class ContentEntry:
    """One source path to copy into a filesystem partition."""

    source: Path
    destination: str
    recursive: bool = False


@dataclass(frozen=True)
class FilesystemContent:
    """Partition formatted as a filesystem and populated from entries.

    ``capacity`` is the declared partition size in bytes; it is not derived
    from the entries.
    """

    capacity: int
    fs_type: FsType
    entries: list[ContentEntry] = field(default_factory=list)

    def put_file(self, source: str | Path, destination: str) -> None:
        self.entries.append(ContentEntry(Path(source), destination, recursive=False))

    def put_dir(self, source: str | Path, destination: str) -> None:
        self.entries.append(ContentEntry(Path(source), destination, recursive=True))


PartitionContent = Union[RawContent, FilesystemContent]


@dataclass(frozen=True)
class Partition:
    """A GPT partition: display name, type GUID and content."""

    name: str
    type_guid: str
    content: PartitionContent


# ==============================================================================
# Build configuration
# ==============================================================================


@dataclass
class Configuration:
    """Mutable build state populated by the configuration script.

    Partition order is both the on-disk order and the 1-based partition table
    index order.
    """

    dest: Path = Path(".")
    name: str = DEFAULT_IMAGE_NAME
    sector_size: int = DEFAULT_SECTOR_SIZE
    first_sector: int = DEFAULT_FIRST_SECTOR
    protective_mbr: bool = False
    partitions: list[Partition] = field(default_factory=list)
    bootsector: Path | None = None

    @classmethod
    def from_settings(cls, dest: str | Path = ".") -> Configuration:
        """Create a configuration using defaults from the settings store."""
        return cls(
            dest=Path(dest),
            name=get_setting("image_name") or DEFAULT_IMAGE_NAME,
            sector_size=get_int("sector_size", DEFAULT_SECTOR_SIZE),
            first_sector=get_int("first_sector", DEFAULT_FIRST_SECTOR),
        )

    @property
    def image_path(self) -> Path:
        return self.dest / self.name

    def validate(self) -> None:
        """Check configuration invariants before a build.

        Raises:
            InvalidSectorSizeError: If sector_size is not 512 or 4096
        """
        if self.sector_size not in SUPPORTED_SECTOR_SIZES:
            raise InvalidSectorSizeError(self.sector_size, SUPPORTED_SECTOR_SIZES)

    def close(self) -> None:
        """Release every raw source handle still open."""
        for partition in self.partitions:
            if isinstance(partition.content, RawContent):
                partition.content.close()
