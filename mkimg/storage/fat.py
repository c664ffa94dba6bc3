"""FAT filesystem codec backed by dosfstools and mtools.

A filesystem partition is built in a scratch volume file the size of its
partition region:

    1. ``mkfs.fat -F <12|16|32> -S <sector size>`` formats the volume
    2. ``mmd`` / ``mcopy`` create directories and files inside it, without
       mounting anything
    3. the finished volume is streamed into the partition region

Tool names come from the settings store (``mkfs_fat_command``,
``mmd_command``, ``mcopy_command``).

Example:
    >>> with create_filesystem(image, 2, FsType.FAT32) as fs:
    ...     fs.makedir("/EFI/BOOT")
    ...     fs.write_file("/EFI/BOOT/BOOTX64.EFI", payload)
"""

from __future__ import annotations

import posixpath
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from mkimg.config.settings import get_setting
from mkimg.domain.models import FsType
from mkimg.logging import LoggerFactory
from mkimg.storage.commands import format_command_failure, require_tool, run_command
from mkimg.storage.exceptions import FilesystemFormatError, FilesystemWriteError
from mkimg.storage.image import DiskImage


log = LoggerFactory.for_codec("fat")

# mtools refuses volumes whose geometry does not match a floppy/disk table
MTOOLS_ENV = {"MTOOLS_SKIP_CHECK": "1"}


def normalize_path(path: str) -> str:
    """Absolute POSIX path inside the filesystem ("" and "." map to "/")."""
    return posixpath.normpath("/" + path.replace("\\", "/").lstrip("/"))


def format_volume(
    volume: Path,
    fs_type: FsType,
    *,
    sector_size: int = 512,
    label: Optional[str] = None,
    hidden_sectors: int = 0,
) -> None:
    """Format an existing, pre-sized volume file.

    ``hidden_sectors`` is the volume's start LBA on the disk; it is stored in
    the boot record for boot code that locates the volume through it.

    Raises:
        FilesystemFormatError: If mkfs.fat is missing or fails (e.g. the
            volume is too small for the requested FAT type)
    """
    mkfs = get_setting("mkfs_fat_command", "mkfs.fat")
    try:
        require_tool(mkfs)
    except FileNotFoundError as error:
        raise FilesystemFormatError(str(error)) from error

    command = [mkfs, "-F", str(fs_type.fat_bits), "-S", str(sector_size)]
    if label:
        command.extend(["-n", label[:11].upper()])
    if hidden_sectors:
        command.extend(["-h", str(hidden_sectors)])
    command.append(str(volume))
    try:
        run_command(command)
    except subprocess.CalledProcessError as error:
        raise FilesystemFormatError(
            f"Failed to format {fs_type.name}: {format_command_failure(error)}"
        ) from error
    except OSError as error:
        raise FilesystemFormatError(f"Failed to format {fs_type.name}: {error}") from error


class FatFilesystem:
    """Write handle on a formatted FAT volume file."""

    def __init__(self, volume: Path):
        self.volume = volume
        self.mmd = get_setting("mmd_command", "mmd")
        self.mcopy = get_setting("mcopy_command", "mcopy")
        # FAT names are case-insensitive, so entries are kept upper-cased
        self._directories: set[str] = {"/"}

    def _run(self, command: list[str], path: str) -> None:
        try:
            run_command(command, env=MTOOLS_ENV)
        except subprocess.CalledProcessError as error:
            raise FilesystemWriteError(
                f"Failed to write {path}: {format_command_failure(error)}", path
            ) from error
        except OSError as error:
            raise FilesystemWriteError(f"Failed to write {path}: {error}", path) from error

    def makedir(self, path: str) -> None:
        """Create ``path`` and any missing parents; existing directories are kept."""
        path = normalize_path(path)
        if path.upper() in self._directories:
            return
        self.makedir(posixpath.dirname(path))
        self._run([self.mmd, "-i", str(self.volume), f"::{path}"], path)
        self._directories.add(path.upper())

    def write_file(self, path: str, data: bytes) -> None:
        """Create or overwrite the file at ``path`` with ``data``."""
        path = normalize_path(path)
        self.makedir(posixpath.dirname(path))
        with tempfile.NamedTemporaryFile(
            dir=self.volume.parent, prefix="payload-", delete=False
        ) as payload:
            payload.write(data)
        try:
            self._run(
                [self.mcopy, "-o", "-i", str(self.volume), payload.name, f"::{path}"],
                path,
            )
        finally:
            Path(payload.name).unlink(missing_ok=True)


@contextmanager
def create_filesystem(
    image: DiskImage,
    index: int,
    fs_type: FsType,
    *,
    label: Optional[str] = None,
) -> Iterator[FatFilesystem]:
    """Format partition ``index`` and yield a handle to populate it.

    The volume is copied into the image when the block exits without error.

    Raises:
        FilesystemFormatError: If formatting fails
        PartitionTableError: If ``index`` is not in the partition table
    """
    region = image.partition_region(index)
    if label is None:
        label = get_setting("fat_volume_label")
    with tempfile.TemporaryDirectory(prefix="mkimg-") as scratch:
        volume = Path(scratch) / f"partition{index}.img"
        with volume.open("wb") as handle:
            handle.truncate(region.size)
        log.debug(
            f"Formatting partition {index} as {fs_type.name} ({region.size} bytes)"
        )
        format_volume(
            volume,
            fs_type,
            sector_size=image.sector_size,
            label=label,
            hidden_sectors=region.offset // image.sector_size,
        )
        for tool in (get_setting("mmd_command", "mmd"), get_setting("mcopy_command", "mcopy")):
            try:
                require_tool(tool)
            except FileNotFoundError as error:
                raise FilesystemWriteError(str(error)) from error

        yield FatFilesystem(volume)

        with volume.open("rb") as reader:
            written = image.write_partition_contents(index, reader)
        log.debug(f"Copied {written} bytes of {fs_type.name} volume into partition {index}")
