"""Custom exceptions for image build operations.

This module defines a hierarchy of exceptions for the image build pipeline so
that every failure carries a specific type and a readable message. Every error
is fatal to the build; ``mkimg.main`` turns any of them into one diagnostic and
a non-zero exit status.

Exception Hierarchy:
    ImageBuildError (base)
        ├── ConfigurationError
        │   ├── InvalidSectorSizeError
        │   ├── BootSectorTooLargeError
        │   └── DirectoryNotRecursiveError
        ├── ImageIOError
        │   ├── SourceFileError
        │   ├── ImageAllocationError
        │   └── PartitionOverflowError
        ├── CodecError
        │   ├── PartitionTableError
        │   ├── FilesystemFormatError
        │   └── FilesystemWriteError
        └── ScriptError

Usage:
    from mkimg.storage.exceptions import BootSectorTooLargeError

    if len(bootsector) > MAX_BOOTSECTOR_SIZE:
        raise BootSectorTooLargeError(len(bootsector), MAX_BOOTSECTOR_SIZE)
"""

from __future__ import annotations

from pathlib import Path


class ImageBuildError(Exception):
    """Base exception for all image build operations."""



class ConfigurationError(ImageBuildError):
    """Base exception for invalid build configuration."""



class InvalidSectorSizeError(ConfigurationError):
    """Sector size is not one of the supported values."""

    def __init__(self, sector_size: int, supported: tuple[int, ...] = (512, 4096)):
        self.sector_size = sector_size
        self.supported = supported
        choices = ", ".join(str(value) for value in supported)
        super().__init__(
            f"invalid sector size (use one of {choices}): {sector_size}"
        )


class BootSectorTooLargeError(ConfigurationError):
    """Boot sector payload does not fit before the partition table."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(
            f"bootsector exceeds maximum size of {limit} bytes ({size} bytes)"
        )


class DirectoryNotRecursiveError(ConfigurationError):
    """A non-recursive content entry points at a directory."""

    def __init__(self, source: str | Path):
        self.source = str(source)
        super().__init__(f"expected a file, got directory: {self.source}")


class ImageIOError(ImageBuildError):
    """Base exception for file I/O failures."""



class SourceFileError(ImageIOError):
    """A partition source file or directory cannot be opened or read."""

    def __init__(self, path: str | Path, reason: str = "", partition: int | None = None):
        self.path = str(path)
        self.reason = reason
        self.partition = partition
        msg = f"file {self.path}"
        if reason:
            msg += f": {reason}"
        if partition is not None:
            msg = f"partition {partition}: {msg}"
        super().__init__(msg)


class ImageAllocationError(ImageIOError):
    """The image file or its destination directory could not be prepared."""

    def __init__(self, path: str | Path, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Failed to allocate image {self.path}: {reason}")


class PartitionOverflowError(ImageIOError):
    """Content is larger than the region reserved for its partition."""

    def __init__(self, index: int, content_size: int, region_size: int):
        self.index = index
        self.content_size = content_size
        self.region_size = region_size
        super().__init__(
            f"partition {index}: content ({content_size} bytes) exceeds "
            f"partition size ({region_size} bytes)"
        )


class CodecError(ImageBuildError):
    """Base exception for partition table and filesystem codec failures."""



class PartitionTableError(CodecError):
    """The partition table could not be constructed or written."""



class FilesystemFormatError(CodecError):
    """A partition could not be formatted with the requested filesystem."""

    def __init__(self, message: str, partition: int | None = None):
        self.partition = partition
        super().__init__(message)


class FilesystemWriteError(CodecError):
    """A file or directory could not be written to a formatted partition."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(message)


class ScriptError(ImageBuildError):
    """The configuration script failed to load or run."""

    def __init__(self, message: str, script: str | Path | None = None):
        self.script = str(script) if script is not None else None
        super().__init__(message)
