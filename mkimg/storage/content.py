"""Partition content strategies.

Two kinds of content exist (see ``mkimg.domain.models``):

    RawContent:        a source file copied byte for byte into the partition
    FilesystemContent: a declared-capacity filesystem populated from files
                       and directory trees

``content_size`` and ``write_content`` dispatch on the kind. Directory trees
are copied by ``materialize_directory`` in the order the host directory
listing returns them.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Protocol

from mkimg.domain.models import (
    ContentEntry,
    FilesystemContent,
    PartitionContent,
    RawContent,
)
from mkimg.logging import LoggerFactory
from mkimg.storage.exceptions import DirectoryNotRecursiveError, SourceFileError
from mkimg.storage.fat import create_filesystem
from mkimg.storage.image import DiskImage


log = LoggerFactory.for_build()


class FilesystemHandle(Protocol):
    """Write surface a filesystem codec exposes on a formatted partition."""

    def makedir(self, path: str) -> None: ...

    def write_file(self, path: str, data: bytes) -> None: ...


def content_size(content: PartitionContent) -> int:
    """Size in bytes the partition needs before sector rounding."""
    if isinstance(content, RawContent):
        try:
            return os.fstat(content.file.fileno()).st_size
        except (OSError, ValueError) as error:
            raise SourceFileError(content.path, str(error)) from error
    if isinstance(content, FilesystemContent):
        return content.capacity
    raise TypeError(f"Unsupported partition content: {type(content).__name__}")


def write_content(content: PartitionContent, image: DiskImage, index: int) -> None:
    """Populate partition ``index`` of ``image`` with ``content``."""
    if isinstance(content, RawContent):
        write_raw(content, image, index)
    elif isinstance(content, FilesystemContent):
        write_filesystem(content, image, index)
    else:
        raise TypeError(f"Unsupported partition content: {type(content).__name__}")


def write_raw(content: RawContent, image: DiskImage, index: int) -> None:
    """Stream the source file into the partition and close it."""
    try:
        content.file.seek(0)
        written = image.write_partition_contents(index, content.file)
    except OSError as error:
        raise SourceFileError(content.path, str(error), partition=index) from error
    finally:
        content.close()
    log.debug(f"Partition {index}: copied {written} bytes from {content.path}")


def write_filesystem(content: FilesystemContent, image: DiskImage, index: int) -> None:
    """Format the partition and copy every entry in declaration order."""
    with create_filesystem(image, index, content.fs_type) as fs:
        for entry in content.entries:
            write_entry(fs, entry)


def write_entry(fs: FilesystemHandle, entry: ContentEntry) -> None:
    """Copy one content entry.

    Raises:
        SourceFileError: If the source does not exist or cannot be read
        DirectoryNotRecursiveError: If the source is a directory but the entry
            is not recursive
    """
    source = entry.source
    try:
        is_dir = source.is_dir()
        exists = is_dir or source.exists()
    except OSError as error:
        raise SourceFileError(source, str(error)) from error
    if not exists:
        raise SourceFileError(source, "does not exist")

    if is_dir:
        if not entry.recursive:
            raise DirectoryNotRecursiveError(source)
        materialize_directory(fs, source, entry.destination)
    else:
        copy_file(fs, source, entry.destination)


def copy_file(fs: FilesystemHandle, source: Path, destination: str) -> None:
    try:
        data = source.read_bytes()
    except OSError as error:
        raise SourceFileError(source, str(error)) from error
    log.trace(f"{source} -> {destination} ({len(data)} bytes)")
    fs.write_file(destination, data)


def materialize_directory(fs: FilesystemHandle, source: Path, destination: str) -> None:
    """Recursively copy the tree under ``source`` to ``destination``.

    Intermediate directories are created on the way down, so every file under
    ``source`` lands at the same relative path under ``destination``.
    """
    fs.makedir(destination)
    try:
        children = list(source.iterdir())
    except OSError as error:
        raise SourceFileError(source, str(error)) from error

    for child in children:
        target = join_destination(destination, child.name)
        if child.is_dir():
            materialize_directory(fs, child, target)
        else:
            copy_file(fs, child, target)


def join_destination(directory: str, name: str) -> str:
    """Join a filesystem-internal directory path and a child name."""
    return f"{directory.rstrip('/')}/{name}"
