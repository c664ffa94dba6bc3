"""Domain models for disk image builds.

This package contains the configuration data model shared by the
configuration script bindings and the image builder.
"""

from __future__ import annotations

from .models import (
    MAX_BOOTSECTOR_SIZE,
    PART_TYPES,
    SIZE_UNITS,
    SUPPORTED_SECTOR_SIZES,
    Configuration,
    ContentEntry,
    FilesystemContent,
    FsType,
    Partition,
    PartitionContent,
    PartType,
    RawContent,
)


__all__ = [
    "MAX_BOOTSECTOR_SIZE",
    "PART_TYPES",
    "SIZE_UNITS",
    "SUPPORTED_SECTOR_SIZES",
    "Configuration",
    "ContentEntry",
    "FilesystemContent",
    "FsType",
    "Partition",
    "PartitionContent",
    "PartType",
    "RawContent",
]
