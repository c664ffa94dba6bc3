"""Disk image build pipeline.

``build_image`` turns a populated ``Configuration`` into an image file. The
steps run strictly in this order:

    1. validate the configuration (sector size, boot sector size) and plan
       the sector layout
    2. delete any previous image at ``dest/name``
    3. create the destination directory
    4. allocate the image (layout size plus the backup GPT tail)
    5. write the GUID partition table
    6. write every partition's content, in table order
    7. patch the optional boot sector into bytes 0-439

Any failure raises an ``ImageBuildError`` subclass and leaves whatever was
already written on disk; callers must treat such an image as garbage.
"""

from __future__ import annotations

import os
from pathlib import Path

from mkimg.domain.models import MAX_BOOTSECTOR_SIZE, Configuration
from mkimg.logging import LoggerFactory, operation_context
from mkimg.storage import gpt
from mkimg.storage.content import content_size, write_content
from mkimg.storage.exceptions import (
    BootSectorTooLargeError,
    ImageAllocationError,
    SourceFileError,
)
from mkimg.storage.image import DiskImage
from mkimg.storage.layout import Layout, plan_layout


log = LoggerFactory.for_build()


def compute_layout(config: Configuration) -> Layout:
    """Plan partition sectors for ``config``."""
    config.validate()
    sizes = [content_size(partition.content) for partition in config.partitions]
    return plan_layout(config.sector_size, config.first_sector, sizes)


def remove_previous_image(path: Path) -> None:
    """Delete ``path``; a missing file is not an error."""
    try:
        os.remove(path)
    except FileNotFoundError:
        return
    except OSError as error:
        raise ImageAllocationError(path, f"cannot remove previous image: {error}") from error


def ensure_destination(dest: Path) -> None:
    try:
        dest.mkdir(mode=0o755, parents=True, exist_ok=True)
    except OSError as error:
        raise ImageAllocationError(dest, f"cannot create destination: {error}") from error


def check_bootsector(path: Path) -> None:
    """Fail early, before the image is touched, on an oversized boot sector."""
    try:
        size = path.stat().st_size
    except OSError as error:
        raise SourceFileError(path, str(error)) from error
    if size > MAX_BOOTSECTOR_SIZE:
        raise BootSectorTooLargeError(size, MAX_BOOTSECTOR_SIZE)


def read_bootsector(path: Path) -> bytes:
    """Read the boot code to patch into the first sector.

    Raises:
        SourceFileError: If the file cannot be read
        BootSectorTooLargeError: If it is longer than 440 bytes
    """
    try:
        data = path.read_bytes()
    except OSError as error:
        raise SourceFileError(path, str(error)) from error
    if len(data) > MAX_BOOTSECTOR_SIZE:
        raise BootSectorTooLargeError(len(data), MAX_BOOTSECTOR_SIZE)
    return data


def partition_table_entries(config: Configuration, layout: Layout) -> list[gpt.GptPartition]:
    return [
        gpt.GptPartition(
            start=entry.start,
            end=entry.end,
            type_guid=partition.type_guid,
            name=partition.name,
        )
        for partition, entry in zip(config.partitions, layout.entries)
    ]


def build_image(config: Configuration) -> Path:
    """Build the image described by ``config``.

    Returns:
        Path of the written image

    Raises:
        ImageBuildError: On any configuration, I/O or codec failure
    """
    try:
        with operation_context("build", image=config.name):
            return _build(config)
    finally:
        config.close()


def _build(config: Configuration) -> Path:
    image_path = config.image_path
    layout = compute_layout(config)
    if config.bootsector is not None:
        check_bootsector(config.bootsector)

    remove_previous_image(image_path)

    log.info(f"Creating image {config.name}")
    ensure_destination(config.dest)
    allocation = layout.total_size + gpt.backup_table_size(config.sector_size)
    log.debug(
        f"Image size {layout.total_size} bytes "
        f"(+{allocation - layout.total_size} bytes backup GPT), "
        f"sector size {config.sector_size}"
    )

    with DiskImage.create(image_path, allocation, config.sector_size) as image:
        log.info("Partitioning...")
        for partition, entry in zip(config.partitions, layout.entries):
            log.info(
                f"> Partition {entry.index} (name: {partition.name}, "
                f"type: {partition.type_guid}, start: {entry.start}, end: {entry.end})"
            )
        gpt.write_partition_table(
            image,
            partition_table_entries(config, layout),
            protective_mbr=config.protective_mbr,
        )

        log.info("Writing partitions...")
        for position, partition in enumerate(config.partitions):
            write_content(partition.content, image, position + 1)

        if config.bootsector is not None:
            log.info("Writing bootsector...")
            bootsector = read_bootsector(config.bootsector)
            image.write_at(bootsector, 0)
            log.info(f"> Bootsector (size: {len(bootsector)})")

    log.info("Done")
    return image_path
