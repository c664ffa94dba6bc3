"""GUID Partition Table encoding.

Disk layout written by ``write_partition_table``:
    LBA 0:                  Protective MBR (only when requested)
    LBA 1:                  Primary GPT header
    LBA 2..:                Partition entry array (128 entries x 128 bytes)
    ...                     Partition data
    last LBAs:              Backup entry array, then the backup header

The backup copy lives in a tail reserved after the last partition; callers
allocate ``backup_table_size(sector_size)`` extra bytes for it.
"""

from __future__ import annotations

import struct
import uuid
import zlib
from dataclasses import dataclass
from typing import Sequence

from mkimg.logging import LoggerFactory
from mkimg.storage.exceptions import PartitionTableError
from mkimg.storage.image import DiskImage, PartitionRegion


log = LoggerFactory.for_codec("gpt")

GPT_SIGNATURE = b"EFI PART"
GPT_REVISION = 0x00010000
GPT_HEADER_SIZE = 92
ENTRY_COUNT = 128
ENTRY_SIZE = 128
NAME_MAX_CHARS = 36

MBR_BOOTCODE_SIZE = 440
MBR_PARTITION_OFFSET = 446
MBR_SIGNATURE = b"\x55\xaa"
MBR_PROTECTIVE_TYPE = 0xEE


@dataclass(frozen=True)
class GptPartition:
    """One partition table entry; ``end`` is exclusive like ``LayoutEntry``."""

    start: int
    end: int
    type_guid: str
    name: str


def crc32(data: bytes) -> int:
    return zlib.crc32(data) & 0xFFFFFFFF


def entry_array_sectors(sector_size: int) -> int:
    return (ENTRY_COUNT * ENTRY_SIZE + sector_size - 1) // sector_size


def first_usable_lba(sector_size: int) -> int:
    return 2 + entry_array_sectors(sector_size)


def backup_table_size(sector_size: int) -> int:
    """Bytes reserved at the end of the image for the backup GPT."""
    return (entry_array_sectors(sector_size) + 1) * sector_size


def parse_type_guid(value: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except (TypeError, ValueError):
        raise PartitionTableError(f"invalid partition type GUID: {value!r}") from None


def encode_name(name: str) -> bytes:
    encoded = name.encode("utf-16-le")
    if len(encoded) > NAME_MAX_CHARS * 2:
        raise PartitionTableError(
            f"partition name {name!r} exceeds {NAME_MAX_CHARS} UTF-16 characters"
        )
    return encoded.ljust(NAME_MAX_CHARS * 2, b"\x00")


def encode_entry(partition: GptPartition, unique_guid: uuid.UUID) -> bytes:
    type_guid = parse_type_guid(partition.type_guid)
    return (
        type_guid.bytes_le
        + unique_guid.bytes_le
        + struct.pack("<QQQ", partition.start, partition.end - 1, 0)
        + encode_name(partition.name)
    )


def encode_header(
    *,
    current_lba: int,
    backup_lba: int,
    first_usable: int,
    last_usable: int,
    disk_guid: uuid.UUID,
    entries_lba: int,
    entries_crc: int,
    sector_size: int,
) -> bytes:
    header = bytearray(
        struct.pack(
            "<8sIIIIQQQQ16sQIII",
            GPT_SIGNATURE,
            GPT_REVISION,
            GPT_HEADER_SIZE,
            0,  # CRC32, filled below
            0,
            current_lba,
            backup_lba,
            first_usable,
            last_usable,
            disk_guid.bytes_le,
            entries_lba,
            ENTRY_COUNT,
            ENTRY_SIZE,
            entries_crc,
        )
    )
    struct.pack_into("<I", header, 16, crc32(bytes(header[:GPT_HEADER_SIZE])))
    return bytes(header).ljust(sector_size, b"\x00")


def encode_protective_mbr(total_sectors: int, sector_size: int) -> bytes:
    """Partition record covering the whole disk with type 0xEE.

    Boot code (bytes 0-439) and the disk signature are left zero.
    """
    size = min(total_sectors - 1, 0xFFFFFFFF)
    record = struct.pack(
        "<B3sB3sII",
        0x00,
        b"\x00\x02\x00",
        MBR_PROTECTIVE_TYPE,
        b"\xff\xff\xff",
        1,
        size,
    )
    mbr = bytearray(sector_size)
    mbr[MBR_PARTITION_OFFSET:MBR_PARTITION_OFFSET + 16] = record
    mbr[510:512] = MBR_SIGNATURE
    return bytes(mbr)


def validate_partitions(
    partitions: Sequence[GptPartition], first_usable: int, last_usable: int
) -> None:
    """Reject tables that cannot be encoded.

    Raises:
        PartitionTableError: On too many, empty, out-of-range or overlapping
            partitions
    """
    if len(partitions) > ENTRY_COUNT:
        raise PartitionTableError(
            f"too many partitions ({len(partitions)}, maximum {ENTRY_COUNT})"
        )
    previous_end = None
    for index, partition in enumerate(partitions, start=1):
        if partition.end <= partition.start:
            raise PartitionTableError(f"partition {index} ({partition.name}) is empty")
        if partition.start < first_usable:
            raise PartitionTableError(
                f"partition {index} ({partition.name}) starts at sector "
                f"{partition.start}, before first usable sector {first_usable}"
            )
        if partition.end - 1 > last_usable:
            raise PartitionTableError(
                f"partition {index} ({partition.name}) ends at sector "
                f"{partition.end - 1}, past last usable sector {last_usable}"
            )
        if previous_end is not None and partition.start < previous_end:
            raise PartitionTableError(
                f"partition {index} ({partition.name}) overlaps partition {index - 1}"
            )
        previous_end = partition.end


def write_partition_table(
    image: DiskImage,
    partitions: Sequence[GptPartition],
    *,
    protective_mbr: bool = False,
    disk_guid: uuid.UUID | None = None,
) -> dict[int, PartitionRegion]:
    """Write primary and backup GPT to ``image`` and register partition regions.

    Args:
        image: Allocated image, including the backup table tail
        partitions: Entries in partition table order
        protective_mbr: Also write a protective MBR at LBA 0
        disk_guid: Disk GUID (random when omitted)

    Returns:
        Regions keyed by 1-based partition index

    Raises:
        PartitionTableError: If the table cannot be encoded or does not fit
    """
    sector_size = image.sector_size
    total_sectors = image.total_sectors
    array_sectors = entry_array_sectors(sector_size)
    first_usable = first_usable_lba(sector_size)
    last_lba = total_sectors - 1
    backup_entries_lba = last_lba - array_sectors
    last_usable = backup_entries_lba - 1

    if last_usable < first_usable:
        raise PartitionTableError(
            f"image of {total_sectors} sectors is too small for a partition table"
        )
    validate_partitions(partitions, first_usable, last_usable)

    disk_guid = disk_guid or uuid.uuid4()
    entries = b"".join(encode_entry(partition, uuid.uuid4()) for partition in partitions)
    entries = entries.ljust(ENTRY_COUNT * ENTRY_SIZE, b"\x00")
    entries_crc = crc32(entries)

    primary = encode_header(
        current_lba=1,
        backup_lba=last_lba,
        first_usable=first_usable,
        last_usable=last_usable,
        disk_guid=disk_guid,
        entries_lba=2,
        entries_crc=entries_crc,
        sector_size=sector_size,
    )
    backup = encode_header(
        current_lba=last_lba,
        backup_lba=1,
        first_usable=first_usable,
        last_usable=last_usable,
        disk_guid=disk_guid,
        entries_lba=backup_entries_lba,
        entries_crc=entries_crc,
        sector_size=sector_size,
    )

    if protective_mbr:
        log.debug("Writing protective MBR")
        image.write_at(encode_protective_mbr(total_sectors, sector_size), 0)
    image.write_at(primary, sector_size)
    image.write_at(entries, 2 * sector_size)
    image.write_at(entries, backup_entries_lba * sector_size)
    image.write_at(backup, last_lba * sector_size)
    log.debug(
        f"Wrote GPT with {len(partitions)} partitions "
        f"(usable sectors {first_usable}-{last_usable}, disk {disk_guid})"
    )

    regions = {
        index: PartitionRegion(
            index=index,
            offset=partition.start * sector_size,
            size=(partition.end - partition.start) * sector_size,
        )
        for index, partition in enumerate(partitions, start=1)
    }
    image.set_partition_regions(regions)
    return regions


@dataclass(frozen=True)
class GptHeader:
    current_lba: int
    backup_lba: int
    first_usable: int
    last_usable: int
    disk_guid: uuid.UUID
    entries_lba: int
    entry_count: int
    entry_size: int
    entries_crc: int


@dataclass(frozen=True)
class GptEntry:
    type_guid: str
    unique_guid: str
    first_lba: int
    last_lba: int
    name: str


def read_header(image: DiskImage, lba: int = 1) -> GptHeader:
    """Decode and checksum the GPT header at ``lba``.

    Raises:
        PartitionTableError: If the signature or CRC is wrong
    """
    data = bytearray(image.read_at(lba * image.sector_size, GPT_HEADER_SIZE))
    if bytes(data[:8]) != GPT_SIGNATURE:
        raise PartitionTableError(f"no GPT signature at LBA {lba}")
    (stored_crc,) = struct.unpack_from("<I", data, 16)
    struct.pack_into("<I", data, 16, 0)
    if crc32(bytes(data)) != stored_crc:
        raise PartitionTableError(f"GPT header CRC mismatch at LBA {lba}")
    fields = struct.unpack_from("<QQQQ16sQIII", data, 24)
    return GptHeader(
        current_lba=fields[0],
        backup_lba=fields[1],
        first_usable=fields[2],
        last_usable=fields[3],
        disk_guid=uuid.UUID(bytes_le=fields[4]),
        entries_lba=fields[5],
        entry_count=fields[6],
        entry_size=fields[7],
        entries_crc=fields[8],
    )


def read_entries(image: DiskImage, header: GptHeader) -> list[GptEntry]:
    """Decode the used entries of the array referenced by ``header``.

    Raises:
        PartitionTableError: If the entry array CRC is wrong
    """
    raw = image.read_at(
        header.entries_lba * image.sector_size, header.entry_count * header.entry_size
    )
    if crc32(raw) != header.entries_crc:
        raise PartitionTableError("GPT partition entry array CRC mismatch")
    entries = []
    for position in range(header.entry_count):
        chunk = raw[position * header.entry_size:(position + 1) * header.entry_size]
        type_guid = uuid.UUID(bytes_le=chunk[0:16])
        if type_guid.int == 0 and not any(chunk[16:]):
            continue
        first_lba, last_lba = struct.unpack_from("<QQ", chunk, 32)
        name = chunk[56:56 + NAME_MAX_CHARS * 2].decode("utf-16-le").rstrip("\x00")
        entries.append(
            GptEntry(
                type_guid=str(type_guid).upper(),
                unique_guid=str(uuid.UUID(bytes_le=chunk[16:32])).upper(),
                first_lba=first_lba,
                last_lba=last_lba,
                name=name,
            )
        )
    return entries
