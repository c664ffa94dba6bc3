"""Sector-aligned partition layout.

Partitions are packed back to back starting at the first usable sector. Each
partition's byte size is rounded up to a whole number of sectors, so there is
never a gap or an overlap between neighbours.

Example:
    >>> layout = plan_layout(512, 2048, [1000])
    >>> layout.entries[0].start, layout.entries[0].end
    (2048, 2050)
    >>> layout.total_size
    1049600
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


def ceil_to(value: int, to: int) -> int:
    """Round ``value`` up to the next multiple of ``to``."""
    return (value + to - 1) // to * to


@dataclass(frozen=True)
class LayoutEntry:
    """Sector range of one partition; ``end`` is exclusive."""

    index: int  # 1-based, matches the partition table index
    start: int
    end: int

    @property
    def sectors(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class Layout:
    sector_size: int
    first_sector: int
    entries: tuple[LayoutEntry, ...]

    @property
    def end_sector(self) -> int:
        """First sector after the last partition."""
        if not self.entries:
            return self.first_sector
        return self.entries[-1].end

    @property
    def total_size(self) -> int:
        """Image size in bytes: reserved sectors plus every rounded partition."""
        return self.end_sector * self.sector_size


def plan_layout(sector_size: int, first_sector: int, sizes: Iterable[int]) -> Layout:
    """Compute start/end sectors for partitions of the given byte sizes.

    Args:
        sector_size: Sector size in bytes
        first_sector: First sector available to partitions
        sizes: Partition sizes in bytes, in partition table order

    Returns:
        Layout with one entry per size
    """
    entries = []
    current = first_sector
    for position, size in enumerate(sizes):
        sectors = ceil_to(size, sector_size) // sector_size
        entries.append(LayoutEntry(index=position + 1, start=current, end=current + sectors))
        current += sectors
    return Layout(sector_size=sector_size, first_sector=first_sector, entries=tuple(entries))
