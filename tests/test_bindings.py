"""Tests for configuration host functions."""

from pathlib import Path

import pytest

from mkimg.domain import Configuration, FilesystemContent, FsType, PartType, RawContent
from mkimg.script.bindings import (
    ConfigurationBindings,
    FilesystemPartitionHandle,
    script_constants,
)
from mkimg.storage.exceptions import (
    ConfigurationError,
    InvalidSectorSizeError,
    SourceFileError,
)


@pytest.fixture
def bindings(config):
    return ConfigurationBindings(config)


class TestScriptConstants:
    def test_tables(self):
        constants = script_constants()

        assert set(constants) == {"Size", "FsType", "PartType"}
        assert constants["Size"]["MB"] == 1024 * 1024
        assert constants["FsType"] == {"Fat32": 0, "Fat16": 1, "Fat12": 2}
        assert constants["PartType"]["ESP"] == PartType.ESP

    def test_tables_are_copies(self):
        script_constants()["Size"]["KB"] = 1
        assert script_constants()["Size"]["KB"] == 1024


class TestConfigurationBindings:
    """Test ConfigurationBindings setters."""

    def test_set_name(self, bindings, config):
        bindings.set_name("disk.img")
        assert config.name == "disk.img"

    def test_set_sector_size(self, bindings, config):
        bindings.set_sector_size(4096)
        assert config.sector_size == 4096

    def test_set_sector_size_rejects_unsupported(self, bindings, config):
        with pytest.raises(InvalidSectorSizeError, match="1024"):
            bindings.set_sector_size(1024)
        assert config.sector_size == 512

    def test_set_first_sector(self, bindings, config):
        bindings.set_first_sector(34)
        assert config.first_sector == 34

    def test_set_bootsector_is_lazy(self, bindings, config, tmp_path):
        bindings.set_bootsector(tmp_path / "not-yet-built.bin")
        assert config.bootsector == tmp_path / "not-yet-built.bin"

    def test_use_protective_mbr(self, bindings, config):
        assert config.protective_mbr is False
        bindings.use_protective_mbr()
        assert config.protective_mbr is True


class TestNewRawPartition:
    def test_opens_source_immediately(self, bindings, config, make_file):
        path = make_file("stage2.bin", b"stage2")

        bindings.new_raw_partition("STAGE2", PartType.BIOS_BOOT, str(path))

        partition = config.partitions[0]
        assert partition.name == "STAGE2"
        assert partition.type_guid == PartType.BIOS_BOOT
        assert isinstance(partition.content, RawContent)
        assert not partition.content.closed

    def test_missing_file_names_partition_index(self, bindings, config, make_file, tmp_path):
        bindings.new_raw_partition("ONE", PartType.UNUSED, str(make_file("one.bin")))

        with pytest.raises(SourceFileError) as exc_info:
            bindings.new_raw_partition("TWO", PartType.UNUSED, str(tmp_path / "two.bin"))

        assert exc_info.value.partition == 2
        assert "does not exist" in str(exc_info.value)
        assert len(config.partitions) == 1

    def test_directory_cannot_be_raw_source(self, bindings, source_tree):
        with pytest.raises(SourceFileError) as exc_info:
            bindings.new_raw_partition("DIR", PartType.UNUSED, str(source_tree))
        assert exc_info.value.partition == 1


class TestNewFsPartition:
    def test_appends_empty_filesystem(self, bindings, config):
        handle = bindings.new_fs_partition("DATA", PartType.ESP, 1024 * 1024, 0)

        assert isinstance(handle, FilesystemPartitionHandle)
        assert handle.index == 1
        content = config.partitions[0].content
        assert isinstance(content, FilesystemContent)
        assert content.capacity == 1024 * 1024
        assert content.fs_type is FsType.FAT32
        assert content.entries == []

    def test_accepts_enum_member(self, bindings, config):
        bindings.new_fs_partition("DATA", PartType.ESP, 1024, FsType.FAT12)
        assert config.partitions[0].content.fs_type is FsType.FAT12

    def test_unknown_fs_type(self, bindings, config):
        with pytest.raises(ConfigurationError, match="unknown filesystem type"):
            bindings.new_fs_partition("DATA", PartType.ESP, 1024, 7)
        assert config.partitions == []

    def test_handle_records_entries_without_touching_sources(self, bindings, config):
        handle = bindings.new_fs_partition("DATA", PartType.ESP, 1024, 0)

        handle.put_file("missing.txt", "/a.txt")
        handle.put_dir("missing-dir", "/dir")

        entries = config.partitions[0].content.entries
        assert [(e.source, e.destination, e.recursive) for e in entries] == [
            (Path("missing.txt"), "/a.txt", False),
            (Path("missing-dir"), "/dir", True),
        ]

    def test_indexes_follow_declaration_order(self, bindings, make_file):
        bindings.new_raw_partition("A", PartType.UNUSED, str(make_file("a.bin")))
        handle = bindings.new_fs_partition("B", PartType.ESP, 1024, 0)
        assert handle.index == 2


def test_bindings_work_without_script_runtime():
    config = Configuration()
    ConfigurationBindings(config).set_name("plain.img")
    assert config.image_path == Path(".") / "plain.img"
