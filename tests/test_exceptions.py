"""Tests for image build exception classes."""

import pytest

from mkimg.storage.exceptions import (
    BootSectorTooLargeError,
    CodecError,
    ConfigurationError,
    DirectoryNotRecursiveError,
    FilesystemFormatError,
    FilesystemWriteError,
    ImageAllocationError,
    ImageBuildError,
    ImageIOError,
    InvalidSectorSizeError,
    PartitionOverflowError,
    PartitionTableError,
    ScriptError,
    SourceFileError,
)


class TestExceptionHierarchy:
    """Test exception inheritance hierarchy."""

    def test_image_build_error_is_base_exception(self):
        error = ImageBuildError("test error")
        assert isinstance(error, Exception)
        assert str(error) == "test error"

    @pytest.mark.parametrize(
        "error_class", [ConfigurationError, ImageIOError, CodecError]
    )
    def test_category_errors_inherit_from_base(self, error_class):
        error = error_class("test")
        assert isinstance(error, ImageBuildError)

    def test_script_error_inherits_from_base(self):
        assert isinstance(ScriptError("boom"), ImageBuildError)

    def test_partition_table_error_is_codec_error(self):
        assert isinstance(PartitionTableError("bad"), CodecError)


class TestConfigurationExceptions:
    """Test configuration-related exceptions."""

    def test_invalid_sector_size_error(self):
        error = InvalidSectorSizeError(1000)
        assert isinstance(error, ConfigurationError)
        assert error.sector_size == 1000
        assert str(error) == "invalid sector size (use one of 512, 4096): 1000"

    def test_bootsector_too_large_error_reports_byte_count(self):
        error = BootSectorTooLargeError(441, 440)
        assert isinstance(error, ConfigurationError)
        assert error.size == 441
        assert error.limit == 440
        assert "440 bytes" in str(error)
        assert "(441 bytes)" in str(error)

    def test_directory_not_recursive_error(self, tmp_path):
        error = DirectoryNotRecursiveError(tmp_path)
        assert isinstance(error, ConfigurationError)
        assert error.source == str(tmp_path)
        assert "expected a file, got directory" in str(error)


class TestIOExceptions:
    """Test I/O-related exceptions."""

    def test_source_file_error_with_partition_index(self):
        error = SourceFileError("boot.bin", "does not exist", partition=2)
        assert isinstance(error, ImageIOError)
        assert error.partition == 2
        assert str(error) == "partition 2: file boot.bin: does not exist"

    def test_source_file_error_without_partition(self):
        error = SourceFileError("data/a.txt")
        assert error.partition is None
        assert error.reason == ""
        assert str(error) == "file data/a.txt"

    def test_image_allocation_error(self):
        error = ImageAllocationError("/out/disk.img", "read-only filesystem")
        assert isinstance(error, ImageIOError)
        assert "/out/disk.img" in str(error)
        assert "read-only filesystem" in str(error)

    def test_partition_overflow_error(self):
        error = PartitionOverflowError(3, 2048, 1024)
        assert error.index == 3
        assert "partition 3" in str(error)
        assert "2048" in str(error)
        assert "1024" in str(error)


class TestCodecExceptions:
    """Test codec-related exceptions."""

    def test_filesystem_format_error(self):
        error = FilesystemFormatError("too small", partition=1)
        assert isinstance(error, CodecError)
        assert error.partition == 1
        assert str(error) == "too small"

    def test_filesystem_write_error(self):
        error = FilesystemWriteError("disk full", path="/a/b.txt")
        assert isinstance(error, CodecError)
        assert error.path == "/a/b.txt"

    def test_script_error_keeps_script_path(self, tmp_path):
        error = ScriptError("syntax error", tmp_path / "mkimg.lua")
        assert error.script == str(tmp_path / "mkimg.lua")
