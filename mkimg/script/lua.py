"""Lua configuration scripts.

A configuration script is plain Lua run by an embedded interpreter (lupa).
Before it runs, these globals are bound:

Constants:
    Size.KB / Size.MB / Size.GB        byte multipliers (powers of 1024)
    FsType.Fat32 / Fat16 / Fat12       filesystem types
    PartType.Unused / ESP / LegacyMBR  GPT type GUIDs (and a few more)

Functions:
    SetName(name)
    SetSectorSize(512 | 4096)
    SetFirstSector(sector)
    SetBootsector(path)
    UseProtectiveMbr()
    NewRawPartition(name, type, path)
    NewFsPartition(name, type, capacity, fstype) -> part
        part:PutFile(src, dest)
        part:PutDir(src, dest)

Example (mkimg.lua):
    SetName("disk.img")
    UseProtectiveMbr()
    local esp = NewFsPartition("EFI", PartType.ESP, Size.MB * 64, FsType.Fat32)
    esp:PutDir("build/efi", "/EFI")
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import lupa
from lupa import LuaError, LuaRuntime

from mkimg.domain.models import Configuration
from mkimg.logging import LoggerFactory
from mkimg.script.bindings import (
    ConfigurationBindings,
    FilesystemPartitionHandle,
    script_constants,
)
from mkimg.storage.exceptions import ScriptError


log = LoggerFactory.for_script()

# Host access that configuration scripts never need
RESTRICTED_GLOBALS = (
    "python",
    "os",
    "io",
    "package",
    "debug",
    "require",
    "dofile",
    "loadfile",
)


def lua_type_name(value: Any) -> str:
    """Lua type name of a value received from the interpreter."""
    if value is None:
        return "no value"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, (str, bytes)):
        return "string"
    return lupa.lua_type(value) or "userdata"


def _bad_argument(position: int, function: str, expected: str, value: Any) -> ScriptError:
    return ScriptError(
        f"bad argument #{position} to '{function}' "
        f"({expected} expected, got {lua_type_name(value)})"
    )


def check_string(args: tuple, position: int, function: str) -> str:
    value = args[position - 1] if len(args) >= position else None
    if isinstance(value, bytes):
        return value.decode("utf-8")
    if isinstance(value, str):
        return value
    # Lua coerces numbers to strings here
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise _bad_argument(position, function, "string", value)


def check_unsigned(args: tuple, position: int, function: str) -> int:
    value = args[position - 1] if len(args) >= position else None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    raise _bad_argument(position, function, "unsigned integer", value)


class LuaConfigurationScript:
    """Lua runtime with the configuration host functions installed."""

    def __init__(self, config: Configuration):
        self.bindings = ConfigurationBindings(config)
        self.runtime = LuaRuntime(
            unpack_returned_tuples=True, register_eval=False, register_builtins=False
        )
        self._dofile = self.runtime.globals().dofile
        self._install_globals()
        self._restrict_globals()

    def _install_globals(self) -> None:
        lua_globals = self.runtime.globals()
        for name, table in script_constants().items():
            lua_globals[name] = self.runtime.table_from(table)

        lua_globals["SetName"] = self._set_name
        lua_globals["SetSectorSize"] = self._set_sector_size
        lua_globals["SetFirstSector"] = self._set_first_sector
        lua_globals["SetBootsector"] = self._set_bootsector
        lua_globals["UseProtectiveMbr"] = self._use_protective_mbr
        lua_globals["NewRawPartition"] = self._new_raw_partition
        lua_globals["NewFsPartition"] = self._new_fs_partition

    def _restrict_globals(self) -> None:
        """Remove file, process, module and Python access from scripts."""
        lua_globals = self.runtime.globals()
        for name in RESTRICTED_GLOBALS:
            lua_globals[name] = None

    def _set_name(self, *args) -> None:
        self.bindings.set_name(check_string(args, 1, "SetName"))

    def _set_sector_size(self, *args) -> None:
        self.bindings.set_sector_size(check_unsigned(args, 1, "SetSectorSize"))

    def _set_first_sector(self, *args) -> None:
        self.bindings.set_first_sector(check_unsigned(args, 1, "SetFirstSector"))

    def _set_bootsector(self, *args) -> None:
        self.bindings.set_bootsector(check_string(args, 1, "SetBootsector"))

    def _use_protective_mbr(self, *args) -> None:
        self.bindings.use_protective_mbr()

    def _new_raw_partition(self, *args) -> None:
        self.bindings.new_raw_partition(
            check_string(args, 1, "NewRawPartition"),
            check_string(args, 2, "NewRawPartition"),
            check_string(args, 3, "NewRawPartition"),
        )

    def _new_fs_partition(self, *args):
        handle = self.bindings.new_fs_partition(
            check_string(args, 1, "NewFsPartition"),
            check_string(args, 2, "NewFsPartition"),
            check_unsigned(args, 3, "NewFsPartition"),
            check_unsigned(args, 4, "NewFsPartition"),
        )
        return self._partition_table(handle)

    def _partition_table(self, handle: FilesystemPartitionHandle):
        # Methods are called with ':' so argument 1 is the table itself
        def put_file(*args) -> None:
            handle.put_file(check_string(args, 2, "PutFile"), check_string(args, 3, "PutFile"))

        def put_dir(*args) -> None:
            handle.put_dir(check_string(args, 2, "PutDir"), check_string(args, 3, "PutDir"))

        return self.runtime.table_from({"PutFile": put_file, "PutDir": put_dir})

    def run(self, path: str | Path) -> None:
        """Execute the script file at ``path``.

        Raises:
            ScriptError: If the file is missing or the script fails
            ImageBuildError: Raised by a host function, propagated unchanged
        """
        path = Path(path)
        if not path.is_file():
            raise ScriptError(f"configuration script not found: {path}", path)
        log.debug(f"Running configuration script {path}")
        try:
            self._dofile(str(path))
        except LuaError as error:
            raise ScriptError(f"{path}: {error}", path) from error


def run_script(path: str | Path, config: Configuration) -> Configuration:
    """Populate ``config`` by running the Lua script at ``path``."""
    LuaConfigurationScript(config).run(path)
    return config
