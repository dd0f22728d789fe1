"""
Executable version reader.

Reads the file and product versions from the version resource of Windows
PE executables (.exe, .dll) using pefile.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import pefile

from .filesystem import FileSystem, read_file

logger = logging.getLogger("loot_conditions.pe")


@dataclass(frozen=True)
class ExecutableVersions:
    """Versions found in an executable; either may be missing."""

    file_version: Optional[str]
    product_version: Optional[str]


def _decode(value: bytes) -> str:
    if isinstance(value, str):
        return value
    return value.decode("utf-8", errors="replace")


def _fixed_file_version(pe: "pefile.PE") -> Optional[str]:
    fixed_infos = getattr(pe, "VS_FIXEDFILEINFO", None)
    if not fixed_infos:
        return None

    info = fixed_infos[0]
    return "{}.{}.{}.{}".format(
        info.FileVersionMS >> 16,
        info.FileVersionMS & 0xFFFF,
        info.FileVersionLS >> 16,
        info.FileVersionLS & 0xFFFF,
    )


def _string_product_version(pe: "pefile.PE") -> Optional[str]:
    # The first string table carrying a ProductVersion wins, whatever its
    # language.
    for file_info_list in getattr(pe, "FileInfo", None) or []:
        for file_info in file_info_list:
            if getattr(file_info, "Key", None) != b"StringFileInfo":
                continue
            for table in getattr(file_info, "StringTable", []):
                value = table.entries.get(b"ProductVersion")
                if value is not None:
                    return _decode(value).strip()
    return None


def parse_executable_versions(data: bytes) -> ExecutableVersions:
    """
    Parses the version resource of an executable image.

    Raises:
        pefile.PEFormatError: If the data is not a PE image
    """
    pe = pefile.PE(data=data, fast_load=True)
    try:
        pe.parse_data_directories(
            directories=[pefile.DIRECTORY_ENTRY["IMAGE_DIRECTORY_ENTRY_RESOURCE"]]
        )
        return ExecutableVersions(
            file_version=_fixed_file_version(pe),
            product_version=_string_product_version(pe),
        )
    finally:
        pe.close()


def read_executable_versions(fs: FileSystem, path: str) -> Optional[ExecutableVersions]:
    """
    Reads the versions of the executable at `path`.

    Returns None when the file is not an executable. Raises EvaluationError
    if the file cannot be read.
    """
    data = read_file(fs, path)
    try:
        return parse_executable_versions(data)
    except pefile.PEFormatError as error:
        logger.warning(
            "executable_unparseable", extra={"path": path, "error": str(error)}
        )
        return None
