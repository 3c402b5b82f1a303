"""Zip helpers shared by staging, conflict handling and packaging."""

from __future__ import annotations

import zipfile
from collections.abc import Iterator
from pathlib import Path

# Fixed entry timestamp so identical inputs produce identical archives
FIXED_TIMESTAMP = (1980, 1, 1, 0, 0, 0)

# Already-compressed content is stored rather than deflated
STORED_SUFFIXES = (".so", ".png", ".jpg", ".jpeg", ".gif", ".ogg", ".mp3", ".arsc")


def iter_archive_files(archive: Path) -> Iterator[str]:
    """Names of all file entries in an archive, in archive order."""
    with zipfile.ZipFile(archive) as zf:
        for info in zf.infolist():
            if not info.is_dir():
                yield info.filename


def iter_directory_files(root: Path) -> Iterator[tuple[str, Path]]:
    """Relative ``/``-separated paths of all files under a directory, sorted."""
    for path in sorted(root.rglob("*")):
        if path.is_file():
            yield path.relative_to(root).as_posix(), path


def write_entry(zf: zipfile.ZipFile, name: str, data: bytes) -> None:
    """Write one entry with a fixed timestamp."""
    info = zipfile.ZipInfo(name, date_time=FIXED_TIMESTAMP)
    info.external_attr = 0o644 << 16
    if name.lower().endswith(STORED_SUFFIXES):
        info.compress_type = zipfile.ZIP_STORED
    else:
        info.compress_type = zipfile.ZIP_DEFLATED
    zf.writestr(info, data)
