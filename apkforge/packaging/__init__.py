"""Final package assembly, native library collection and signing."""

from .assembler import PackageAssembler, ProjectOutput, discover_dex_files
from .native import NativeLibrarySet, collect_native_libraries
from .signing import ApkSigner

__all__ = [
    "PackageAssembler",
    "ProjectOutput",
    "discover_dex_files",
    "NativeLibrarySet",
    "collect_native_libraries",
    "ApkSigner",
]
