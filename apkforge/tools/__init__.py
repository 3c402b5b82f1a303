"""External tool resolution, command construction and execution."""

from .aapt import ResourceCompileCommandBuilder, ResourceLinkCommandBuilder
from .aidl import AidlCommandBuilder
from .apksigner import ApkSignerCommandBuilder
from .builder import JavaToolCommandBuilder, ToolCommandBuilder
from .dex import D8CommandBuilder, DexCompiler, DxCommandBuilder, MainDexListCommandBuilder
from .executor import CommandExecutor
from .ndk import AndroidNdk, NdkBuildCommandBuilder, application_architectures
from .proguard import ProguardCommandBuilder, ProguardConfigBuilder, ProguardJar
from .sdk import AndroidSdk, java_executable, probe_resource_dialect
from .zipalign import ZipalignCommandBuilder

__all__ = [
    "ResourceCompileCommandBuilder",
    "ResourceLinkCommandBuilder",
    "AidlCommandBuilder",
    "ApkSignerCommandBuilder",
    "JavaToolCommandBuilder",
    "ToolCommandBuilder",
    "D8CommandBuilder",
    "DexCompiler",
    "DxCommandBuilder",
    "MainDexListCommandBuilder",
    "CommandExecutor",
    "AndroidNdk",
    "NdkBuildCommandBuilder",
    "application_architectures",
    "ProguardCommandBuilder",
    "ProguardConfigBuilder",
    "ProguardJar",
    "AndroidSdk",
    "java_executable",
    "probe_resource_dialect",
    "ZipalignCommandBuilder",
]
