"""Build pipeline: context, stages and runner."""

from .compile_native import CompileNativeStage
from .context import BuildContext, BuildLayout, StageOutputs
from .dex import DexStage
from .generate_sources import GenerateSourcesStage
from .package import PackageStage
from .proguard import ProguardStage
from .runner import STAGES, BuildPipeline, phase_names
from .stage import PipelineStage

__all__ = [
    "CompileNativeStage",
    "BuildContext",
    "BuildLayout",
    "StageOutputs",
    "DexStage",
    "GenerateSourcesStage",
    "PackageStage",
    "ProguardStage",
    "STAGES",
    "BuildPipeline",
    "phase_names",
    "PipelineStage",
]
