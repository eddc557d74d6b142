"""Go cross-compilation matrix for Android ABIs."""
from __future__ import annotations

from .build import BuildEngine, BuildOptions, BuildPlan, BuildReport, VariantOutcome
from .errors import ConfigurationError, CrossbuildError, MergeError, ProcessFailure
from .model import (
    Architecture,
    BuildMode,
    CompileUnit,
    DependencyEdge,
    MergeDependency,
    MergeEntry,
    MergeJob,
    Variant,
)


def main(argv=None) -> int:
    from .cli import main as cli_main

    return cli_main(argv)


__all__ = [
    "Architecture",
    "BuildEngine",
    "BuildMode",
    "BuildOptions",
    "BuildPlan",
    "BuildReport",
    "CompileUnit",
    "ConfigurationError",
    "CrossbuildError",
    "DependencyEdge",
    "MergeDependency",
    "MergeEntry",
    "MergeError",
    "MergeJob",
    "ProcessFailure",
    "Variant",
    "VariantOutcome",
    "main",
]
