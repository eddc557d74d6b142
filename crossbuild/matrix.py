"""Variant x architecture matrix expansion into compile units."""
from __future__ import annotations

from dataclasses import dataclass, field
from itertools import product
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, Sequence

from .errors import ConfigurationError
from .model import (
    Architecture,
    BuildMode,
    CompileUnit,
    MergeEntry,
    MergeJob,
    Variant,
    capitalize,
)
from .sources import SourceLocator

TASK_PREFIX = "compileGo"
RELEASE_COMPILER_ARGS: tuple[str, ...] = ("-trimpath", "-ldflags", "-s -w")
DEFAULT_OPTIMIZED_BUILD_KINDS: frozenset[str] = frozenset({"release"})


def expand_variants(
    build_kinds: Sequence[str],
    flavor_dimensions: Sequence[Sequence[str]] | None = None,
    *,
    min_api_level: int = 21,
    optimized_build_kinds: Iterable[str] | None = None,
) -> Iterator[Variant]:
    """Generate every flavor combination for every build kind."""
    optimized = {
        kind.lower() for kind in (optimized_build_kinds or DEFAULT_OPTIMIZED_BUILD_KINDS)
    }
    dimensions = [list(dimension) for dimension in (flavor_dimensions or []) if dimension]
    for combination in product(*dimensions):
        for build_kind in build_kinds:
            yield Variant(
                build_kind=build_kind,
                flavors=tuple(combination),
                min_api_level=min_api_level,
                is_optimized=build_kind.lower() in optimized,
            )


def task_identifier(variant: Variant, architecture: Architecture) -> str:
    return f"{TASK_PREFIX}{capitalize(variant.name)}{architecture.task_suffix}"


def check_architectures(architectures: Sequence[Architecture]) -> None:
    """Reject duplicate ABI tags and short forms that collide once capitalized."""

    seen_tags: set[str] = set()
    seen_suffixes: Dict[str, Architecture] = {}
    for architecture in architectures:
        if architecture.abi_tag in seen_tags:
            raise ConfigurationError(f"Architecture '{architecture.abi_tag}' is configured twice")
        seen_tags.add(architecture.abi_tag)
        suffix = architecture.task_suffix
        other = seen_suffixes.get(suffix)
        if other is not None:
            raise ConfigurationError(
                f"Architectures '{other.abi_tag}' and '{architecture.abi_tag}' share the task "
                f"short form '{suffix}'"
            )
        seen_suffixes[suffix] = architecture


def android_environment(architecture: Architecture) -> Dict[str, str]:
    return {
        "CGO_ENABLED": "1",
        "GOOS": "android",
        "GOARCH": architecture.compiler_arch,
        "GOARM": architecture.sub_arch_variant or "",
    }


@dataclass(slots=True)
class MatrixSettings:
    build_dir: Path
    output_file_name: str
    build_mode: BuildMode = BuildMode.C_SHARED
    compiler_args: List[str] = field(default_factory=list)
    environment: Dict[str, str] = field(default_factory=dict)

    @property
    def intermediates_dir(self) -> Path:
        return self.build_dir / "intermediates" / "go"

    @property
    def merged_dir(self) -> Path:
        return self.build_dir / "generated" / "go" / "jniLibs"


class MatrixExpander:
    def __init__(self, settings: MatrixSettings, sources: SourceLocator) -> None:
        self._settings = settings
        self._sources = sources

    def _output_paths(self, variant: Variant, architecture: Architecture) -> tuple[Path, Path | None]:
        name = self._settings.output_file_name
        base = self._settings.intermediates_dir / variant.name / architecture.abi_tag
        header: Path | None = None
        if self._settings.build_mode.emits_header:
            stem = name.rsplit(".", 1)[0] if "." in name else name
            header = base / f"{stem}.h"
        return base / name, header

    def _compiler_args(self, variant: Variant) -> List[str]:
        args = list(self._settings.compiler_args)
        if variant.is_optimized:
            args.extend(RELEASE_COMPILER_ARGS)
        return args

    def expand(
        self,
        variants: Sequence[Variant],
        architectures: Sequence[Architecture],
    ) -> List[CompileUnit]:
        check_architectures(architectures)

        units: List[CompileUnit] = []
        identifiers: Dict[str, CompileUnit] = {}
        outputs: Dict[Path, CompileUnit] = {}
        for variant in variants:
            roots = self._sources.roots_for(variant)
            for architecture in architectures:
                output_file, output_header = self._output_paths(variant, architecture)
                environment = android_environment(architecture)
                environment.update(self._settings.environment)
                unit = CompileUnit(
                    variant=variant,
                    architecture=architecture,
                    task_identifier=task_identifier(variant, architecture),
                    output_file=output_file,
                    output_header=output_header,
                    source_roots=list(roots),
                    environment=environment,
                    extra_args=self._compiler_args(variant),
                )
                clash = identifiers.get(unit.task_identifier)
                if clash is not None:
                    raise ConfigurationError(
                        f"Task identifier '{unit.task_identifier}' is produced by both "
                        f"{clash.variant}/{clash.abi_tag} and {variant}/{architecture.abi_tag}"
                    )
                if output_file in outputs:
                    raise ConfigurationError(f"Output path '{output_file}' is shared by two compile units")
                identifiers[unit.task_identifier] = unit
                outputs[output_file] = unit
                units.append(unit)
        return units

    def merge_jobs(self, units: Sequence[CompileUnit]) -> List[MergeJob]:
        jobs: Dict[Variant, MergeJob] = {}
        for unit in units:
            job = jobs.get(unit.variant)
            if job is None:
                job = MergeJob(
                    variant=unit.variant,
                    entries=[],
                    destination_root=self._settings.merged_dir / unit.variant.name,
                )
                jobs[unit.variant] = job
            job.entries.append(MergeEntry(architecture=unit.architecture, artifact=unit.output_file))
        return list(jobs.values())


def group_by_variant(units: Iterable[CompileUnit]) -> Mapping[Variant, List[CompileUnit]]:
    grouped: Dict[Variant, List[CompileUnit]] = {}
    for unit in units:
        grouped.setdefault(unit.variant, []).append(unit)
    return grouped


__all__ = [
    "DEFAULT_OPTIMIZED_BUILD_KINDS",
    "MatrixExpander",
    "MatrixSettings",
    "RELEASE_COMPILER_ARGS",
    "TASK_PREFIX",
    "android_environment",
    "check_architectures",
    "expand_variants",
    "group_by_variant",
    "task_identifier",
]
