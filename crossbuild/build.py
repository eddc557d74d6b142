"""Core build planning and execution logic."""
from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Sequence
import logging
import os

from core.command_runner import CommandRunner

from .compiler import CompileInvoker, CompileResult, CompilerSettings
from .config_loader import ConfigurationStore, ProjectDefinition
from .errors import ConfigurationError, CrossbuildError, MergeError
from .host import HostPlatform
from .matrix import MatrixExpander, MatrixSettings, expand_variants, group_by_variant
from .merge import ArtifactMerger
from .model import Architecture, CompileUnit, MergeJob, Variant
from .sources import SourceLocator
from .toolchain import (
    ToolchainResolver,
    ToolchainRootLocator,
    resolve_go_executable,
    verify_go_executable,
)
from .wiring import BuildKindLabels, DependencyWirer

log = logging.getLogger(__name__)


@dataclass(slots=True)
class BuildOptions:
    project_name: str
    variants: List[str] = field(default_factory=list)
    jobs: int | None = None
    dry_run: bool = False
    ndk_dir: str | None = None


@dataclass(slots=True)
class BuildPlan:
    project: ProjectDefinition
    project_dir: Path
    host: HostPlatform
    toolchain_root: Path
    variants: List[Variant]
    architectures: List[Architecture]
    units: List[CompileUnit]
    merge_jobs: List[MergeJob]
    compiler: CompilerSettings
    sources: SourceLocator

    def merge_job_for(self, variant: Variant) -> MergeJob:
        for job in self.merge_jobs:
            if job.variant == variant:
                return job
        raise KeyError(f"No merge job for variant '{variant}'")


@dataclass(slots=True)
class VariantOutcome:
    variant: Variant
    results: List[CompileResult] = field(default_factory=list)
    failures: List[CrossbuildError] = field(default_factory=list)
    merged: List[Path] = field(default_factory=list)
    merge_error: MergeError | None = None
    merge_skipped: bool = False

    @property
    def success(self) -> bool:
        return not self.failures and self.merge_error is None


@dataclass(slots=True)
class BuildReport:
    outcomes: List[VariantOutcome]

    @property
    def success(self) -> bool:
        return all(outcome.success for outcome in self.outcomes)

    @property
    def failures(self) -> List[CrossbuildError]:
        errors: List[CrossbuildError] = []
        for outcome in self.outcomes:
            errors.extend(outcome.failures)
            if outcome.merge_error is not None:
                errors.append(outcome.merge_error)
        return errors


class BuildEngine:
    def __init__(
        self,
        *,
        store: ConfigurationStore,
        command_runner: CommandRunner,
        workspace: Path,
        host: HostPlatform | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._store = store
        self._command_runner = command_runner
        self._workspace = workspace
        self._host = host or HostPlatform.detect()
        self._environ = dict(environ) if environ is not None else dict(os.environ)
        self._merger = ArtifactMerger()

    @staticmethod
    def _select_variants(project: ProjectDefinition, requested: Sequence[str]) -> List[Variant]:
        variants = list(
            expand_variants(
                project.build_types,
                project.flavor_dimensions,
                min_api_level=project.min_api_level,
                optimized_build_kinds=project.optimized_build_types,
            )
        )
        if not requested:
            return variants
        by_name: Dict[str, Variant] = {variant.name: variant for variant in variants}
        selected: List[Variant] = []
        for name in requested:
            variant = by_name.get(name)
            if variant is None:
                available = ", ".join(sorted(by_name)) or "<none>"
                raise ConfigurationError(f"Unknown variant '{name}'. Available variants: {available}")
            if variant not in selected:
                selected.append(variant)
        return selected

    def _select_architectures(self, project: ProjectDefinition) -> List[Architecture]:
        try:
            return self._store.architectures.select(project.architectures)
        except KeyError as exc:
            raise ConfigurationError(str(exc.args[0])) from exc

    def plan(self, options: BuildOptions) -> BuildPlan:
        """Expand the matrix and resolve every unit's toolchain before anything runs."""

        project = self._store.get_project(options.project_name)
        errors = project.validate_structure()
        if errors:
            raise ConfigurationError("; ".join(errors))

        project_dir = project.resolve_project_dir(self._workspace)
        variants = self._select_variants(project, options.variants)
        architectures = self._select_architectures(project)

        sources = SourceLocator(project_dir, project.go.source_dirs)
        settings = MatrixSettings(
            build_dir=project_dir / project.build_dir,
            output_file_name=project.output_file_name,
            build_mode=project.go.build_mode,
            compiler_args=list(project.go.compiler_args),
            environment=dict(project.go.environment),
        )
        expander = MatrixExpander(settings, sources)
        units = expander.expand(variants, architectures)

        located = ToolchainRootLocator(project_dir=project_dir, environ=self._environ).locate(
            options.ndk_dir or project.ndk_path
        )
        resolver = ToolchainResolver(located.path, self._host)
        verify = self._command_runner.executes and not options.dry_run
        for unit in units:
            resolver.bind(unit, verify=verify)

        working_dir = None
        if project.go.working_dir:
            candidate = Path(project.go.working_dir).expanduser()
            working_dir = candidate if candidate.is_absolute() else (project_dir / candidate).resolve()
        compiler = CompilerSettings(
            executable=resolve_go_executable(
                self._host, explicit=project.go.executable, environ=self._environ
            ),
            build_mode=project.go.build_mode,
            package_name=project.go.package_name,
            build_tags=list(project.go.build_tags),
            working_dir=working_dir,
        )
        if verify:
            verify_go_executable(compiler.executable, environ=self._environ)

        log.info(
            "Planned %d compile unit(s) for %s: %d variant(s) x %d architecture(s)",
            len(units),
            project.name,
            len(variants),
            len(architectures),
        )
        return BuildPlan(
            project=project,
            project_dir=project_dir,
            host=self._host,
            toolchain_root=located.path,
            variants=variants,
            architectures=architectures,
            units=units,
            merge_jobs=expander.merge_jobs(units),
            compiler=compiler,
            sources=sources,
        )

    def wirer(self, plan: BuildPlan) -> DependencyWirer:
        wiring = plan.project.wiring
        return DependencyWirer(
            plan.units,
            build_kind_labels=BuildKindLabels(wiring.build_kind_labels),
            action_prefixes=wiring.action_prefixes or None,
            known_variants=self._select_variants(plan.project, []),
        )

    def execute(self, plan: BuildPlan, *, jobs: int | None = None) -> BuildReport:
        """Compile every unit, then merge each variant whose units all succeeded."""

        invoker = CompileInvoker(
            settings=plan.compiler,
            runner=self._command_runner,
            sources=plan.sources,
            project_dir=plan.project_dir,
        )
        workers = jobs or self._store.global_config.jobs
        outcomes: List[VariantOutcome] = []

        with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
            futures: Dict[str, Future[CompileResult]] = {
                unit.task_identifier: executor.submit(invoker.invoke, unit) for unit in plan.units
            }
            for variant, units in group_by_variant(plan.units).items():
                outcome = VariantOutcome(variant=variant)
                for unit in units:
                    try:
                        outcome.results.append(futures[unit.task_identifier].result())
                    except CrossbuildError as exc:
                        log.error("%s", exc)
                        outcome.failures.append(exc)
                self._merge_variant(plan, outcome)
                outcomes.append(outcome)

        return BuildReport(outcomes=outcomes)

    def _merge_variant(self, plan: BuildPlan, outcome: VariantOutcome) -> None:
        job = plan.merge_job_for(outcome.variant)
        if outcome.failures:
            outcome.merge_skipped = True
            log.warning("Skipping merge for %s: %d unit(s) failed", outcome.variant, len(outcome.failures))
            return
        if not self._command_runner.executes:
            outcome.merge_skipped = True
            log.info("Dry run: would merge %s into %s", outcome.variant, job.destination_root)
            return
        try:
            outcome.merged = self._merger.merge(job)
        except MergeError as exc:
            log.error("%s", exc)
            outcome.merge_error = exc


__all__ = [
    "BuildEngine",
    "BuildOptions",
    "BuildPlan",
    "BuildReport",
    "VariantOutcome",
]
