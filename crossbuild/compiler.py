"""Invocation of ``go build`` for a single compile unit."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Sequence
import logging

from core.command_runner import CommandResult, CommandRunner

from .errors import ConfigurationError, ProcessFailure
from .model import BuildMode, CompileUnit
from .sources import SourceLocator

log = logging.getLogger(__name__)

TAG_DELIMITER = ","


@dataclass(slots=True)
class CompilerSettings:
    executable: str = "go"
    build_mode: BuildMode = BuildMode.C_SHARED
    package_name: str | None = None
    build_tags: List[str] = field(default_factory=list)
    working_dir: Path | None = None


@dataclass(slots=True)
class CompileResult:
    unit: CompileUnit
    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str
    outputs: List[Path] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.returncode == 0


def build_arguments(
    settings: CompilerSettings,
    unit: CompileUnit,
    source_files: Sequence[Path],
) -> List[str]:
    """Assemble the ``go build`` argument vector; the order is significant."""

    args = ["build", f"-buildmode={settings.build_mode.value}"]
    if settings.build_tags:
        args.extend(["-tags", TAG_DELIMITER.join(settings.build_tags)])
    args.extend(["-o", str(unit.output_file.absolute())])
    args.extend(unit.extra_args)
    if settings.package_name:
        args.append(settings.package_name)
    else:
        args.extend(str(path.absolute()) for path in source_files)
    return args


class CompileInvoker:
    def __init__(
        self,
        *,
        settings: CompilerSettings,
        runner: CommandRunner,
        sources: SourceLocator,
        project_dir: Path,
    ) -> None:
        self._settings = settings
        self._runner = runner
        self._sources = sources
        self._project_dir = project_dir

    def working_dir(self, unit: CompileUnit) -> Path:
        if self._settings.working_dir is not None:
            return self._settings.working_dir
        for root in unit.source_roots:
            if root.is_dir():
                return root
        return self._project_dir

    def command(self, unit: CompileUnit) -> List[str]:
        source_files: Sequence[Path] = ()
        if not self._settings.package_name:
            source_files = self._sources.files_under(unit.source_roots)
        return [self._settings.executable, *build_arguments(self._settings, unit, source_files)]

    @staticmethod
    def _produced_files(unit: CompileUnit) -> List[Path]:
        files = [unit.output_file]
        if unit.output_header is not None:
            files.append(unit.output_header)
        return files

    def _discard_outputs(self, unit: CompileUnit) -> None:
        for path in self._produced_files(unit):
            if path.is_file():
                path.unlink()
                log.debug("Removed untrusted output %s", path)

    def invoke(self, unit: CompileUnit) -> CompileResult:
        """Run the compiler for ``unit`` and raise :class:`ProcessFailure` on a non-zero exit."""

        if unit.toolchain_executable is None:
            raise ConfigurationError(f"{unit.task_identifier} has no resolved cross compiler")

        command = self.command(unit)
        cwd = self.working_dir(unit)

        log.info("Compiling %s (%s, %s)", unit.task_identifier, unit.variant, unit.abi_tag)
        try:
            if self._runner.executes:
                unit.output_file.parent.mkdir(parents=True, exist_ok=True)
            result: CommandResult = self._runner.run(
                command,
                cwd=cwd,
                env=unit.environment,
                check=False,
                note=unit.task_identifier,
            )
        except OSError as exc:
            self._discard_outputs(unit)
            raise ConfigurationError(
                f"{unit.task_identifier}: compiler '{self._settings.executable}' could not be started: {exc}"
            ) from exc

        if result.returncode != 0:
            self._discard_outputs(unit)
            log.error("%s failed with exit code %d", unit.task_identifier, result.returncode)
            raise ProcessFailure(result, task_identifier=unit.task_identifier)

        outputs = self._produced_files(unit) if self._runner.executes else []
        log.info("Finished %s", unit.task_identifier)
        return CompileResult(
            unit=unit,
            command=list(result.command),
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
            outputs=[path for path in outputs if path.is_file()],
        )


__all__ = [
    "CompileInvoker",
    "CompileResult",
    "CompilerSettings",
    "TAG_DELIMITER",
    "build_arguments",
]
