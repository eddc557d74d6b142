"""Configuration loading and validation logic for the crossbuild CLI."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from core.config_loader import (
    collect_config_files,
    load_config_file,
    merge_mappings,
    normalize_string_list,
    resolve_config_paths,
)

from .architectures import ArchitectureRegistry
from .model import BuildMode


@dataclass(slots=True)
class GlobalConfig:
    log_level: str = "info"
    log_file: str | None = None
    jobs: int = 1

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "GlobalConfig":
        global_section = data.get("global", {}) if isinstance(data, Mapping) else {}
        jobs = global_section.get("jobs", 1)
        if isinstance(jobs, bool) or not isinstance(jobs, int) or jobs < 1:
            raise ValueError("global.jobs must be a positive integer")
        return cls(
            log_level=str(global_section.get("log_level", "info")),
            log_file=str(global_section.get("log_file")) if global_section.get("log_file") else None,
            jobs=jobs,
        )


def _string_mapping(value: Any, *, field_name: str) -> Dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise TypeError(f"{field_name} must be a table of strings")
    return {str(key): str(item) for key, item in value.items()}


@dataclass(slots=True)
class GoSettings:
    executable: str | None = None
    package_name: str | None = None
    build_tags: List[str] = field(default_factory=list)
    build_mode: BuildMode = BuildMode.C_SHARED
    compiler_args: List[str] = field(default_factory=list)
    working_dir: str | None = None
    source_dirs: List[str] = field(default_factory=list)
    environment: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "GoSettings":
        if not isinstance(data, Mapping):
            raise TypeError("[go] must be a table")
        build_mode = data.get("build_mode")
        executable = data.get("executable")
        package_name = data.get("package_name")
        working_dir = data.get("working_dir")
        return cls(
            executable=str(executable) if executable else None,
            package_name=str(package_name).strip() if package_name and str(package_name).strip() else None,
            build_tags=normalize_string_list(data.get("build_tags"), field_name="go.build_tags"),
            build_mode=BuildMode.parse(str(build_mode)) if build_mode else BuildMode.C_SHARED,
            compiler_args=normalize_string_list(data.get("compiler_args"), field_name="go.compiler_args"),
            working_dir=str(working_dir) if working_dir else None,
            source_dirs=normalize_string_list(data.get("source_dirs"), field_name="go.source_dirs"),
            environment=_string_mapping(data.get("environment"), field_name="go.environment"),
        )


@dataclass(slots=True)
class WiringSettings:
    action_prefixes: List[str] = field(default_factory=list)
    build_kind_labels: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "WiringSettings":
        if not isinstance(data, Mapping):
            raise TypeError("[wiring] must be a table")
        return cls(
            action_prefixes=normalize_string_list(data.get("action_prefixes"), field_name="wiring.action_prefixes"),
            build_kind_labels=_string_mapping(data.get("build_kind_labels"), field_name="wiring.build_kind_labels"),
        )


def _flavor_dimensions(value: Any) -> List[List[str]]:
    if value is None:
        return []
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
        raise TypeError("project.flavor_dimensions must be an array of arrays of strings")
    dimensions: List[List[str]] = []
    for entry in value:
        flavors = normalize_string_list(entry, field_name="project.flavor_dimensions")
        if flavors:
            dimensions.append(flavors)
    return dimensions


@dataclass(slots=True)
class ProjectDefinition:
    name: str
    project_dir: str | None
    build_dir: str
    output_file_name: str
    min_api_level: int
    ndk_path: str | None
    architectures: List[str] | None
    build_types: List[str]
    flavor_dimensions: List[List[str]]
    optimized_build_types: List[str]
    go: GoSettings
    wiring: WiringSettings
    raw: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ProjectDefinition":
        project_section = data.get("project")
        if not isinstance(project_section, Mapping):
            raise ValueError("[project] section is required in project configuration")
        name = project_section.get("name")
        if not name:
            raise ValueError("project.name is required")

        min_api_level = project_section.get("min_api_level", 21)
        if isinstance(min_api_level, bool) or not isinstance(min_api_level, int):
            raise TypeError("project.min_api_level must be an integer")

        raw_architectures = project_section.get("architectures")
        architectures = (
            normalize_string_list(raw_architectures, field_name="project.architectures")
            if raw_architectures is not None
            else None
        )
        build_types = normalize_string_list(
            project_section.get("build_types", ["debug", "release"]),
            field_name="project.build_types",
        )
        optimized = normalize_string_list(
            project_section.get("optimized_build_types", ["release"]),
            field_name="project.optimized_build_types",
        )
        project_dir = project_section.get("project_dir")
        ndk_path = project_section.get("ndk_path")
        output_file_name = project_section.get("output_file_name") or f"lib{name}.so"

        return cls(
            name=str(name),
            project_dir=str(project_dir) if project_dir else None,
            build_dir=str(project_section.get("build_dir") or "build"),
            output_file_name=str(output_file_name),
            min_api_level=min_api_level,
            ndk_path=str(ndk_path) if ndk_path else None,
            architectures=architectures,
            build_types=build_types,
            flavor_dimensions=_flavor_dimensions(project_section.get("flavor_dimensions")),
            optimized_build_types=optimized,
            go=GoSettings.from_mapping(data.get("go", {})),
            wiring=WiringSettings.from_mapping(data.get("wiring", {})),
            raw=data,
        )

    def resolve_project_dir(self, workspace: Path) -> Path:
        if not self.project_dir:
            return workspace
        path = Path(self.project_dir).expanduser()
        return path if path.is_absolute() else (workspace / path).resolve()

    def validate_structure(self) -> list[str]:
        """Return a list of structural validation errors for the project."""

        errors: list[str] = []

        if not self.build_types:
            errors.append("project.build_types must list at least one build type")
        lowered = [kind.lower() for kind in self.build_types]
        if len(set(lowered)) != len(lowered):
            errors.append("project.build_types contains duplicates")

        flavors = [flavor for dimension in self.flavor_dimensions for flavor in dimension]
        if len(set(flavors)) != len(flavors):
            errors.append("project.flavor_dimensions contains a flavor more than once")

        if self.min_api_level < 1:
            errors.append("project.min_api_level must be positive")

        if self.architectures is not None and not self.architectures:
            errors.append("project.architectures must not be empty when specified")

        if "/" in self.output_file_name or "\\" in self.output_file_name:
            errors.append("project.output_file_name must be a file name, not a path")

        if Path(self.build_dir).is_absolute():
            errors.append("project.build_dir must be a relative path")

        for prefix in self.wiring.action_prefixes:
            if "[" in prefix or "]" in prefix:
                errors.append(f"wiring.action_prefixes entry '{prefix}' must not contain brackets")

        return errors


@dataclass(slots=True)
class ConfigurationStore:
    root: Path
    global_config: GlobalConfig
    projects: Dict[str, ProjectDefinition]
    architectures: ArchitectureRegistry
    config_dirs: tuple[Path, ...] = field(default_factory=tuple)

    @classmethod
    def from_directory(cls, root: Path) -> "ConfigurationStore":
        return cls.from_directories(root, [root / "config"])

    @classmethod
    def from_directories(cls, root: Path, directories: Iterable[Path]) -> "ConfigurationStore":
        resolved_dirs, missing_dirs = resolve_config_paths(root, directories)
        if missing_dirs and not resolved_dirs:
            missing_display = ", ".join(str(path) for path in missing_dirs)
            raise FileNotFoundError(f"No configuration directories found. Missing: {missing_display}")
        if not resolved_dirs:
            raise FileNotFoundError("No configuration directories were provided")

        global_data: Mapping[str, Any] = {}
        registry = ArchitectureRegistry.with_builtins()
        projects: Dict[str, ProjectDefinition] = {}

        for config_dir in resolved_dirs:
            top_level_files = collect_config_files(config_dir)
            global_path = top_level_files.pop("config", None)
            if global_path is not None:
                global_data = merge_mappings(global_data, load_config_file(global_path))

            architectures_path = top_level_files.pop("architectures", None)
            if architectures_path is not None:
                registry.merge_from_mapping(load_config_file(architectures_path))

            projects_dir = config_dir / "projects"
            if not projects_dir.is_dir():
                continue

            for _, path in sorted(collect_config_files(projects_dir).items()):
                project = ProjectDefinition.from_mapping(load_config_file(path))
                projects[project.name] = project

        if not projects:
            raise FileNotFoundError("No project configurations found in the provided directories")

        return cls(
            root=root,
            config_dirs=resolved_dirs,
            global_config=GlobalConfig.from_mapping(global_data),
            projects=projects,
            architectures=registry,
        )

    def list_projects(self) -> Iterable[str]:
        return self.projects.keys()

    def get_project(self, name: str) -> ProjectDefinition:
        if name not in self.projects:
            available = ", ".join(sorted(self.projects)) or "<none>"
            raise KeyError(f"Project '{name}' not found. Available projects: {available}")
        return self.projects[name]


__all__ = [
    "ConfigurationStore",
    "GlobalConfig",
    "GoSettings",
    "ProjectDefinition",
    "WiringSettings",
]
