"""Value types shared by the matrix expander, invoker, merger and wirer."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Tuple


def capitalize(text: str) -> str:
    """Uppercase the first character only (``demoRelease`` -> ``DemoRelease``)."""

    return text[:1].upper() + text[1:]


class BuildMode(str, Enum):
    EXE = "exe"
    SHARED = "shared"
    C_SHARED = "c-shared"
    C_ARCHIVE = "c-archive"
    ARCHIVE = "archive"
    PIE = "pie"
    PLUGIN = "plugin"

    @property
    def emits_header(self) -> bool:
        return self in (BuildMode.C_SHARED, BuildMode.C_ARCHIVE)

    @classmethod
    def parse(cls, value: str) -> "BuildMode":
        normalized = value.strip().lower().replace("_", "-")
        for mode in cls:
            if mode.value == normalized:
                return mode
        allowed = ", ".join(mode.value for mode in cls)
        raise ValueError(f"Unknown build mode '{value}' (allowed: {allowed})")


@dataclass(frozen=True, slots=True)
class Architecture:
    """A target ABI and the names the compiler and toolchain know it by."""

    abi_tag: str
    compiler_arch: str
    triple_prefix: str
    short_name: str
    sub_arch_variant: str | None = None

    def __post_init__(self) -> None:
        if not self.abi_tag or "[" in self.abi_tag or "]" in self.abi_tag:
            raise ValueError(f"Invalid ABI tag '{self.abi_tag}'")

    @property
    def task_suffix(self) -> str:
        return capitalize(self.short_name)


@dataclass(frozen=True, slots=True)
class Variant:
    """A flavor/build-kind combination with its own artifact set."""

    build_kind: str
    flavors: Tuple[str, ...] = ()
    min_api_level: int = 21
    is_optimized: bool = False

    @property
    def name(self) -> str:
        parts = [*self.flavors, self.build_kind]
        return parts[0] + "".join(capitalize(part) for part in parts[1:])

    @property
    def task_name(self) -> str:
        return capitalize(self.name)

    def __str__(self) -> str:
        return self.name


@dataclass(slots=True)
class CompileUnit:
    variant: Variant
    architecture: Architecture
    task_identifier: str
    output_file: Path
    output_header: Path | None = None
    source_roots: List[Path] = field(default_factory=list)
    toolchain_executable: Path | None = None
    environment: Dict[str, str] = field(default_factory=dict)
    extra_args: List[str] = field(default_factory=list)

    @property
    def abi_tag(self) -> str:
        return self.architecture.abi_tag


@dataclass(frozen=True, slots=True)
class MergeEntry:
    architecture: Architecture
    artifact: Path


@dataclass(slots=True)
class MergeJob:
    variant: Variant
    entries: List[MergeEntry]
    destination_root: Path

    @property
    def task_identifier(self) -> str:
        return f"mergeGoJniLibs{self.variant.task_name}"


@dataclass(frozen=True, slots=True)
class DependencyEdge:
    """``task_name`` must not start before ``unit`` has completed."""

    task_name: str
    unit: CompileUnit = field(compare=False)
    unit_identifier: str = ""

    @classmethod
    def create(cls, task_name: str, unit: CompileUnit) -> "DependencyEdge":
        return cls(task_name=task_name, unit=unit, unit_identifier=unit.task_identifier)


@dataclass(frozen=True, slots=True)
class MergeDependency:
    task_name: str
    job: MergeJob = field(compare=False)


__all__ = [
    "Architecture",
    "BuildMode",
    "CompileUnit",
    "DependencyEdge",
    "MergeDependency",
    "MergeEntry",
    "MergeJob",
    "Variant",
    "capitalize",
]
